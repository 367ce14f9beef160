import asyncio
import os
from datetime import UTC, datetime

import pytest

# Set environment variables for tests before any imports happen
os.environ["JOBS_PROVIDER"] = "seed"
os.environ["SEED_PROVIDER_LATENCY_MS"] = "0"
os.environ["SEED_PROVIDER_JITTER_MS"] = "0"
os.environ["GREENHOUSE_BOARD_TOKENS"] = ""
os.environ["JURISDICTION_RULES_PATH"] = ""
os.environ["LOG_LEVEL"] = "INFO"

from job_aggregator.models import Job, JobQuery, SearchResult  # noqa: E402
from job_aggregator.providers.base import JobProvider  # noqa: E402

POSTED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


class StaticProvider(JobProvider):
    """In-memory provider that returns fixed jobs or raises a fixed error."""

    def __init__(
        self,
        name: str,
        jobs: list[Job] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ):
        self.name = name
        self.jobs = list(jobs or [])
        self.error = error
        self.delay = delay
        self.calls = 0

    async def search_jobs(self, query: JobQuery) -> SearchResult:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return SearchResult(jobs=list(self.jobs))

    async def get_job(self, job_id: str) -> Job | None:
        if self.error:
            raise self.error
        return next((job for job in self.jobs if job.id == job_id), None)


@pytest.fixture
def make_job():
    """Factory for Job objects with sensible defaults."""

    def _make(**overrides) -> Job:
        fields = {
            "id": "job-1",
            "company": "Acme",
            "title": "Backend Engineer",
            "description": "Build APIs in Python.",
            "location": "Seattle, WA",
            "remote": False,
            "salary_min": 120000,
            "salary_max": 150000,
            "currency": "USD",
            "posted_at": POSTED_AT,
            "apply_url": "https://acme.example.com/jobs/1",
            "source": "manual",
        }
        fields.update(overrides)
        return Job(**fields)

    return _make


@pytest.fixture
def make_provider():
    """Factory for StaticProvider instances."""
    return StaticProvider


@pytest.fixture
def sample_job(make_job):
    """A reusable sample Job for tests."""
    return make_job()
