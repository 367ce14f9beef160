import asyncio
import logging
from datetime import UTC, datetime, timedelta

from job_aggregator.models import Job, JobQuery, JobSource, SearchResult
from job_aggregator.providers.base import JobProvider, apply_query

logger = logging.getLogger(__name__)

SEED = 42
JOB_COUNT = 100
DEFAULT_LATENCY_MS = 100
DEFAULT_JITTER_MS = 50
MAX_AGE_DAYS = 30
CLOSED_RATE = 0.1
UNDISCLOSED_PAY_RATE = 0.2

COMPANIES = [
    "TechCorp",
    "InnovateLabs",
    "DataFlow",
    "CloudScale",
    "AI Solutions",
    "DevOps Inc",
    "SecurityFirst",
    "MobileTech",
    "WebCraft",
    "StartupXYZ",
]

TITLES = [
    "Software Engineer",
    "Senior Developer",
    "Full Stack Engineer",
    "DevOps Engineer",
    "Data Scientist",
    "Product Manager",
    "UX Designer",
    "Backend Developer",
    "Frontend Developer",
    "Mobile Developer",
    "Cloud Architect",
    "Security Engineer",
]

LOCATIONS = [
    "San Francisco, CA",
    "New York, NY",
    "Seattle, WA",
    "Austin, TX",
    "Boston, MA",
    "Remote",
    "London, UK",
    "Berlin, Germany",
    "Toronto, Canada",
]

SKILLS = [
    "JavaScript",
    "TypeScript",
    "React",
    "Node.js",
    "Python",
    "Java",
    "Go",
    "AWS",
    "Docker",
    "Kubernetes",
    "PostgreSQL",
    "MongoDB",
    "Redis",
]


class SeededRandom:
    """Small linear congruential generator so the dataset is identical on every run."""

    def __init__(self, seed: int) -> None:
        self.state = seed

    def __call__(self) -> float:
        self.state = (self.state * 9301 + 49297) % 233280
        return self.state / 233280


class SeedProvider(JobProvider):
    """
    Deterministic in-memory provider for development and tests.

    Generates a fixed set of listings with simulated latency, a share of
    closed listings and a share of listings without a pay range.
    """

    name = "seed"

    def __init__(
        self,
        latency_ms: int = DEFAULT_LATENCY_MS,
        jitter_ms: int = DEFAULT_JITTER_MS,
        job_count: int = JOB_COUNT,
        now: datetime | None = None,
    ) -> None:
        self.latency_ms = latency_ms
        self.jitter_ms = jitter_ms
        self._rng = SeededRandom(SEED)
        self._now = now or datetime.now(tz=UTC)
        self._jobs: list[Job] = []
        self._priority: dict[str, int] = {}
        for i in range(job_count):
            self._jobs.append(self._generate_job(i + 1))
        # Highest priority first; this is the "relevance" order
        self._jobs.sort(key=lambda j: self._priority[j.id], reverse=True)

    def _pick(self, items: list[str]) -> str:
        return items[int(self._rng() * len(items))]

    def _generate_job(self, seed_id: int) -> Job:
        company = self._pick(COMPANIES)
        title = self._pick(TITLES)
        location = self._pick(LOCATIONS)
        is_remote = location == "Remote" or self._rng() > 0.7

        base_salary = 60000 + int(self._rng() * 120000)
        salary_spread = int(self._rng() * 20000)
        discloses_pay = self._rng() >= UNDISCLOSED_PAY_RATE
        closed = self._rng() < CLOSED_RATE
        job_id = f"seed-{seed_id}"
        self._priority[job_id] = int(self._rng() * 100)
        posted_at = self._now - timedelta(seconds=int(self._rng() * MAX_AGE_DAYS * 24 * 3600))

        return Job(
            id=job_id,
            company=company,
            title=title,
            description=self._generate_description(title, company),
            location="Remote" if is_remote else location,
            remote=is_remote,
            salary_min=base_salary if discloses_pay else None,
            salary_max=base_salary + salary_spread if discloses_pay else None,
            currency="USD" if discloses_pay else None,
            posted_at=posted_at,
            apply_url=f"https://example.com/apply/{seed_id}",
            source=JobSource.SEED,
            flags={"generated": True, "seedId": seed_id, "closed": closed},
        )

    def _generate_description(self, title: str, company: str) -> str:
        count = 3 + int(self._rng() * 3)
        skills = sorted(SKILLS, key=lambda _: self._rng())[:count]
        skill_lines = "\n".join(f"- {skill}" for skill in skills)
        return (
            f"We are {company}, a leading technology company looking for a {title} "
            f"to join our team.\n\n"
            f"Key Responsibilities:\n"
            f"- Develop and maintain high-quality software solutions\n"
            f"- Collaborate with cross-functional teams\n"
            f"- Participate in code reviews and technical discussions\n\n"
            f"Required Skills:\n{skill_lines}"
        )

    async def _simulate_latency(self) -> None:
        delay_ms = self.latency_ms + int(self._rng() * self.jitter_ms)
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000)

    async def search_jobs(self, query: JobQuery) -> SearchResult:
        await self._simulate_latency()
        result = apply_query(self._jobs, query)
        logger.debug(f"Seed provider matched {len(result.jobs)} jobs for query {query.q!r}")
        return result

    async def get_job(self, job_id: str) -> Job | None:
        await self._simulate_latency()
        job = next((job for job in self._jobs if job.id == job_id), None)
        return job.model_copy(update={"flags": dict(job.flags)}) if job else None

    # Helpers for tests and local debugging

    @property
    def job_count(self) -> int:
        return len(self._jobs)

    @property
    def open_job_count(self) -> int:
        return sum(1 for job in self._jobs if not job.flags.get("closed"))

    def close_job(self, job_id: str) -> bool:
        for job in self._jobs:
            if job.id == job_id:
                job.flags = {**job.flags, "closed": True}
                return True
        return False

    def add_job(self, job: Job) -> Job:
        """Append a listing under a fresh seed id. The listing sorts last for relevance."""
        seed_id = len(self._jobs) + 1
        new_job = job.model_copy(
            update={
                "id": f"seed-{seed_id}",
                "source": JobSource.SEED,
                "flags": {**job.flags, "generated": True, "seedId": seed_id},
            }
        )
        self._priority[new_job.id] = -1
        self._jobs.append(new_job)
        return new_job.model_copy(update={"flags": dict(new_job.flags)})
