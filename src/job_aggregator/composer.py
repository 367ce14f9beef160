import asyncio
import hashlib
import logging
from collections.abc import Sequence

from job_aggregator.errors import (
    AllProvidersFailedError,
    CircuitOpenError,
    RateLimitExceededError,
)
from job_aggregator.jurisdiction import DEFAULT_RULES, JurisdictionRules, apply_jurisdiction_flags
from job_aggregator.models import Job, JobQuery, JobSource, SearchResult
from job_aggregator.providers.base import JobProvider

logger = logging.getLogger(__name__)

# Lower rank wins. The employer's own listing (or its ATS) beats any reseller of it.
SOURCE_PRIORITY: dict[str, int] = {
    JobSource.MANUAL: 0,
    JobSource.GREENHOUSE: 0,
    JobSource.LEVER: 0,
    JobSource.ASHBY: 0,
    JobSource.RECRUITEE: 0,
    JobSource.WORKABLE: 0,
    JobSource.SMARTRECRUITERS: 0,
    JobSource.USAJOBS: 1,
    JobSource.GOOGLE: 1,
    JobSource.ADZUNA: 2,
    JobSource.SEED: 3,
}
LOWEST_PRIORITY = max(SOURCE_PRIORITY.values()) + 1


def source_rank(source: str) -> int:
    return SOURCE_PRIORITY.get(source, LOWEST_PRIORITY)


def fingerprint(job: Job) -> str:
    """
    Deduplication key for one composition call: title, company, location and
    apply-URL host, lower-cased and hashed.
    """
    host = job.apply_url.host if job.apply_url else None
    parts = (job.title, job.company, job.location or "", host or "")
    key = "\x1f".join(part.strip().lower() for part in parts)
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


class ProviderComposer:
    """
    Fans a query out to every provider concurrently and merges the answers
    into one deduplicated, compliance-annotated result.

    A provider that raises contributes nothing; the call only fails when
    every provider fails.
    """

    def __init__(
        self,
        providers: Sequence[JobProvider],
        rules: JurisdictionRules = DEFAULT_RULES,
    ) -> None:
        self.providers = list(providers)
        self.rules = rules

    def _log_failure(self, provider: JobProvider, error: Exception) -> None:
        if isinstance(error, RateLimitExceededError | CircuitOpenError):
            logger.warning(f"Provider '{provider.name}' skipped: {error}")
        else:
            logger.error(f"Provider '{provider.name}' failed: {error!r}")

    async def search_jobs(self, query: JobQuery) -> SearchResult:
        if not self.providers:
            return SearchResult()

        results = await asyncio.gather(
            *(provider.search_jobs(query) for provider in self.providers),
            return_exceptions=True,
        )

        canonical: dict[str, Job] = {}
        errors: dict[str, BaseException] = {}
        total = 0
        for provider, result in zip(self.providers, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                self._log_failure(provider, result)
                errors[provider.name] = result
                continue

            total += len(result.jobs)
            for job in result.jobs:
                key = fingerprint(job)
                current = canonical.get(key)
                # Replacing an existing key keeps its first-seen position
                if current is None or source_rank(job.source) < source_rank(current.source):
                    canonical[key] = apply_jurisdiction_flags(job, self.rules)

        if len(errors) == len(self.providers):
            raise AllProvidersFailedError(errors)

        flagged = sum(1 for job in canonical.values() if job.flags.get("requiresPayDisclosure"))
        logger.info(
            f"Composed search finished. "
            f"Providers ok: {len(self.providers) - len(errors)}/{len(self.providers)}, "
            f"Received: {total}, "
            f"Unique: {len(canonical)}, "
            f"Pay disclosure flagged: {flagged}"
        )
        return SearchResult(jobs=list(canonical.values()))

    async def get_job(self, job_id: str) -> Job | None:
        """Ask providers in order and return the first match, annotated."""
        for provider in self.providers:
            try:
                job = await provider.get_job(job_id)
            except Exception as e:
                self._log_failure(provider, e)
                continue
            if job is not None:
                return apply_jurisdiction_flags(job, self.rules)
        return None
