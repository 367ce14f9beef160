from abc import ABC, abstractmethod

from job_aggregator.models import Job, JobQuery, SearchResult


class JobProvider(ABC):
    """
    Abstract base class for all job providers.

    An empty result is a normal outcome; implementations raise only when the
    underlying source could not be queried.
    """

    name: str = "provider"

    @abstractmethod
    async def search_jobs(self, query: JobQuery) -> SearchResult:
        """
        Search the source and return one page of matching Job objects.
        """
        pass

    @abstractmethod
    async def get_job(self, job_id: str) -> Job | None:
        """
        Look up a single job by its provider-scoped id, or None if unknown.
        """
        pass


def _matches(job: Job, query: JobQuery) -> bool:
    if query.q:
        term = query.q.lower()
        haystacks = (job.title, job.company, job.description or "")
        if not any(term in text.lower() for text in haystacks):
            return False

    if query.location:
        location = query.location.lower()
        in_location = location in (job.location or "").lower()
        if not in_location and not (query.remote and job.remote):
            return False

    if query.remote is not None and bool(job.remote) != query.remote:
        return False

    if query.min_salary:
        if not job.salary_min or job.salary_min < query.min_salary:
            return False

    if not query.include_closed and job.flags.get("closed"):
        return False

    return True


def apply_query(jobs: list[Job], query: JobQuery) -> SearchResult:
    """
    Filter, sort and paginate an in-memory list of jobs for a query.

    "relevance" keeps the input order, so providers should pass jobs in their
    own relevance order.
    """
    matched = [job for job in jobs if _matches(job, query)]

    if query.sort == "recent":
        matched.sort(key=lambda j: j.posted_at, reverse=True)
    elif query.sort == "pay":
        matched.sort(key=lambda j: j.salary_max or 0, reverse=True)

    start = (query.page - 1) * query.limit
    end = start + query.limit
    next_page = query.page + 1 if end < len(matched) else None
    # Copies, so callers never share flags with a provider's stored jobs
    page = [job.model_copy(update={"flags": dict(job.flags)}) for job in matched[start:end]]
    return SearchResult(jobs=page, next_page=next_page)
