from datetime import datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, HttpUrl


class JobSource(StrEnum):
    """Closed set of sources a listing can come from."""

    MANUAL = "manual"
    SEED = "seed"
    GOOGLE = "google"
    GREENHOUSE = "greenhouse"
    LEVER = "lever"
    ASHBY = "ashby"
    RECRUITEE = "recruitee"
    WORKABLE = "workable"
    SMARTRECRUITERS = "smartrecruiters"
    USAJOBS = "usajobs"
    ADZUNA = "adzuna"


class Job(BaseModel):
    """
    Canonical model for a job listing.
    All providers must return instances of this model.

    `flags` carries out-of-band annotations (e.g. requiresPayDisclosure,
    rankPenalty, closed). Components may add flags but never remove them.
    """

    id: str
    company: str
    title: str
    description: str | None = None
    location: str | None = None
    remote: bool | None = None
    salary_min: float | None = None
    salary_max: float | None = None
    currency: str | None = None
    posted_at: datetime
    apply_url: HttpUrl | None = None
    source: JobSource
    raw: Any = None
    flags: dict[str, Any] = Field(default_factory=dict)


class JobQuery(BaseModel):
    """Read-only search request passed unchanged to every provider."""

    model_config = ConfigDict(frozen=True)

    q: str | None = None
    location: str | None = None
    remote: bool | None = None
    min_salary: float | None = None
    limit: int = Field(default=20, ge=1)
    page: int = Field(default=1, ge=1)
    sort: Literal["relevance", "recent", "pay"] = "relevance"
    include_closed: bool = False


class SearchResult(BaseModel):
    jobs: list[Job] = Field(default_factory=list)
    next_page: int | None = None


SalaryUnit = Literal["hour", "day", "month", "year", "unknown"]


class SalaryRange(BaseModel):
    """A pay range recovered from free text."""

    min: float
    max: float
    currency: str
    unit: SalaryUnit = "unknown"


class ProviderHealth(BaseModel):
    """Point-in-time view of a wrapped provider's resilience state."""

    provider: str
    state: Literal["healthy", "degraded", "unhealthy"]
    circuit: Literal["closed", "open"]
    failures: int
    tokens_remaining: int
    request_count: int
    last_request_at: datetime | None = None
