import asyncio
import html
import logging
from datetime import UTC, datetime
from typing import Any

import httpx
from bs4 import BeautifulSoup
from pydantic import ValidationError

from job_aggregator.errors import ProviderError
from job_aggregator.models import Job, JobQuery, JobSource, SearchResult
from job_aggregator.providers.base import JobProvider, apply_query
from job_aggregator.salary import convert_to_annual, detect_salary

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
INITIAL_BACKOFF = 2  # seconds
HTTP_TIMEOUT = 15.0  # seconds
USER_AGENT = "JobAggregator/0.1 (+https://github.com)"


class GreenhouseProvider(JobProvider):
    """
    Reads published listings from Greenhouse job boards
    (https://boards-api.greenhouse.io/v1/boards/<board_token>/jobs).

    The board API has no server-side search, so listings are fetched per board
    and filtered locally. Job ids have the form "greenhouse-<board>-<id>".
    """

    BASE_URL = "https://boards-api.greenhouse.io/v1/boards"
    name = "greenhouse"

    def __init__(
        self,
        board_tokens: list[str],
        timeout: float = HTTP_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        initial_backoff: float = INITIAL_BACKOFF,
    ):
        if not board_tokens:
            raise ValueError("GreenhouseProvider needs at least one board token.")
        # Accept full board URLs as well as bare tokens
        self.board_tokens = [
            token.strip().rstrip("/").rsplit("/", 1)[-1] for token in board_tokens if token.strip()
        ]
        self.timeout = timeout
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, headers={"User-Agent": USER_AGENT})

    async def _get_json(
        self, client: httpx.AsyncClient, url: str, params: dict[str, str] | None = None
    ) -> dict[str, Any] | None:
        """
        GET a JSON document with retry and exponential backoff.
        Returns None for 404. Raises ProviderError once retries are exhausted.
        """
        for attempt in range(1, self.max_retries + 1):
            try:
                response = await client.get(url, params=params)
                if response.status_code == 404:
                    return None
                response.raise_for_status()
                return response.json()
            except httpx.HTTPError as e:
                if attempt == self.max_retries:
                    logger.error(f"HTTP error after {self.max_retries} attempts fetching {url}: {e}")
                    raise ProviderError(f"Greenhouse request failed: {e}", self.name) from e
                backoff = self.initial_backoff * (2 ** (attempt - 1))
                logger.warning(
                    f"Greenhouse attempt {attempt}/{self.max_retries} failed: {e}. "
                    f"Retrying in {backoff}s..."
                )
                await asyncio.sleep(backoff)
        raise ProviderError("Greenhouse request failed", self.name)

    async def _fetch_board(self, client: httpx.AsyncClient, board: str) -> list[Job]:
        data = await self._get_json(client, f"{self.BASE_URL}/{board}/jobs", {"content": "true"})
        if data is None:
            logger.warning(f"Greenhouse board '{board}' not found")
            return []
        jobs = []
        for payload in data.get("jobs", []):
            job = self._parse_job(board, payload)
            if job:
                jobs.append(job)
        logger.info(f"Fetched {len(jobs)} jobs from Greenhouse board '{board}'")
        return jobs

    async def search_jobs(self, query: JobQuery) -> SearchResult:
        async with self._client() as client:
            results = await asyncio.gather(
                *(self._fetch_board(client, board) for board in self.board_tokens),
                return_exceptions=True,
            )

        jobs: list[Job] = []
        errors: list[BaseException] = []
        for board, result in zip(self.board_tokens, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning(f"Skipping Greenhouse board '{board}': {result}")
                errors.append(result)
            else:
                jobs.extend(result)

        if errors and len(errors) == len(self.board_tokens):
            raise errors[0]
        return apply_query(jobs, query)

    async def get_job(self, job_id: str) -> Job | None:
        prefix = f"{JobSource.GREENHOUSE}-"
        if not job_id.startswith(prefix):
            return None
        board, _, raw_id = job_id.removeprefix(prefix).rpartition("-")
        if not board or not raw_id:
            return None

        async with self._client() as client:
            data = await self._get_json(
                client,
                f"{self.BASE_URL}/{board}/jobs/{raw_id}",
                {"pay_transparency": "true"},
            )
        if data is None:
            return None
        return self._parse_job(board, data)

    @staticmethod
    def _html_to_text(content: str | None) -> str | None:
        """Greenhouse returns HTML-escaped HTML; unescape it and keep the text."""
        if not content:
            return None
        soup = BeautifulSoup(html.unescape(content), "html.parser")
        text = soup.get_text("\n", strip=True)
        return text or None

    @staticmethod
    def _parse_timestamp(value: str | None) -> datetime:
        if not value:
            return datetime.now(tz=UTC)
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return datetime.now(tz=UTC)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)

    def _parse_job(self, board: str, payload: dict[str, Any]) -> Job | None:
        """
        Convert one Greenhouse job document into a Job.
        Returns None when the document is missing required fields.
        """
        raw_id = payload.get("id")
        title = payload.get("title")
        if raw_id is None or not title:
            return None

        description = self._html_to_text(payload.get("content"))
        location = (payload.get("location") or {}).get("name")

        salary_min = salary_max = None
        currency = None
        pay_ranges = payload.get("pay_input_ranges") or []
        if pay_ranges:
            pay = pay_ranges[0]
            salary_min = pay.get("min_cents", 0) / 100 or None
            salary_max = pay.get("max_cents", 0) / 100 or None
            currency = pay.get("currency_type")
        else:
            # Job pay fields hold annual amounts
            detected = detect_salary(description)
            if detected:
                detected = convert_to_annual(detected)
                salary_min, salary_max, currency = detected.min, detected.max, detected.currency

        try:
            return Job(
                id=f"{JobSource.GREENHOUSE}-{board}-{raw_id}",
                company=payload.get("company_name") or board,
                title=title.strip(),
                description=description,
                location=location,
                remote="remote" in (location or "").lower(),
                salary_min=salary_min,
                salary_max=salary_max,
                currency=currency,
                posted_at=self._parse_timestamp(
                    payload.get("first_published") or payload.get("updated_at")
                ),
                apply_url=payload.get("absolute_url"),
                source=JobSource.GREENHOUSE,
                raw=payload,
            )
        except ValidationError as e:
            logger.warning(f"Failed to validate Greenhouse job {raw_id} on board '{board}': {e}")
            return None
