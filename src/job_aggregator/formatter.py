from job_aggregator.models import Job, ProviderHealth, SalaryRange
from job_aggregator.salary import DEFAULT_CURRENCY, format_salary_range


class JobFormatter:
    """
    Formats composed search output as plain text for the terminal.
    """

    DESCRIPTION_LIMIT = 200

    @classmethod
    def format_salary(cls, job: Job) -> str | None:
        if job.salary_min is None or job.salary_max is None:
            return None
        salary = SalaryRange(
            min=job.salary_min,
            max=job.salary_max,
            currency=job.currency or DEFAULT_CURRENCY,
        )
        return format_salary_range(salary)

    @classmethod
    def truncate(cls, text: str) -> str:
        """Truncate at the last word boundary before the limit."""
        text = " ".join(text.split())
        if len(text) <= cls.DESCRIPTION_LIMIT:
            return text
        return text[: cls.DESCRIPTION_LIMIT].rsplit(" ", 1)[0] + "..."

    @classmethod
    def format_job(cls, job: Job) -> str:
        lines = [f"{job.title} @ {job.company}"]

        details = [job.location or "Location not stated"]
        if job.remote:
            details.append("remote")
        details.append(f"source: {job.source}")
        lines.append("  " + " | ".join(details))

        salary = cls.format_salary(job)
        lines.append(f"  Pay: {salary}" if salary else "  Pay: not disclosed")

        if job.flags.get("requiresPayDisclosure"):
            penalty = job.flags.get("rankPenalty", 1.0)
            lines.append(f"  Warning: pay disclosure expected here (rank penalty x{penalty:.2f})")

        if job.description:
            lines.append(f"  {cls.truncate(job.description)}")

        if job.apply_url:
            lines.append(f"  Apply: {job.apply_url}")

        return "\n".join(lines)

    @classmethod
    def format_results(cls, jobs: list[Job]) -> str:
        if not jobs:
            return "No jobs found."
        header = f"{len(jobs)} job(s) found\n"
        return header + "\n\n".join(cls.format_job(job) for job in jobs)

    @classmethod
    def format_health(cls, health: list[ProviderHealth]) -> str:
        lines = ["Provider health:"]
        for h in health:
            lines.append(
                f"  {h.provider}: {h.state} (circuit {h.circuit}, "
                f"failures {h.failures}, tokens left {h.tokens_remaining}, "
                f"requests {h.request_count})"
            )
        return "\n".join(lines)
