class ProviderError(Exception):
    """Base class for failures raised by or on behalf of a job provider."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class RateLimitExceededError(ProviderError):
    """The provider's token bucket is empty for the current window."""


class CircuitOpenError(ProviderError):
    """The provider hit its failure threshold and is rejecting calls until the window rolls over."""


class ProviderTimeoutError(ProviderError):
    """The provider did not answer within its per-call deadline."""


class AllProvidersFailedError(ProviderError):
    """Every configured provider failed during a composed search."""

    def __init__(self, errors: dict[str, BaseException]) -> None:
        summary = ", ".join(f"{name}: {exc}" for name, exc in errors.items())
        super().__init__(f"All providers failed ({summary})")
        self.errors = errors
