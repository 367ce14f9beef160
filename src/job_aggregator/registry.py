import logging

from job_aggregator.composer import ProviderComposer
from job_aggregator.config import ProviderKind, Settings
from job_aggregator.jurisdiction import load_rules
from job_aggregator.models import ProviderHealth
from job_aggregator.providers.base import JobProvider
from job_aggregator.providers.greenhouse import GreenhouseProvider
from job_aggregator.providers.seed import SeedProvider
from job_aggregator.resilience import ResilientProvider

logger = logging.getLogger(__name__)


def build_provider(kind: ProviderKind, settings: Settings) -> JobProvider:
    """Create the concrete (unwrapped) provider for one selector value."""
    if kind == ProviderKind.SEED:
        return SeedProvider(latency_ms=settings.seed_latency_ms, jitter_ms=settings.seed_jitter_ms)
    if kind == ProviderKind.GREENHOUSE:
        return GreenhouseProvider(
            board_tokens=list(settings.greenhouse_board_tokens),
            timeout=settings.timeout_seconds,
        )
    raise ValueError(f"Provider {kind} is not implemented yet.")


def build_providers(settings: Settings) -> list[ResilientProvider]:
    """Create every configured provider, each behind its own rate limiter and circuit breaker."""
    providers = []
    for kind in settings.providers:
        provider = ResilientProvider(
            build_provider(kind, settings),
            qps_cap=settings.max_qps,
            circuit_failures=settings.circuit_failures,
            window_seconds=settings.window_seconds,
            timeout_seconds=settings.timeout_seconds,
        )
        logger.info(
            f"Registered provider: {kind} "
            f"(max {settings.max_qps} calls per {settings.window_seconds:g}s, "
            f"circuit opens after {settings.circuit_failures} failures)"
        )
        providers.append(provider)
    return providers


def build_composer(settings: Settings) -> ProviderComposer:
    return ProviderComposer(
        build_providers(settings),
        rules=load_rules(settings.jurisdiction_rules_path),
    )


def provider_health(providers: list[JobProvider]) -> list[ProviderHealth]:
    """Health of every wrapped provider; unwrapped providers are skipped."""
    return [p.get_health() for p in providers if isinstance(p, ResilientProvider)]
