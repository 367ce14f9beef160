import json

import pytest

from job_aggregator.composer import ProviderComposer
from job_aggregator.config import ProviderKind, Settings
from job_aggregator.jurisdiction import DEFAULT_RULES
from job_aggregator.models import JobQuery
from job_aggregator.providers.greenhouse import GreenhouseProvider
from job_aggregator.providers.seed import SeedProvider
from job_aggregator.registry import (
    build_composer,
    build_provider,
    build_providers,
    provider_health,
)
from job_aggregator.resilience import ResilientProvider


@pytest.fixture
def settings():
    return Settings(seed_latency_ms=0, seed_jitter_ms=0)


def test_build_seed_provider(settings):
    provider = build_provider(ProviderKind.SEED, settings)
    assert isinstance(provider, SeedProvider)
    assert provider.latency_ms == 0


def test_build_greenhouse_provider():
    settings = Settings(
        providers=(ProviderKind.GREENHOUSE,),
        greenhouse_board_tokens=("acme",),
        timeout_seconds=5,
    )
    provider = build_provider(ProviderKind.GREENHOUSE, settings)

    assert isinstance(provider, GreenhouseProvider)
    assert provider.board_tokens == ["acme"]
    assert provider.timeout == 5


def test_google_provider_is_not_implemented(settings):
    with pytest.raises(ValueError, match="not implemented"):
        build_provider(ProviderKind.GOOGLE, settings)


def test_build_providers_wraps_each_provider():
    settings = Settings(
        providers=(ProviderKind.SEED, ProviderKind.GREENHOUSE),
        greenhouse_board_tokens=("acme",),
        max_qps=3,
        circuit_failures=2,
        window_seconds=30,
    )

    providers = build_providers(settings)

    assert [p.name for p in providers] == ["seed", "greenhouse"]
    assert all(isinstance(p, ResilientProvider) for p in providers)
    assert providers[0].qps_cap == 3
    assert providers[0].circuit_failures == 2
    assert providers[0].window_seconds == 30


def test_build_composer_uses_default_rules(settings):
    composer = build_composer(settings)

    assert isinstance(composer, ProviderComposer)
    assert composer.rules is DEFAULT_RULES
    assert len(composer.providers) == 1


def test_build_composer_loads_rules_file(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps({"us_strict_states": ["TX"]}))

    composer = build_composer(Settings(jurisdiction_rules_path=str(path)))

    assert composer.rules.us_strict_states == frozenset({"TX"})


@pytest.mark.asyncio
async def test_seed_composer_end_to_end(settings):
    """Test a composed search against the seed provider with disclosure flags applied."""
    composer = build_composer(settings)

    result = await composer.search_jobs(JobQuery(limit=100))

    assert result.jobs
    flagged = [job for job in result.jobs if job.flags.get("requiresPayDisclosure")]
    for job in flagged:
        assert job.salary_min is None
        assert job.flags["rankPenalty"] in (0.92, 0.95)


@pytest.mark.asyncio
async def test_provider_health_lists_wrapped_providers(settings, make_provider):
    composer = build_composer(settings)
    await composer.search_jobs(JobQuery())

    health = provider_health([*composer.providers, make_provider("bare")])

    assert [h.provider for h in health] == ["seed"]
    assert health[0].state == "healthy"
    assert health[0].request_count == 1
