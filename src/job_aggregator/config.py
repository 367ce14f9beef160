import os
from enum import StrEnum

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

# Load environment variables from .env file
load_dotenv()


class ProviderKind(StrEnum):
    """Values accepted by JOBS_PROVIDER."""

    SEED = "seed"
    GOOGLE = "google"
    GREENHOUSE = "greenhouse"


class Settings(BaseModel):
    """Process configuration, parsed once at startup and passed down explicitly."""

    model_config = ConfigDict(frozen=True)

    providers: tuple[ProviderKind, ...] = (ProviderKind.SEED,)
    max_qps: int = 10
    circuit_failures: int = 5
    window_seconds: float = 60.0
    timeout_seconds: float = 10.0
    greenhouse_board_tokens: tuple[str, ...] = ()
    seed_latency_ms: int = 100
    seed_jitter_ms: int = 50
    jurisdiction_rules_path: str | None = None
    log_level: str = "INFO"


def get_config() -> dict[str, str]:
    """
    Read raw configuration values from environment variables.
    Nothing is validated here; see load_settings().
    """
    return {
        "JOBS_PROVIDER": os.getenv("JOBS_PROVIDER", "seed"),
        "JOBS_PROVIDER_MAX_QPS": os.getenv("JOBS_PROVIDER_MAX_QPS", "10"),
        "JOBS_PROVIDER_CIRCUIT_FAILURES": os.getenv("JOBS_PROVIDER_CIRCUIT_FAILURES", "5"),
        "JOBS_PROVIDER_WINDOW_SECONDS": os.getenv("JOBS_PROVIDER_WINDOW_SECONDS", "60"),
        "JOBS_PROVIDER_TIMEOUT_SECONDS": os.getenv("JOBS_PROVIDER_TIMEOUT_SECONDS", "10"),
        "GREENHOUSE_BOARD_TOKENS": os.getenv("GREENHOUSE_BOARD_TOKENS", ""),
        "SEED_PROVIDER_LATENCY_MS": os.getenv("SEED_PROVIDER_LATENCY_MS", "100"),
        "SEED_PROVIDER_JITTER_MS": os.getenv("SEED_PROVIDER_JITTER_MS", "50"),
        "JURISDICTION_RULES_PATH": os.getenv("JURISDICTION_RULES_PATH", ""),
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO"),
    }


def _split_list(raw: str) -> list[str]:
    """Split a comma-separated value, dropping blanks."""
    return [item.strip() for item in raw.split(",") if item.strip()]


def _positive_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be a positive integer, got '{raw}'") from None
    if value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value}")
    return value


def _non_negative_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be a non-negative integer, got '{raw}'") from None
    if value < 0:
        raise ValueError(f"{name} must be a non-negative integer, got {value}")
    return value


def _positive_float(name: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a positive number, got '{raw}'") from None
    if value <= 0:
        raise ValueError(f"{name} must be a positive number, got {value:g}")
    return value


def _providers(raw: str) -> tuple[ProviderKind, ...]:
    names = _split_list(raw.lower())
    if not names:
        raise ValueError("JOBS_PROVIDER must name at least one provider.")
    allowed = ", ".join(kind.value for kind in ProviderKind)
    kinds: list[ProviderKind] = []
    for name in names:
        try:
            kind = ProviderKind(name)
        except ValueError:
            raise ValueError(f"Invalid JOBS_PROVIDER={name}. Must be one of: {allowed}") from None
        if kind not in kinds:
            kinds.append(kind)
    return tuple(kinds)


def load_settings(config: dict[str, str] | None = None) -> Settings:
    """
    Validate configuration and build the immutable Settings.
    Raises ValueError on the first invalid value so startup fails fast.
    """
    raw = config if config is not None else get_config()

    providers = _providers(raw["JOBS_PROVIDER"])
    board_tokens = tuple(_split_list(raw["GREENHOUSE_BOARD_TOKENS"]))
    if ProviderKind.GREENHOUSE in providers and not board_tokens:
        raise ValueError("GREENHOUSE_BOARD_TOKENS is required when JOBS_PROVIDER includes greenhouse.")

    log_level = raw["LOG_LEVEL"].strip().upper()
    if log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ValueError(f"LOG_LEVEL must be a standard logging level, got '{raw['LOG_LEVEL']}'")

    return Settings(
        providers=providers,
        max_qps=_positive_int("JOBS_PROVIDER_MAX_QPS", raw["JOBS_PROVIDER_MAX_QPS"]),
        circuit_failures=_positive_int(
            "JOBS_PROVIDER_CIRCUIT_FAILURES", raw["JOBS_PROVIDER_CIRCUIT_FAILURES"]
        ),
        window_seconds=_positive_float(
            "JOBS_PROVIDER_WINDOW_SECONDS", raw["JOBS_PROVIDER_WINDOW_SECONDS"]
        ),
        timeout_seconds=_positive_float(
            "JOBS_PROVIDER_TIMEOUT_SECONDS", raw["JOBS_PROVIDER_TIMEOUT_SECONDS"]
        ),
        greenhouse_board_tokens=board_tokens,
        seed_latency_ms=_non_negative_int(
            "SEED_PROVIDER_LATENCY_MS", raw["SEED_PROVIDER_LATENCY_MS"]
        ),
        seed_jitter_ms=_non_negative_int("SEED_PROVIDER_JITTER_MS", raw["SEED_PROVIDER_JITTER_MS"]),
        jurisdiction_rules_path=raw["JURISDICTION_RULES_PATH"].strip() or None,
        log_level=log_level,
    )
