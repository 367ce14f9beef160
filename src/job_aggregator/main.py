import argparse
import asyncio
import logging
import signal
import sys
from datetime import UTC, datetime, timedelta

from job_aggregator.composer import ProviderComposer
from job_aggregator.config import load_settings
from job_aggregator.errors import AllProvidersFailedError
from job_aggregator.formatter import JobFormatter
from job_aggregator.models import JobQuery, SearchResult
from job_aggregator.registry import build_composer, provider_health

# Set up logging once, in the application entry point only
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", level=logging.INFO
)
logger = logging.getLogger(__name__)

DEFAULT_WATCH_INTERVAL = 30  # minutes


async def run_search(
    composer: ProviderComposer,
    query: JobQuery,
    as_json: bool = False,
    show_health: bool = False,
) -> SearchResult:
    """Run one composed search and print the annotated results."""
    logger.info(f"Searching {len(composer.providers)} provider(s) for {query.q or 'all jobs'!r}...")
    result = await composer.search_jobs(query)

    if as_json:
        print(result.model_dump_json(indent=2))
    else:
        print(JobFormatter.format_results(result.jobs))

    if show_health:
        print(JobFormatter.format_health(provider_health(composer.providers)))
    return result


async def run_loop(
    composer: ProviderComposer,
    query: JobQuery,
    interval_minutes: int,
    as_json: bool = False,
) -> None:
    """
    Repeat the composed search on an interval, logging provider health after each cycle.

    Handles SIGINT/SIGTERM for graceful shutdown. A failed cycle is logged and
    does not stop the loop.
    """
    shutdown_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Shutdown signal received. Finishing current cycle...")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    logger.info(f"Watching providers every {interval_minutes} min. Press Ctrl+C to stop.")

    while not shutdown_event.is_set():
        try:
            await run_search(composer, query, as_json=as_json)
        except Exception as e:
            logger.error(f"Search error (will retry next cycle): {e}")

        for health in provider_health(composer.providers):
            logger.info(
                f"Provider '{health.provider}' is {health.state} "
                f"(circuit {health.circuit}, failures {health.failures})"
            )

        if shutdown_event.is_set():
            break

        next_run = datetime.now(tz=UTC) + timedelta(minutes=interval_minutes)
        logger.info(f"Next run at {next_run.strftime('%Y-%m-%d %H:%M:%S UTC')}")

        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval_minutes * 60)
        except TimeoutError:
            pass

    logger.info("Shutting down gracefully.")


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got '{value}'") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {number}")
    return number


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="job-aggregator",
        description=(
            "Search every configured job provider, merge duplicates, "
            "and flag listings that should disclose pay."
        ),
    )

    parser.add_argument("-q", "--query", default=None, help="Free-text search terms.")
    parser.add_argument("--location", default=None, help="Location substring to match.")
    parser.add_argument(
        "--remote",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Only remote (--remote) or only on-site (--no-remote) jobs.",
    )
    parser.add_argument("--min-salary", type=float, default=None, metavar="AMOUNT")
    parser.add_argument("--limit", type=_positive_int, default=20)
    parser.add_argument("--page", type=_positive_int, default=1)
    parser.add_argument("--sort", choices=["relevance", "recent", "pay"], default="relevance")
    parser.add_argument(
        "--include-closed", action="store_true", help="Include listings marked as closed."
    )
    parser.add_argument("--json", action="store_true", help="Print results as JSON.")
    parser.add_argument(
        "--health", action="store_true", help="Print provider health after the search."
    )
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Repeat the search on an interval until interrupted.",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        metavar="MINUTES",
        help=f"Interval for --watch in minutes (default {DEFAULT_WATCH_INTERVAL}).",
    )

    return parser.parse_args(argv)


def build_query(args: argparse.Namespace) -> JobQuery:
    return JobQuery(
        q=args.query,
        location=args.location,
        remote=args.remote,
        min_salary=args.min_salary,
        limit=args.limit,
        page=args.page,
        sort=args.sort,
        include_closed=args.include_closed,
    )


def cli(argv: list[str] | None = None) -> None:
    """CLI entry point for the package."""
    args = parse_args(argv)

    if args.interval is not None and args.interval <= 0:
        logger.error("--interval must be a positive integer.")
        sys.exit(1)

    # Configuration problems are fatal before any provider is called
    try:
        settings = load_settings()
        logging.getLogger().setLevel(settings.log_level)
        composer = build_composer(settings)
    except (ValueError, OSError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    query = build_query(args)

    if args.watch:
        interval = args.interval or DEFAULT_WATCH_INTERVAL
        asyncio.run(run_loop(composer, query, interval, as_json=args.json))
        return

    try:
        asyncio.run(run_search(composer, query, as_json=args.json, show_health=args.health))
    except AllProvidersFailedError as e:
        logger.error(f"Search failed: {e}")
        sys.exit(2)


if __name__ == "__main__":
    cli()
