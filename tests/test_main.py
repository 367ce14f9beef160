import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from job_aggregator.composer import ProviderComposer
from job_aggregator.errors import AllProvidersFailedError
from job_aggregator.models import JobQuery
from job_aggregator.resilience import ResilientProvider

# --- run_search tests ---


@pytest.mark.asyncio
async def test_run_search_prints_text(make_provider, make_job, capsys):
    """Test that run_search prints formatted results and returns them."""
    composer = ProviderComposer([make_provider("manual", [make_job()])])

    from job_aggregator.main import run_search

    result = await run_search(composer, JobQuery())

    out = capsys.readouterr().out
    assert len(result.jobs) == 1
    assert "1 job(s) found" in out
    assert "Backend Engineer @ Acme" in out


@pytest.mark.asyncio
async def test_run_search_prints_json(make_provider, make_job, capsys):
    job = make_job(salary_min=None, salary_max=None)
    composer = ProviderComposer([make_provider("manual", [job])])

    from job_aggregator.main import run_search

    await run_search(composer, JobQuery(), as_json=True)

    data = json.loads(capsys.readouterr().out)
    assert data["jobs"][0]["id"] == "job-1"
    assert data["jobs"][0]["flags"]["requiresPayDisclosure"] is True
    assert data["next_page"] is None


@pytest.mark.asyncio
async def test_run_search_prints_health(make_provider, capsys):
    composer = ProviderComposer([ResilientProvider(make_provider("seed"))])

    from job_aggregator.main import run_search

    await run_search(composer, JobQuery(), show_health=True)

    out = capsys.readouterr().out
    assert "No jobs found." in out
    assert "Provider health:" in out
    assert "seed: healthy" in out


@pytest.mark.asyncio
async def test_run_search_propagates_total_failure(make_provider):
    composer = ProviderComposer([make_provider("seed", error=RuntimeError("down"))])

    from job_aggregator.main import run_search

    with pytest.raises(AllProvidersFailedError):
        await run_search(composer, JobQuery())


# --- run_loop tests ---


@pytest.mark.asyncio
async def test_run_loop_executes_search_then_shuts_down(make_provider):
    """Test that run_loop calls run_search and exits on shutdown event."""
    composer = ProviderComposer([ResilientProvider(make_provider("seed"))])

    with (
        patch("job_aggregator.main.run_search", new_callable=AsyncMock) as mock_search,
        patch("job_aggregator.main.asyncio.get_running_loop") as mock_get_loop,
    ):
        mock_loop = MagicMock()
        mock_get_loop.return_value = mock_loop

        # Trigger shutdown through the registered signal handler
        async def search_side_effect(*args, **kwargs) -> None:
            handler = mock_loop.add_signal_handler.call_args_list[0][0][1]
            handler()

        mock_search.side_effect = search_side_effect

        from job_aggregator.main import run_loop

        await run_loop(composer, JobQuery(), interval_minutes=1)

        mock_search.assert_awaited_once()
        assert mock_loop.add_signal_handler.call_count == 2


@pytest.mark.asyncio
async def test_run_loop_continues_on_search_error(make_provider):
    """Test that run_loop continues to the next cycle if run_search raises."""
    composer = ProviderComposer([make_provider("seed")])
    call_count = 0

    with (
        patch("job_aggregator.main.run_search", new_callable=AsyncMock) as mock_search,
        patch("job_aggregator.main.asyncio.get_running_loop") as mock_get_loop,
    ):
        mock_loop = MagicMock()
        mock_get_loop.return_value = mock_loop

        async def search_side_effect(*args, **kwargs) -> None:
            nonlocal call_count
            call_count += 1
            if call_count == 1:
                raise AllProvidersFailedError({"seed": RuntimeError("down")})
            handler = mock_loop.add_signal_handler.call_args_list[0][0][1]
            handler()

        mock_search.side_effect = search_side_effect

        from job_aggregator.main import run_loop

        await run_loop(composer, JobQuery(), interval_minutes=0)  # 0-minute interval for fast test

        assert mock_search.await_count == 2


@pytest.mark.asyncio
async def test_run_loop_logs_provider_health(make_provider):
    composer = ProviderComposer([ResilientProvider(make_provider("seed"))])

    with (
        patch("job_aggregator.main.run_search", new_callable=AsyncMock) as mock_search,
        patch("job_aggregator.main.asyncio.get_running_loop") as mock_get_loop,
        patch("job_aggregator.main.logger") as mock_logger,
    ):
        mock_loop = MagicMock()
        mock_get_loop.return_value = mock_loop

        async def search_side_effect(*args, **kwargs) -> None:
            handler = mock_loop.add_signal_handler.call_args_list[0][0][1]
            handler()

        mock_search.side_effect = search_side_effect

        from job_aggregator.main import run_loop

        await run_loop(composer, JobQuery(), interval_minutes=30)

        info_messages = [str(call) for call in mock_logger.info.call_args_list]
        assert any("Provider 'seed'" in msg for msg in info_messages)
        assert any("Shutting down gracefully" in msg for msg in info_messages)


# --- parse_args tests ---


def test_parse_args_defaults():
    from job_aggregator.main import parse_args

    args = parse_args([])
    assert args.query is None
    assert args.remote is None
    assert args.limit == 20
    assert args.page == 1
    assert args.sort == "relevance"
    assert args.watch is False
    assert args.interval is None


def test_parse_args_all_flags():
    from job_aggregator.main import build_query, parse_args

    args = parse_args(
        [
            "-q", "python",
            "--location", "Seattle",
            "--remote",
            "--min-salary", "100000",
            "--limit", "5",
            "--page", "2",
            "--sort", "pay",
            "--include-closed",
            "--json",
        ]
    )
    query = build_query(args)

    assert query == JobQuery(
        q="python",
        location="Seattle",
        remote=True,
        min_salary=100000,
        limit=5,
        page=2,
        sort="pay",
        include_closed=True,
    )
    assert args.json is True


def test_parse_args_no_remote():
    from job_aggregator.main import parse_args

    assert parse_args(["--no-remote"]).remote is False


@pytest.mark.parametrize("value", ["0", "-3", "many"])
def test_parse_args_rejects_bad_limit(value):
    from job_aggregator.main import parse_args

    with pytest.raises(SystemExit):
        parse_args(["--limit", value])


# --- cli tests ---


def test_cli_runs_search_once():
    """Test that cli without --watch runs a single search."""
    with patch("job_aggregator.main.asyncio.run") as mock_run:
        from job_aggregator.main import cli

        cli(["-q", "python"])

        mock_run.assert_called_once()
        coro = mock_run.call_args[0][0]
        assert coro.__name__ == "run_search"
        # Clean up the coroutine to avoid RuntimeWarning
        coro.close()


def test_cli_watch_runs_loop():
    with patch("job_aggregator.main.asyncio.run") as mock_run:
        from job_aggregator.main import cli

        cli(["--watch", "--interval", "5"])

        mock_run.assert_called_once()
        coro = mock_run.call_args[0][0]
        assert coro.__name__ == "run_loop"
        coro.close()


def test_cli_invalid_interval_exits():
    """Test that --interval with zero or negative value exits with error."""
    with pytest.raises(SystemExit) as exc_info:
        from job_aggregator.main import cli

        cli(["--watch", "--interval", "0"])

    assert exc_info.value.code == 1


def test_cli_invalid_config_exits(monkeypatch):
    """Test that a bad provider selection stops startup before any search."""
    monkeypatch.setenv("JOBS_PROVIDER", "indeed")

    with (
        patch("job_aggregator.main.asyncio.run") as mock_run,
        pytest.raises(SystemExit) as exc_info,
    ):
        from job_aggregator.main import cli

        cli([])

    assert exc_info.value.code == 1
    mock_run.assert_not_called()


def test_cli_unimplemented_provider_exits(monkeypatch):
    monkeypatch.setenv("JOBS_PROVIDER", "google")

    with pytest.raises(SystemExit) as exc_info:
        from job_aggregator.main import cli

        cli([])

    assert exc_info.value.code == 1


def test_cli_all_providers_failed_exits():
    def fail(coro):
        coro.close()
        raise AllProvidersFailedError({"seed": RuntimeError("down")})

    with (
        patch("job_aggregator.main.asyncio.run", side_effect=fail),
        pytest.raises(SystemExit) as exc_info,
    ):
        from job_aggregator.main import cli

        cli([])

    assert exc_info.value.code == 2
