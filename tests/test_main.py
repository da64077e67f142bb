"""Tests for main application entrypoint."""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from resilient_dispatch.adapters.driven.config.settings import RequestSpec, Settings
from resilient_dispatch.core.errors import TransportFailure
from resilient_dispatch.core.executor import RetryTimeoutExecutor
from resilient_dispatch.main import main, make_logging_hooks, optional_endpoint_health_check
from resilient_dispatch.ports.http import ExecutionResult, RequestDescriptor, TransportResponse
from resilient_dispatch.ports.settings import DispatcherSettingsPort

__all__ = []


def make_executor(**transport_kwargs: object) -> RetryTimeoutExecutor:
    """Create executor over an AsyncMock transport."""
    transport = Mock()
    transport.exchange = AsyncMock(**transport_kwargs)
    return RetryTimeoutExecutor(transport)


def make_config(health_endpoint: str | None = None) -> Settings:
    """Create settings without touching the filesystem."""
    return Settings(
        requests_file_path="requests.json",
        http_health_endpoint=health_endpoint,
        requests=[
            RequestSpec(url="http://localhost:8000/a", priority="high"),
            RequestSpec(url="http://localhost:8000/b"),
        ],
    )


@pytest.mark.asyncio
async def test_optional_endpoint_health_check_when_disabled() -> None:
    """Health check should return True when endpoint not configured."""
    executor = make_executor()

    result = await optional_endpoint_health_check(DispatcherSettingsPort(), executor)

    assert result is True
    executor.transport.exchange.assert_not_called()


@pytest.mark.asyncio
async def test_optional_endpoint_health_check_succeeds() -> None:
    """Health check should return True on a 2xx response."""
    executor = make_executor(return_value=TransportResponse(status=204))
    settings = DispatcherSettingsPort(http_health_check_endpoint="http://localhost:8000/health")

    result = await optional_endpoint_health_check(settings, executor)

    assert result is True
    assert executor.transport.exchange.call_args.kwargs["url"] == "http://localhost:8000/health"


@pytest.mark.asyncio
async def test_optional_endpoint_health_check_fails_on_error_status() -> None:
    """Health check should return False on a non-2xx response."""
    executor = make_executor(return_value=TransportResponse(status=503))
    settings = DispatcherSettingsPort(http_health_check_endpoint="http://localhost:8000/health")

    assert await optional_endpoint_health_check(settings, executor) is False


@pytest.mark.asyncio
async def test_optional_endpoint_health_check_fails_on_transport_error() -> None:
    """Health check should return False when the endpoint is unreachable."""
    executor = make_executor(side_effect=TransportFailure("refused"))
    settings = DispatcherSettingsPort(http_health_check_endpoint="http://localhost:8000/health")

    assert await optional_endpoint_health_check(settings, executor) is False


def test_logging_hooks_accept_results_and_errors() -> None:
    """Hooks built for file requests should accept every outcome type."""
    hooks = make_logging_hooks("http://localhost:8000/a")

    hooks["on_success"](ExecutionResult(0.1, {"ok": True}, 200))
    hooks["on_success"]({"polled": True})
    hooks["on_error"](TransportFailure("down"))


@pytest.mark.asyncio
async def test_main_enqueues_requests_and_runs_scheduler() -> None:
    """Main should enqueue every configured request and run the scheduler."""
    with (
        patch("resilient_dispatch.main.configure_logs"),
        patch("resilient_dispatch.main.load_settings") as mock_load_settings,
        patch("resilient_dispatch.main.HttpClient") as mock_http_client_class,
        patch("resilient_dispatch.main.make_stop_on_sigterm"),
        patch("resilient_dispatch.main.PriorityScheduler") as mock_scheduler_class,
        patch("resilient_dispatch.main.optional_endpoint_health_check", new_callable=AsyncMock) as mock_health,
    ):
        mock_load_settings.return_value = make_config()

        mock_http_client = AsyncMock()
        mock_http_client_class.return_value = mock_http_client
        mock_http_client.__aenter__.return_value = mock_http_client

        mock_scheduler = mock_scheduler_class.return_value
        mock_scheduler.run = AsyncMock()
        mock_health.return_value = True

        await main()

        mock_health.assert_called_once()
        mock_scheduler.run.assert_awaited_once()
        enqueued = [c.args[0] for c in mock_scheduler.enqueue.call_args_list]
        assert [d.url for d in enqueued] == ["http://localhost:8000/a", "http://localhost:8000/b"]
        assert all(isinstance(d, RequestDescriptor) for d in enqueued)
        assert enqueued[0].on_success is not None


@pytest.mark.asyncio
async def test_main_aborts_on_configuration_error() -> None:
    """Main should return without dispatching when configuration is invalid."""
    with (
        patch("resilient_dispatch.main.configure_logs"),
        patch("resilient_dispatch.main.load_settings") as mock_load_settings,
        patch("resilient_dispatch.main.HttpClient") as mock_http_client_class,
        patch("resilient_dispatch.main.PriorityScheduler") as mock_scheduler_class,
    ):
        mock_load_settings.side_effect = RuntimeError("Missing required environment variable: REQUESTS_FILE_PATH")

        await main()

        mock_http_client_class.assert_not_called()
        mock_scheduler_class.assert_not_called()


@pytest.mark.asyncio
async def test_main_aborts_on_health_check_failure() -> None:
    """Main should abort startup if health check fails."""
    with (
        patch("resilient_dispatch.main.configure_logs"),
        patch("resilient_dispatch.main.load_settings") as mock_load_settings,
        patch("resilient_dispatch.main.HttpClient") as mock_http_client_class,
        patch("resilient_dispatch.main.make_stop_on_sigterm"),
        patch("resilient_dispatch.main.PriorityScheduler") as mock_scheduler_class,
        patch("resilient_dispatch.main.optional_endpoint_health_check", new_callable=AsyncMock) as mock_health,
    ):
        mock_load_settings.return_value = make_config("http://localhost:8000/health")

        mock_http_client = AsyncMock()
        mock_http_client_class.return_value = mock_http_client
        mock_http_client.__aenter__.return_value = mock_http_client

        mock_health.return_value = False

        await main()

        mock_scheduler_class.assert_not_called()


@pytest.mark.asyncio
async def test_main_continues_on_scheduler_exception() -> None:
    """Errors escaping the scheduler should be logged, not raised."""
    with (
        patch("resilient_dispatch.main.configure_logs"),
        patch("resilient_dispatch.main.load_settings") as mock_load_settings,
        patch("resilient_dispatch.main.HttpClient") as mock_http_client_class,
        patch("resilient_dispatch.main.make_stop_on_sigterm"),
        patch("resilient_dispatch.main.PriorityScheduler") as mock_scheduler_class,
        patch("resilient_dispatch.main.optional_endpoint_health_check", new_callable=AsyncMock) as mock_health,
        patch("resilient_dispatch.main.logger") as mock_logger,
    ):
        mock_load_settings.return_value = make_config()

        mock_http_client = AsyncMock()
        mock_http_client_class.return_value = mock_http_client
        mock_http_client.__aenter__.return_value = mock_http_client
        mock_health.return_value = True

        mock_scheduler_class.return_value.run = AsyncMock(side_effect=RuntimeError("Test error in loop"))

        try:
            await main()
        except RuntimeError:
            pytest.fail("main() should not raise; exceptions are caught internally")

        mock_logger.error.assert_called()
