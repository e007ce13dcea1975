"""Tests for the keep-alive self-ping counters and health rules."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from brobot.keep_alive import (
    DIAGNOSTIC_TIMEOUT_SECONDS,
    DIAGNOSTIC_USER_AGENT,
    PING_TIMEOUT_SECONDS,
    USER_AGENT,
    KeepAliveService,
)

URL = "https://brobot.onrender.com"


def ok_response():
    return MagicMock(status=200, headers={'Content-Type': 'application/json', 'Server': 'render'})


class TestPing:
    async def test_success_updates_counters(self):
        service = KeepAliveService(URL)
        with patch.object(service, "_request", new=AsyncMock(return_value=ok_response())) as request:
            assert await service.ping() is True

        request.assert_awaited_once_with(PING_TIMEOUT_SECONDS, USER_AGENT)
        assert (service.total_pings, service.successful_pings, service.failed_pings) == (1, 1, 0)
        assert service.last_success is not None
        assert service.consecutive_failures == 0

    async def test_failure_never_raises(self):
        service = KeepAliveService(URL)
        with patch.object(service, "_request", new=AsyncMock(side_effect=aiohttp.ClientError("down"))):
            assert await service.ping() is False

        assert (service.total_pings, service.failed_pings, service.consecutive_failures) == (1, 1, 1)
        assert service.last_failure is not None

    async def test_diagnostic_after_three_failures(self):
        """The third consecutive failure triggers one diagnostic request that leaves counters alone."""
        service = KeepAliveService(URL)
        request = AsyncMock(side_effect=aiohttp.ClientError("down"))
        with patch.object(service, "_request", new=request):
            for _ in range(3):
                await service.ping()
            assert request.await_count == 4
            assert request.await_args_list[-1].args == (DIAGNOSTIC_TIMEOUT_SECONDS, DIAGNOSTIC_USER_AGENT)

            await service.ping()
            assert request.await_count == 5

        assert (service.total_pings, service.failed_pings, service.consecutive_failures) == (4, 4, 4)

    async def test_success_resets_streak(self):
        service = KeepAliveService(URL)
        request = AsyncMock(side_effect=[aiohttp.ClientError("down"), aiohttp.ClientError("down"), ok_response()])
        with patch.object(service, "_request", new=request):
            for _ in range(3):
                await service.ping()

        assert service.consecutive_failures == 0
        assert service.successful_pings == 1

    async def test_no_url(self):
        service = KeepAliveService(None)
        assert await service.ping() is False
        assert service.total_pings == 0


class TestHealth:
    def test_inactive_is_unhealthy(self):
        assert KeepAliveService(URL).is_healthy() is False

    def test_active_without_pings_is_healthy(self):
        service = KeepAliveService(URL)
        service.is_active = True
        assert service.is_healthy() is True
        assert service.success_rate == 100.0

    @pytest.mark.parametrize("total,successful,streak,healthy", [
        (10, 8, 0, True),
        (10, 7, 0, False),
        (10, 9, 3, False),
        (10, 10, 2, True),
    ])
    def test_rules(self, total, successful, streak, healthy):
        service = KeepAliveService(URL)
        service.is_active = True
        service.total_pings = total
        service.successful_pings = successful
        service.failed_pings = total - successful
        service.consecutive_failures = streak
        assert service.is_healthy() is healthy

    def test_stats_keys(self):
        stats = KeepAliveService(URL).get_stats()
        assert stats == {
            'isActive': False,
            'url': URL,
            'totalPings': 0,
            'successfulPings': 0,
            'failedPings': 0,
            'consecutiveFailures': 0,
            'successRate': 100.0,
            'lastSuccess': None,
            'lastFailure': None,
            'healthy': False,
        }

    def test_low_success_rate_warns(self, caplog):
        service = KeepAliveService(URL)
        service.total_pings = 10
        service.successful_pings = 5
        with caplog.at_level(logging.WARNING, logger="brobot.keep_alive"):
            service.log_summary()
        assert "success rate is low" in caplog.text


class TestLifecycle:
    def test_start_without_url_is_noop(self):
        service = KeepAliveService(None)
        service.start()
        assert service.is_active is False

    async def test_start_and_stop(self):
        service = KeepAliveService(URL)
        service.start()
        assert service.is_active is True
        service.stop()
        assert service.is_active is False
