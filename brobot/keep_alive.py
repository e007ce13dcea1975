"""
Self-ping of the bot's public URL so hosting platforms do not idle the web service.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Optional

import aiohttp
from discord.ext import tasks

logger = logging.getLogger(__name__)

PING_INTERVAL_SECONDS = 30
SUMMARY_INTERVAL_MINUTES = 10
PING_TIMEOUT_SECONDS = 10
DIAGNOSTIC_TIMEOUT_SECONDS = 30
MAX_CONSECUTIVE_FAILURES = 3
HEALTHY_SUCCESS_RATE = 80.0
USER_AGENT = 'BroBot-KeepAlive/1.0'
DIAGNOSTIC_USER_AGENT = 'BroBot-KeepAlive-Diagnostic/1.0'


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class KeepAliveService:
    def __init__(self, url: Optional[str]):
        self.url = url
        self.is_active = False
        self.total_pings = 0
        self.successful_pings = 0
        self.failed_pings = 0
        self.consecutive_failures = 0
        self.last_success: Optional[datetime] = None
        self.last_failure: Optional[datetime] = None

    def start(self):
        if not self.url:
            logger.info("Keep-alive service disabled (no RENDER_URL configured)")
            return
        if self.is_active:
            return

        logger.info(f"Starting keep-alive service (url={self.url})")
        self.is_active = True
        self.ping_loop.start()
        self.summary_loop.start()

    def stop(self):
        if not self.is_active:
            return
        self.ping_loop.cancel()
        self.summary_loop.cancel()
        self.is_active = False
        logger.info("Keep-alive service stopped")

    @tasks.loop(seconds=PING_INTERVAL_SECONDS)
    async def ping_loop(self):
        await self.ping()

    @ping_loop.before_loop
    async def before_ping_loop(self):
        await asyncio.sleep(PING_INTERVAL_SECONDS)

    @tasks.loop(minutes=SUMMARY_INTERVAL_MINUTES)
    async def summary_loop(self):
        self.log_summary()

    @summary_loop.before_loop
    async def before_summary_loop(self):
        await asyncio.sleep(SUMMARY_INTERVAL_MINUTES * 60)

    async def _request(self, timeout: float, user_agent: str) -> aiohttp.ClientResponse:
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=timeout),
            headers={'User-Agent': user_agent},
        ) as session:
            async with session.get(self.url) as resp:
                resp.raise_for_status()
                return resp

    async def ping(self) -> bool:
        """One keep-alive attempt; updates the counters and never raises."""
        if not self.url:
            return False

        self.total_pings += 1
        started = time.monotonic()
        try:
            resp = await self._request(PING_TIMEOUT_SECONDS, USER_AGENT)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.failed_pings += 1
            self.consecutive_failures += 1
            self.last_failure = datetime.now(timezone.utc)
            logger.warning(
                f"Keep-alive failed ({self.consecutive_failures} in a row): {e!r}"
            )
            if self.consecutive_failures == MAX_CONSECUTIVE_FAILURES:
                await self.diagnostic_ping()
            return False

        self.successful_pings += 1
        self.consecutive_failures = 0
        self.last_success = datetime.now(timezone.utc)
        logger.debug(
            f"Keep-alive successful (status={resp.status}, {(time.monotonic() - started) * 1000:.0f}ms)"
        )
        return True

    async def diagnostic_ping(self) -> None:
        """Extra attempt with a longer timeout, for the logs only; counters are left alone."""
        logger.warning(f"Running keep-alive diagnostic after {self.consecutive_failures} consecutive failures")
        started = time.monotonic()
        try:
            resp = await self._request(DIAGNOSTIC_TIMEOUT_SECONDS, DIAGNOSTIC_USER_AGENT)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Keep-alive diagnostic failed after {time.monotonic() - started:.1f}s: {e!r}")
            return
        logger.info(
            f"Keep-alive diagnostic succeeded (status={resp.status}, "
            f"content_type={resp.headers.get('Content-Type')}, server={resp.headers.get('Server')}, "
            f"{time.monotonic() - started:.1f}s)"
        )

    @property
    def success_rate(self) -> float:
        if self.total_pings == 0:
            return 100.0
        return self.successful_pings / self.total_pings * 100

    def is_healthy(self) -> bool:
        if not self.is_active:
            return False
        if self.total_pings == 0:
            return True
        return (
            self.success_rate >= HEALTHY_SUCCESS_RATE
            and self.consecutive_failures < MAX_CONSECUTIVE_FAILURES
        )

    def get_stats(self) -> dict:
        return {
            'isActive': self.is_active,
            'url': self.url,
            'totalPings': self.total_pings,
            'successfulPings': self.successful_pings,
            'failedPings': self.failed_pings,
            'consecutiveFailures': self.consecutive_failures,
            'successRate': round(self.success_rate, 1),
            'lastSuccess': _isoformat(self.last_success),
            'lastFailure': _isoformat(self.last_failure),
            'healthy': self.is_healthy(),
        }

    def log_summary(self) -> None:
        logger.info(
            f"Keep-alive summary: {self.successful_pings}/{self.total_pings} successful "
            f"({self.success_rate:.1f}%), {self.failed_pings} failed, "
            f"{self.consecutive_failures} consecutive failures"
        )
        if self.total_pings and self.success_rate < HEALTHY_SUCCESS_RATE:
            logger.warning(f"Keep-alive success rate is low: {self.success_rate:.1f}%")
