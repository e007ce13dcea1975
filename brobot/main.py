import asyncio
import logging
import signal
import sys
import time
from typing import Optional

from brobot.client import BroBotClient
from brobot.config import Config, load_config
from brobot.error_handler import handle_process_error
from brobot.errors import ConfigError
from brobot.http_server import HttpServer
from brobot.keep_alive import KeepAliveService
from brobot.logging_util import setup_logging
from brobot.storage import Storage

logger = logging.getLogger(__name__)

READY_TIMEOUT_SECONDS = 30


class BroBot:
    """
    Owns every long-lived component for the life of the process.

    Startup is strictly sequential (database, Discord, HTTP, keep-alive, news)
    and any failure aborts it. Shutdown runs in the reverse direction on
    SIGINT/SIGTERM and is best-effort.
    """

    def __init__(self, config: Config):
        self.config = config
        self.started_at = time.monotonic()
        self.storage = Storage(config.database_url)
        self.bot = BroBotClient(config, self.storage)
        self.news_service = self.bot.news_service
        self.keep_alive = KeepAliveService(config.render_url)
        self.http_server = HttpServer(
            self.bot, config, self.keep_alive, self.storage, started_at=self.started_at
        )
        self._gateway: Optional[asyncio.Task] = None
        self._shutdown_requested: Optional[asyncio.Event] = None
        self._signal_name: Optional[str] = None

    async def start(self):
        logger.info("Starting BroBot...")

        logger.info("Connecting to database...")
        await self.storage.connect()

        logger.info("Starting Discord bot...")
        await self.bot.login(self.config.discord_token)
        self._gateway = asyncio.create_task(self.bot.connect(), name='discord-gateway')
        ready = asyncio.create_task(self.bot.wait_until_ready())
        done, _ = await asyncio.wait(
            {self._gateway, ready}, timeout=READY_TIMEOUT_SECONDS, return_when=asyncio.FIRST_COMPLETED
        )
        if ready not in done:
            ready.cancel()
            if self._gateway in done:
                # connect() ended before ready, surface its error
                self._gateway.result()
            raise TimeoutError("Bot initialization timeout")

        logger.info("Starting HTTP server...")
        await self.http_server.start()

        logger.info("Starting keep-alive service...")
        self.keep_alive.start()

        logger.info("Starting news service...")
        self.news_service.start()

        logger.info("🚀 BroBot started successfully!")

    async def shutdown(self) -> int:
        logger.info(f"Shutting down bot ({self._signal_name or 'requested'})")
        try:
            self.news_service.stop()
            self.keep_alive.stop()
            await self.http_server.stop()
            await self.bot.close()
            if self._gateway is not None:
                await asyncio.gather(self._gateway, return_exceptions=True)
            await self.storage.disconnect()
        except Exception:
            logger.exception("Error during shutdown")
            return 1
        logger.info("Graceful shutdown completed")
        return 0

    def request_shutdown(self, signal_name: str):
        self._signal_name = signal_name
        self._shutdown_requested.set()

    def _on_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict):
        error = context.get('exception')
        if error is None:
            # message-only notices (unclosed sessions, destroyed pending tasks) are not fatal
            loop.default_exception_handler(context)
            return
        handle_process_error(error, self.config.is_production, loop)

    async def run(self) -> int:
        loop = asyncio.get_running_loop()
        self._shutdown_requested = asyncio.Event()
        loop.set_exception_handler(self._on_loop_exception)
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.request_shutdown, sig.name)

        try:
            await self.start()
        except Exception:
            logger.exception("Failed to start BroBot")
            await self.shutdown()
            return 1

        await self._shutdown_requested.wait()
        return await self.shutdown()


def run_bot():
    setup_logging()
    try:
        config = load_config()
    except ConfigError as e:
        logger.error(f"❌ Configuration validation failed: {e}")
        sys.exit(1)

    setup_logging(config.logging_level)
    sys.exit(asyncio.run(BroBot(config).run()))
