"""
Read-only status endpoints served with aiohttp.web on the bot's event loop.
"""

import logging
import resource
import time
from datetime import datetime, timezone
from typing import Optional

from aiohttp import web
from discord.ext import commands

from brobot.config import Config
from brobot.keep_alive import KeepAliveService
from brobot.storage import Storage

logger = logging.getLogger(__name__)

BOT_NAME = 'BroBot'


class HttpServer:
    def __init__(
        self,
        bot: commands.Bot,
        config: Config,
        keep_alive: KeepAliveService,
        storage: Storage,
        started_at: Optional[float] = None,
    ):
        self.bot = bot
        self.config = config
        self.keep_alive = keep_alive
        self.storage = storage
        self.started_at = started_at if started_at is not None else time.monotonic()
        self._runner: Optional[web.AppRunner] = None

        self.app = web.Application()
        self.app.add_routes([
            web.get('/', self.index),
            web.get('/health', self.health),
            web.get('/stats', self.stats),
            web.get('/ping', self.ping),
        ])

    @property
    def uptime(self) -> float:
        return round(time.monotonic() - self.started_at, 3)

    async def start(self, host: str = '0.0.0.0') -> None:
        self._runner = web.AppRunner(self.app, access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, host, self.config.port)
        await site.start()
        logger.info(f"HTTP server started (port={self.config.port})")

    async def stop(self) -> None:
        if self._runner is None:
            return
        await self._runner.cleanup()
        self._runner = None
        logger.info("HTTP server stopped")

    async def index(self, request: web.Request) -> web.Response:
        return web.json_response({
            'status': 'online',
            'bot': BOT_NAME,
            'environment': self.config.environment,
            'uptime': self.uptime,
            'timestamp': datetime.now(timezone.utc).isoformat(),
        })

    async def health(self, request: web.Request) -> web.Response:
        ready = self.bot.is_ready()
        keep_alive_ok = self.keep_alive.is_healthy() or not self.keep_alive.url
        return web.json_response({
            'status': 'healthy' if ready and keep_alive_ok else 'degraded',
            'discord': 'connected' if ready else 'disconnected',
            'database': 'connected' if self.storage.is_connected else 'disconnected',
            'keepAlive': self.keep_alive.get_stats(),
            'environment': self.config.environment,
            # ru_maxrss is in kilobytes on Linux
            'memory': {'maxRssKb': resource.getrusage(resource.RUSAGE_SELF).ru_maxrss},
            'uptime': self.uptime,
        })

    async def stats(self, request: web.Request) -> web.Response:
        if not self.bot.is_ready():
            return web.json_response({'error': 'Bot not ready'}, status=503)

        return web.json_response({
            'guilds': len(self.bot.guilds),
            'users': len(self.bot.users),
            'ping': round(self.bot.latency * 1000),
            'commands': len(self.bot.tree.get_commands()),
            'authorizedUsers': len(self.config.authorized_users),
            'uptime': self.uptime,
            'keepAlive': self.keep_alive.get_stats(),
        })

    async def ping(self, request: web.Request) -> web.Response:
        if not self.keep_alive.url:
            return web.json_response({'error': 'Keep-alive not configured'}, status=503)

        success = await self.keep_alive.ping()
        return web.json_response({
            'success': success,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'stats': self.keep_alive.get_stats(),
        })
