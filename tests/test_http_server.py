"""Tests for the status HTTP endpoints."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from aiohttp import test_utils

from brobot.http_server import HttpServer
from brobot.keep_alive import KeepAliveService


def make_bot(ready=True):
    bot = MagicMock()
    bot.is_ready = MagicMock(return_value=ready)
    bot.guilds = [MagicMock(), MagicMock()]
    bot.users = [MagicMock(), MagicMock(), MagicMock()]
    bot.latency = 0.042
    bot.tree.get_commands = MagicMock(return_value=[MagicMock(), MagicMock(), MagicMock()])
    return bot


@pytest.fixture
def bot():
    return make_bot()


@pytest.fixture
def keep_alive():
    return KeepAliveService(None)


@pytest_asyncio.fixture
async def client(bot, config, keep_alive):
    storage = MagicMock(is_connected=True)
    server = HttpServer(bot, config, keep_alive, storage)
    async with test_utils.TestClient(test_utils.TestServer(server.app)) as test_client:
        yield test_client


class TestIndex:
    async def test_online(self, client):
        resp = await client.get('/')
        assert resp.status == 200
        body = await resp.json()
        assert body['status'] == 'online'
        assert body['bot'] == 'BroBot'
        assert body['environment'] == 'development'
        assert body['uptime'] >= 0
        assert 'timestamp' in body


class TestHealth:
    async def test_healthy_without_keep_alive(self, client):
        body = await (await client.get('/health')).json()
        assert body['status'] == 'healthy'
        assert body['discord'] == 'connected'
        assert body['database'] == 'connected'
        assert body['keepAlive']['isActive'] is False
        assert body['memory']['maxRssKb'] > 0

    async def test_degraded_when_discord_down(self, client, bot):
        bot.is_ready.return_value = False
        body = await (await client.get('/health')).json()
        assert body['status'] == 'degraded'
        assert body['discord'] == 'disconnected'


class TestStats:
    async def test_not_ready(self, client, bot):
        bot.is_ready.return_value = False
        resp = await client.get('/stats')
        assert resp.status == 503
        assert await resp.json() == {'error': 'Bot not ready'}

    async def test_counts(self, client):
        body = await (await client.get('/stats')).json()
        assert body['guilds'] == 2
        assert body['users'] == 3
        assert body['ping'] == 42
        assert body['commands'] == 3
        assert body['authorizedUsers'] == 1


class TestPing:
    async def test_not_configured(self, client):
        resp = await client.get('/ping')
        assert resp.status == 503

    async def test_manual_ping(self, client, keep_alive):
        keep_alive.url = "https://brobot.onrender.com"
        with patch.object(keep_alive, "_request", new=AsyncMock(return_value=MagicMock(status=200))):
            resp = await client.get('/ping')
        body = await resp.json()
        assert resp.status == 200
        assert body['success'] is True
        assert body['stats']['totalPings'] == 1
