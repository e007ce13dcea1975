import pytest
import pytest_asyncio

from brobot.config import Config
from brobot.storage import Storage
from tests.helpers import AUTHORIZED_USERS, make_interaction


@pytest_asyncio.fixture
async def storage(tmp_path):
    """Storage backed by a temporary SQLite file."""
    db = Storage(f"sqlite:///{tmp_path / 'brobot_test.db'}")
    await db.connect()
    yield db
    await db.disconnect()


@pytest.fixture
def config():
    return Config(
        discord_token="token",
        client_id="123456789012345678",
        database_url="sqlite+aiosqlite:///:memory:",
        authorized_users=AUTHORIZED_USERS,
        port=3000,
    )


@pytest.fixture
def interaction():
    return make_interaction()
