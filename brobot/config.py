# Configuration loader
import logging
import os
import re
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple
from urllib.parse import urlparse

from dotenv import load_dotenv

from brobot.errors import ConfigError

load_dotenv()

logger = logging.getLogger(__name__)

ENVIRONMENTS = ('development', 'production')
DEFAULT_PORT = 3000
TRUTHY = ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class Config:
    discord_token: str
    client_id: str
    database_url: str
    authorized_users: Tuple[str, ...] = ()
    port: int = DEFAULT_PORT
    render_url: Optional[str] = None
    environment: str = 'development'
    news_dry_run: bool = False
    log_level: Optional[str] = None

    @property
    def is_production(self) -> bool:
        return self.environment == 'production'

    @property
    def is_development(self) -> bool:
        return self.environment == 'development'

    @property
    def logging_level(self) -> int:
        if self.log_level:
            return logging.getLevelName(self.log_level.upper())
        return logging.INFO if self.is_production else logging.DEBUG


def _get(environ: Mapping[str, str], key: str) -> Optional[str]:
    value = environ.get(key)
    if value is None or value.strip() == '':
        return None
    return value.strip()


def _require(environ: Mapping[str, str], key: str) -> str:
    value = _get(environ, key)
    if value is None:
        raise ConfigError(f"Missing required environment variable: {key}")
    return value


def parse_authorized_users(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        logger.warning("No authorized users configured. Bot will be accessible to no one.")
        return ()

    users = [user_id.strip() for user_id in raw.split(',') if user_id.strip()]
    if not users:
        logger.warning("No valid authorized users found.")

    invalid = [user_id for user_id in users if not user_id.isdigit()]
    if invalid:
        raise ConfigError(f"Invalid Discord IDs in AUTHORIZED_USERS: {', '.join(invalid)}")

    return tuple(users)


def parse_port(raw: Optional[str]) -> int:
    raw = raw or str(DEFAULT_PORT)
    try:
        port = int(raw)
    except ValueError:
        port = 0
    if port < 1 or port > 65535:
        raise ConfigError(f"Invalid PORT value: {raw}. Must be a number between 1 and 65535.")
    return port


def parse_environment(raw: Optional[str]) -> str:
    env = (raw or 'development').lower()
    if env not in ENVIRONMENTS:
        logger.warning(f"Invalid ENVIRONMENT: {raw}. Defaulting to 'development'.")
        return 'development'
    return env


def validate_url(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    parsed = urlparse(raw)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise ConfigError(f"Invalid RENDER_URL format: {raw}")
    return raw


def normalize_database_url(url: str) -> str:
    """Points plain PostgreSQL / SQLite URLs at their asyncio drivers."""
    url = re.sub(r'^postgres(ql)?://', 'postgresql+asyncpg://', url)
    url = re.sub(r'^sqlite://', 'sqlite+aiosqlite://', url)
    return url


def load_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    """Builds and validates the process configuration, raising ConfigError on bad input."""
    if environ is None:
        environ = os.environ

    client_id = _require(environ, 'CLIENT_ID')
    if not client_id.isdigit():
        raise ConfigError(f"Invalid CLIENT_ID: {client_id}")

    log_level = _get(environ, 'LOG_LEVEL')
    if log_level and not isinstance(logging.getLevelName(log_level.upper()), int):
        raise ConfigError(f"Invalid LOG_LEVEL: {log_level}")

    config = Config(
        discord_token=_require(environ, 'DISCORD_TOKEN'),
        client_id=client_id,
        database_url=normalize_database_url(_require(environ, 'DATABASE_URL')),
        authorized_users=parse_authorized_users(_get(environ, 'AUTHORIZED_USERS')),
        port=parse_port(_get(environ, 'PORT')),
        render_url=validate_url(_get(environ, 'RENDER_URL')),
        environment=parse_environment(_get(environ, 'ENVIRONMENT')),
        news_dry_run=(_get(environ, 'NEWS_DRY_RUN') or '').lower() in TRUTHY,
        log_level=log_level,
    )

    logger.info(
        f"Configuration loaded: environment={config.environment} port={config.port} "
        f"authorized_users={len(config.authorized_users)} "
        f"keep_alive={'configured' if config.render_url else 'not configured'}"
        f"{' dry_run=on' if config.news_dry_run else ''}"
    )
    return config
