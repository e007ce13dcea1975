"""
Persistence service.

Thin async wrapper over SQLAlchemy. Every operation opens its own session;
SQLAlchemy failures are logged with the operation context and re-raised as
DatabaseError so store-specific error shapes never reach callers.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, List, Optional, Set

from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from brobot.config import normalize_database_url
from brobot.errors import ConfigAlreadyExistsError, DatabaseError
from brobot.models import NewsCategory, NewsChannelConfig, NewsItem, Review, ReviewData, User
from brobot.orm_models import (
    Base,
    NewsChannelConfigORM,
    NewsItemORM,
    ReviewORM,
    UserORM,
    config_orm_to_dataclass,
    news_item_to_orm,
    review_orm_to_dataclass,
    user_orm_to_dataclass,
)

logger = logging.getLogger(__name__)

MAX_LISTED_REVIEWS = 10
HOUR_SECONDS = 60 * 60
DEFAULT_RETENTION_DAYS = 30

CONFIG_FIELDS = ('categories', 'create_threads', 'add_reactions', 'max_per_hour', 'enabled')


class Storage:
    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = normalize_database_url(database_url)
        self.echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    async def connect(self) -> None:
        """Creates the engine and the schema (idempotent), then checks the connection."""
        try:
            self._engine = create_async_engine(self.database_url, echo=self.echo)
            self._session_factory = async_sessionmaker(
                self._engine, class_=AsyncSession, expire_on_commit=False
            )
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
                await conn.execute(text("SELECT 1"))
            logger.info("Database connected successfully")
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to connect to database: {e}")
            self._engine = None
            self._session_factory = None
            raise DatabaseError("Impossible de se connecter à la base de données") from e

    async def disconnect(self) -> None:
        if self._engine is None:
            return
        try:
            await self._engine.dispose()
            logger.info("Database disconnected")
        finally:
            self._engine = None
            self._session_factory = None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Session context manager; commits on successful exit, rolls back on error."""
        if self._session_factory is None:
            raise DatabaseError("Base de données non connectée")

        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # Users and reviews

    async def find_or_create_user(self, discord_id: str, username: str) -> User:
        try:
            async with self.session() as session:
                stmt = select(UserORM).where(UserORM.discord_id == discord_id)
                orm = (await session.execute(stmt)).scalar_one_or_none()
                if orm is None:
                    orm = UserORM(discord_id=discord_id, username=username, created_at=time.time())
                    session.add(orm)
                else:
                    orm.username = username
                await session.flush()
                return user_orm_to_dataclass(orm)
        except SQLAlchemyError as e:
            logger.error(f"Failed to find or create user (discord_id={discord_id}, username={username}): {e}")
            raise DatabaseError("Erreur lors de la création/récupération de l'utilisateur") from e

    async def create_review(self, user_id: int, review_data: ReviewData) -> Review:
        try:
            async with self.session() as session:
                orm = ReviewORM(
                    user_id=user_id,
                    title=review_data.title,
                    type=review_data.type,
                    rating=review_data.rating,
                    comment=review_data.comment,
                    created_at=time.time(),
                )
                session.add(orm)
                await session.flush()
                return review_orm_to_dataclass(orm)
        except SQLAlchemyError as e:
            logger.error(f"Failed to create review (user_id={user_id}, title={review_data.title!r}): {e}")
            raise DatabaseError("Erreur lors de la création de la review") from e

    async def get_user_reviews(self, user_id: int) -> List[Review]:
        """Most recent first, at most ten."""
        try:
            async with self.session() as session:
                stmt = (
                    select(ReviewORM)
                    .where(ReviewORM.user_id == user_id)
                    .order_by(ReviewORM.created_at.desc(), ReviewORM.id.desc())
                    .limit(MAX_LISTED_REVIEWS)
                )
                orms = (await session.execute(stmt)).scalars().all()
                return [review_orm_to_dataclass(orm) for orm in orms]
        except SQLAlchemyError as e:
            logger.error(f"Failed to get user reviews (user_id={user_id}): {e}")
            raise DatabaseError("Erreur lors de la récupération des reviews") from e

    # News channel configuration

    async def create_news_channel_config(self, config: NewsChannelConfig) -> NewsChannelConfig:
        """Raises ConfigAlreadyExistsError, without writing, if the channel already has one."""
        try:
            async with self.session() as session:
                stmt = select(NewsChannelConfigORM.id).where(
                    NewsChannelConfigORM.channel_id == config.channel_id
                )
                if (await session.execute(stmt)).first() is not None:
                    raise ConfigAlreadyExistsError(config.channel_id)

                now = time.time()
                orm = NewsChannelConfigORM(
                    channel_id=config.channel_id,
                    categories=[NewsCategory(c).value for c in config.categories],
                    create_threads=config.create_threads,
                    add_reactions=config.add_reactions,
                    max_per_hour=config.max_per_hour,
                    enabled=config.enabled,
                    created_at=now,
                    updated_at=now,
                )
                session.add(orm)
                await session.flush()
                return config_orm_to_dataclass(orm)
        except IntegrityError as e:
            # lost a race against another insert for the same channel
            raise ConfigAlreadyExistsError(config.channel_id) from e
        except SQLAlchemyError as e:
            logger.error(f"Failed to create news channel config (channel_id={config.channel_id}): {e}")
            raise DatabaseError("Erreur lors de la création de la configuration") from e

    async def get_news_channel_config(self, channel_id: str) -> Optional[NewsChannelConfig]:
        try:
            async with self.session() as session:
                stmt = select(NewsChannelConfigORM).where(NewsChannelConfigORM.channel_id == channel_id)
                orm = (await session.execute(stmt)).scalar_one_or_none()
                return config_orm_to_dataclass(orm) if orm is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to get news channel config (channel_id={channel_id}): {e}")
            raise DatabaseError("Erreur lors de la récupération de la configuration") from e

    async def update_news_channel_config(self, channel_id: str, **updates) -> Optional[NewsChannelConfig]:
        """Applies the given fields; returns None when the channel has no configuration."""
        unknown = set(updates) - set(CONFIG_FIELDS)
        if unknown:
            raise ValueError(f"Unknown config fields: {', '.join(sorted(unknown))}")

        try:
            async with self.session() as session:
                stmt = select(NewsChannelConfigORM).where(NewsChannelConfigORM.channel_id == channel_id)
                orm = (await session.execute(stmt)).scalar_one_or_none()
                if orm is None:
                    return None
                for key, value in updates.items():
                    if key == 'categories':
                        value = [NewsCategory(c).value for c in value]
                    setattr(orm, key, value)
                orm.updated_at = time.time()
                await session.flush()
                return config_orm_to_dataclass(orm)
        except SQLAlchemyError as e:
            logger.error(f"Failed to update news channel config (channel_id={channel_id}, updates={updates}): {e}")
            raise DatabaseError("Erreur lors de la mise à jour de la configuration") from e

    async def delete_news_channel_config(self, channel_id: str) -> bool:
        try:
            async with self.session() as session:
                stmt = delete(NewsChannelConfigORM).where(NewsChannelConfigORM.channel_id == channel_id)
                result = await session.execute(stmt)
                return result.rowcount > 0
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete news channel config (channel_id={channel_id}): {e}")
            raise DatabaseError("Erreur lors de la suppression de la configuration") from e

    async def get_enabled_news_configs(self) -> List[NewsChannelConfig]:
        return await self.list_news_configs(enabled_only=True)

    async def list_news_configs(self, enabled_only: bool = False) -> List[NewsChannelConfig]:
        try:
            async with self.session() as session:
                stmt = select(NewsChannelConfigORM).order_by(NewsChannelConfigORM.id)
                if enabled_only:
                    stmt = stmt.where(NewsChannelConfigORM.enabled.is_(True))
                orms = (await session.execute(stmt)).scalars().all()
                return [config_orm_to_dataclass(orm) for orm in orms]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list news channel configs (enabled_only={enabled_only}): {e}")
            raise DatabaseError("Erreur lors de la récupération des configurations") from e

    # Sent news

    async def save_news_item(
        self,
        item: NewsItem,
        channel_id: str,
        message_id: str,
        thread_id: Optional[str] = None,
        sent_at: Optional[float] = None,
    ) -> int:
        try:
            async with self.session() as session:
                orm = news_item_to_orm(
                    item, channel_id, message_id, thread_id,
                    sent_at if sent_at is not None else time.time(),
                )
                session.add(orm)
                await session.flush()
                return orm.id
        except SQLAlchemyError as e:
            logger.error(f"Failed to save news item (external_id={item.external_id}, channel_id={channel_id}): {e}")
            raise DatabaseError("Erreur lors de l'enregistrement de la news") from e

    async def get_already_sent_news_ids(self, external_ids: Iterable[str], channel_id: str) -> Set[str]:
        external_ids = list(external_ids)
        if not external_ids:
            return set()
        try:
            async with self.session() as session:
                stmt = select(NewsItemORM.external_id).where(
                    NewsItemORM.channel_id == channel_id,
                    NewsItemORM.external_id.in_(external_ids),
                )
                return set((await session.execute(stmt)).scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Failed to get already sent news ids (channel_id={channel_id}): {e}")
            raise DatabaseError("Erreur lors de la vérification des news envoyées") from e

    async def get_news_count_in_last_hour(self, channel_id: str, now: Optional[float] = None) -> int:
        """Counts deliveries to the channel in the trailing 60 minutes."""
        since = (now if now is not None else time.time()) - HOUR_SECONDS
        try:
            async with self.session() as session:
                stmt = select(func.count(NewsItemORM.id)).where(
                    NewsItemORM.channel_id == channel_id,
                    NewsItemORM.sent_at >= since,
                )
                return (await session.execute(stmt)).scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Failed to count recent news (channel_id={channel_id}): {e}")
            raise DatabaseError("Erreur lors du comptage des news envoyées") from e

    async def cleanup_old_news(self, days: int = DEFAULT_RETENTION_DAYS, now: Optional[float] = None) -> int:
        cutoff = (now if now is not None else time.time()) - days * 24 * HOUR_SECONDS
        try:
            async with self.session() as session:
                result = await session.execute(delete(NewsItemORM).where(NewsItemORM.sent_at < cutoff))
                deleted = result.rowcount
            if deleted:
                logger.info(f"Removed {deleted} news records older than {days} days")
            return deleted
        except SQLAlchemyError as e:
            logger.error(f"Failed to clean up old news (days={days}): {e}")
            raise DatabaseError("Erreur lors du nettoyage des news") from e
