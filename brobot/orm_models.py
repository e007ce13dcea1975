"""
SQLAlchemy ORM models.

These models are internal to the storage layer. The public interface uses the
dataclasses from brobot.models; timestamps are stored as UTC epoch seconds.
"""

import json
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from brobot.models import NewsCategory, NewsChannelConfig, NewsItem, Review, User


class JSONEncodedList(TypeDecorator):
    """Represents a list as a JSON-encoded string."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Optional[List], dialect) -> Optional[str]:
        if value is None:
            return None
        return json.dumps(value)

    def process_result_value(self, value: Optional[str], dialect) -> List:
        if value is None:
            return []
        return json.loads(value)


class Base(DeclarativeBase):
    pass


class UserORM(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    discord_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    username: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[float] = mapped_column(Float, nullable=False)


class ReviewORM(Base):
    __tablename__ = "reviews"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[float] = mapped_column(Float, nullable=False)

    __table_args__ = (
        Index("idx_reviews_user_created", "user_id", "created_at"),
    )


class NewsChannelConfigORM(Base):
    __tablename__ = "news_channel_configs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    categories: Mapped[List[str]] = mapped_column(JSONEncodedList, nullable=False)
    create_threads: Mapped[bool] = mapped_column(Boolean, default=False)
    add_reactions: Mapped[bool] = mapped_column(Boolean, default=True)
    max_per_hour: Mapped[int] = mapped_column(Integer, default=3)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[float] = mapped_column(Float, nullable=False)
    updated_at: Mapped[float] = mapped_column(Float, nullable=False)


class NewsItemORM(Base):
    """One delivered (or dry-run) news item for one channel."""

    __tablename__ = "news_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    url: Mapped[str] = mapped_column(Text, nullable=False)
    published_at: Mapped[float] = mapped_column(Float, nullable=False)
    source: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(16), nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    author: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    channel_id: Mapped[str] = mapped_column(String(32), nullable=False)
    message_id: Mapped[str] = mapped_column(String(32), nullable=False)
    thread_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    sent_at: Mapped[float] = mapped_column(Float, nullable=False)

    __table_args__ = (
        UniqueConstraint("external_id", "channel_id", name="uq_news_external_channel"),
        Index("idx_news_channel_sent_at", "channel_id", "sent_at"),
    )


def to_epoch(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def from_epoch(value: float) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


# Conversion functions between ORM models and dataclasses


def user_orm_to_dataclass(orm: UserORM) -> User:
    return User(
        id=orm.id,
        discord_id=orm.discord_id,
        username=orm.username,
        created_at=from_epoch(orm.created_at),
    )


def review_orm_to_dataclass(orm: ReviewORM) -> Review:
    return Review(
        id=orm.id,
        user_id=orm.user_id,
        title=orm.title,
        type=orm.type,
        rating=orm.rating,
        comment=orm.comment,
        created_at=from_epoch(orm.created_at),
    )


def config_orm_to_dataclass(orm: NewsChannelConfigORM) -> NewsChannelConfig:
    """Unknown category values left in the table are dropped."""
    categories = [NewsCategory(c) for c in orm.categories if c in NewsCategory._value2member_map_]
    return NewsChannelConfig(
        id=orm.id,
        channel_id=orm.channel_id,
        categories=categories,
        create_threads=orm.create_threads,
        add_reactions=orm.add_reactions,
        max_per_hour=orm.max_per_hour,
        enabled=orm.enabled,
        created_at=from_epoch(orm.created_at),
        updated_at=from_epoch(orm.updated_at),
    )


def news_item_to_orm(
    item: NewsItem,
    channel_id: str,
    message_id: str,
    thread_id: Optional[str],
    sent_at: float,
) -> NewsItemORM:
    return NewsItemORM(
        external_id=item.external_id,
        title=item.title,
        description=item.description or "",
        url=item.url,
        published_at=to_epoch(item.published_at),
        source=item.source,
        category=NewsCategory(item.category).value,
        image_url=item.image_url,
        author=item.author,
        channel_id=channel_id,
        message_id=message_id,
        thread_id=thread_id,
        sent_at=sent_at,
    )
