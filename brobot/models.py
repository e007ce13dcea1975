"""
Data models shared by the persistence layer, the news pipeline and the commands.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


WORK_TYPES = {
    'film': '🎬 Film',
    'serie': '📺 Série',
    'manga': '🗾 Manga',
    'comics': '📚 Comics',
    'roman': '📖 Roman',
    'livre': '📕 Livre',
    'anime': '🍜 Anime',
    'jeu': '🎮 Jeu vidéo',
}


class NewsCategory(str, Enum):
    SPORTS = "sports"
    GAMING = "gaming"
    FILMS = "films"
    SERIES = "series"
    WWE = "wwe"
    LECTURES = "lectures"


NEWS_CATEGORIES = {
    NewsCategory.SPORTS: '⚽ Sports',
    NewsCategory.GAMING: '🎮 Gaming',
    NewsCategory.FILMS: '🎬 Films',
    NewsCategory.SERIES: '📺 Séries',
    NewsCategory.WWE: '🤼 WWE',
    NewsCategory.LECTURES: '📚 Lectures',
}


@dataclass
class User:
    id: int
    discord_id: str
    username: str
    created_at: datetime


@dataclass
class ReviewData:
    """Validated form input, before it is attached to a user."""
    title: str
    type: str
    rating: int
    comment: str


@dataclass
class Review:
    id: int
    user_id: int
    title: str
    type: str
    rating: int
    comment: str
    created_at: datetime


@dataclass
class NewsItem:
    """A news story as produced by a provider."""
    external_id: str
    title: str
    description: str
    url: str
    published_at: datetime
    source: str
    category: NewsCategory
    image_url: Optional[str] = None
    author: Optional[str] = None


@dataclass
class NewsChannelConfig:
    channel_id: str
    categories: List[NewsCategory] = field(default_factory=list)
    create_threads: bool = False
    add_reactions: bool = True
    max_per_hour: int = 3
    enabled: bool = True
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
