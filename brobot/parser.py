# Fetch and parse RSS news feeds per category using aiohttp + BeautifulSoup
import asyncio
import base64
import hashlib
import logging
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Dict, List, Optional

import aiohttp
from bs4 import BeautifulSoup
from deep_translator import GoogleTranslator

from brobot.models import NewsCategory, NewsItem

logger = logging.getLogger(__name__)

USER_AGENT = 'BroBot/1.0'
FETCH_TIMEOUT_SECONDS = 10
MAX_AGE_HOURS = 72
MIN_DESCRIPTION_LENGTH = 30
DEFAULT_SOURCE = 'RSS Feed'


@dataclass(frozen=True)
class Feed:
    url: str
    language: str = 'fr'


FEEDS: Dict[NewsCategory, List[Feed]] = {
    NewsCategory.SPORTS: [
        Feed('https://rmcsport.bfmtv.com/rss/football/'),
    ],
    NewsCategory.GAMING: [
        Feed('https://www.gamekult.com/feed.xml'),
    ],
    NewsCategory.FILMS: [
        Feed('https://www.allocine.fr/rss/news-cine.xml'),
    ],
    NewsCategory.SERIES: [
        Feed('https://www.allocine.fr/rss/news-series.xml'),
    ],
    NewsCategory.WWE: [
        Feed('https://www.catch-arena.com/rss.xml'),
        Feed('https://www.wwe.com/feeds/page/rss.xml', language='en'),
    ],
    NewsCategory.LECTURES: [
        Feed('https://www.livreshebdo.fr/rss.xml'),
        Feed('https://www.babelio.com/rss/critiques'),
        Feed('https://actualitte.com/rss'),
    ],
}

# Checked in order, first substring found in the feed URL wins
SOURCE_NAMES = [
    ('lequipe.fr', "L'Équipe"),
    ('rmcsport', 'RMC Sport'),
    ('eurosport', 'Eurosport'),
    ('gamekult', 'Gamekult'),
    ('jeuxvideo.com', 'JeuxVideo.com'),
    ('allocine', 'AlloCiné'),
    ('premiere', 'Première'),
    ('catch-arena', 'Catch Arena'),
    ('wwe.com', 'WWE'),
    ('actualitte', 'ActuaLitté'),
    ('babelio', 'Babelio'),
    ('livreshebdo', 'Livres Hebdo'),
]

_ITEM_RE = re.compile(r'<item\b[^>]*>(.*?)</item>', re.I | re.S)
_CDATA_RE = re.compile(r'^\s*<!\[CDATA\[(.*?)\]\]>\s*$', re.S)
_IMAGE_RES = [
    re.compile(r'<enclosure[^>]*url="([^"]*)"[^>]*type="image', re.I),
    re.compile(r'<enclosure[^>]*type="image[^"]*"[^>]*url="([^"]*)"', re.I),
    re.compile(r'<media:thumbnail[^>]*url="([^"]*)"', re.I),
    re.compile(r'<img[^>]*src="([^"]*)"', re.I),
]


def _tag_re(tag: str) -> re.Pattern:
    return re.compile(rf'<{tag}\b[^>]*>(.*?)</{tag}>', re.I | re.S)


_FIELD_RES = {field: _tag_re(field) for field in ('title', 'description', 'link', 'pubDate')}


def clean_text(text: str) -> str:
    """Strips HTML tags, un-escapes entities and collapses whitespace."""
    text = BeautifulSoup(text, 'html.parser').get_text()
    return re.sub(r'\s+', ' ', text).strip()


def _field(item_xml: str, field: str) -> Optional[str]:
    match = _FIELD_RES[field].search(item_xml)
    if not match:
        return None
    value = match.group(1)
    cdata = _CDATA_RE.match(value)
    return cdata.group(1) if cdata else value


def parse_rss_items(xml: str) -> List[Dict[str, Optional[str]]]:
    """
    Pulls <item> blocks out of a feed body with regular expressions.

    Returns dicts with title, description, link, pub_date and image keys. Items
    without a title, link or publication date are skipped.
    """
    items = []
    for item_xml in _ITEM_RE.findall(xml):
        title = _field(item_xml, 'title')
        description = _field(item_xml, 'description')
        link = _field(item_xml, 'link')
        pub_date = _field(item_xml, 'pubDate')

        image = None
        for image_re in _IMAGE_RES:
            match = image_re.search(item_xml)
            if match:
                image = match.group(1)
                break

        item = {
            'title': clean_text(title) if title else None,
            'description': clean_text(description) if description else '',
            'link': link.strip() if link else None,
            'pub_date': pub_date.strip() if pub_date else None,
            'image': image,
        }
        if item['title'] and item['link'] and item['pub_date']:
            items.append(item)
    return items


def parse_pub_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        published = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if published is None:
        return None
    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    return published


def is_valid_item(item: Dict[str, Optional[str]], now: Optional[datetime] = None) -> bool:
    if not item.get('title') or not item.get('link'):
        return False

    published = parse_pub_date(item.get('pub_date'))
    if published is None:
        return False
    now = now or datetime.now(timezone.utc)
    if now - published > timedelta(hours=MAX_AGE_HOURS):
        return False

    return len(item.get('description') or '') >= MIN_DESCRIPTION_LENGTH


def source_name(feed_url: str) -> str:
    for fragment, name in SOURCE_NAMES:
        if fragment in feed_url:
            return name
    return DEFAULT_SOURCE


def make_external_id(link: str) -> str:
    digest = hashlib.sha256(link.encode('utf-8')).digest()
    return 'rss_' + base64.urlsafe_b64encode(digest).decode('ascii')[:20]


def to_news_item(item: Dict[str, Optional[str]], category: NewsCategory, feed_url: str) -> NewsItem:
    return NewsItem(
        external_id=make_external_id(item['link']),
        title=item['title'],
        description=item.get('description') or '',
        url=item['link'],
        published_at=parse_pub_date(item['pub_date']),
        source=source_name(feed_url),
        category=category,
        image_url=item.get('image'),
    )


def translate_to_fr(text: str, source: str = 'auto') -> str:
    """Translates text to French with Google Translator; returns it unchanged on failure."""
    if not text:
        return text
    try:
        return GoogleTranslator(source=source, target='fr').translate(text) or text
    except Exception as e:
        logger.warning(f"Translation failed: {e}")
        return text


async def fetch_feed(session: aiohttp.ClientSession, url: str) -> str:
    async with session.get(url) as resp:
        resp.raise_for_status()
        return await resp.text()


class NewsProvider(ABC):
    """Source of news items for a category."""

    name = 'provider'

    @abstractmethod
    async def get_news(self, category: NewsCategory, limit: int = 5) -> List[NewsItem]:
        raise NotImplementedError


class RSSProvider(NewsProvider):
    name = 'RSS French'

    def __init__(self, feeds: Optional[Dict[NewsCategory, List[Feed]]] = None, translate: bool = True):
        self.feeds = feeds if feeds is not None else FEEDS
        self.translate = translate

    async def get_news(self, category: NewsCategory, limit: int = 5) -> List[NewsItem]:
        """Merges every feed of the category, newest first, capped to limit."""
        feeds = self.feeds.get(category) or []
        if not feeds or limit <= 0:
            return []

        per_feed = math.ceil(limit / len(feeds))
        all_news: List[NewsItem] = []

        timeout = aiohttp.ClientTimeout(total=FETCH_TIMEOUT_SECONDS)
        headers = {
            'User-Agent': USER_AGENT,
            'Accept': 'application/rss+xml, application/xml, text/xml',
        }
        async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
            for feed in feeds:
                all_news.extend(await self.fetch_from_feed(session, feed, category, per_feed))

        all_news.sort(key=lambda n: n.published_at, reverse=True)
        return all_news[:limit]

    async def fetch_from_feed(
        self,
        session: aiohttp.ClientSession,
        feed: Feed,
        category: NewsCategory,
        limit: int,
    ) -> List[NewsItem]:
        try:
            xml = await fetch_feed(session, feed.url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Failed to fetch RSS feed {feed.url}: {e!r}")
            return []

        items = [item for item in parse_rss_items(xml) if is_valid_item(item)][:limit]
        news = [to_news_item(item, category, feed.url) for item in items]

        if self.translate and feed.language != 'fr':
            for item in news:
                item.title = await asyncio.to_thread(translate_to_fr, item.title, feed.language)
                item.description = await asyncio.to_thread(translate_to_fr, item.description, feed.language)

        logger.debug(f"Fetched {len(news)} items from {feed.url} ({category.value})")
        return news
