"""
News distribution.

A discord.ext.tasks loop ticks every five minutes: for each enabled channel
configuration it recomputes the trailing-hour send count, pulls fresh items
per subscribed category from the provider, drops the ones already delivered to
that channel, posts the rest (optionally with a thread and seed reactions) and
records every delivery.

The cap check is read-then-write without isolation; this relies on a single
process running a single loop.

A send that times out is treated as failed and is not recorded, although
Discord may already have accepted the message; that item can then be posted
again on a later tick.
"""

import asyncio
import logging
from typing import Iterable, List, Optional

import discord
from discord.ext import tasks

from brobot.errors import DatabaseError
from brobot.models import NEWS_CATEGORIES, NewsCategory, NewsChannelConfig, NewsItem
from brobot.parser import NewsProvider
from brobot.storage import DEFAULT_RETENTION_DAYS, Storage
from brobot.validation import truncate

logger = logging.getLogger(__name__)

CHECK_INTERVAL_MINUTES = 5
NEWS_PER_CATEGORY = 1
SEND_DELAY_SECONDS = 2
SEND_TIMEOUT_SECONDS = 15
THREAD_AUTO_ARCHIVE_MINUTES = 1440
THREAD_NAME_LENGTH = 80
DESCRIPTION_LENGTH = 300
REACTIONS = ('👍', '👎')
DRY_RUN_MESSAGE_ID = 'dry-run-message-id'
DRY_RUN_THREAD_ID = 'dry-run-thread-id'

CATEGORY_COLORS = {
    NewsCategory.SPORTS: 0x00FF00,
    NewsCategory.GAMING: 0x9966CC,
    NewsCategory.FILMS: 0xFF6B6B,
    NewsCategory.SERIES: 0x4ECDC4,
    NewsCategory.WWE: 0xFFD93D,
    NewsCategory.LECTURES: 0x6C5CE7,
}
DEFAULT_COLOR = 0x0099FF


def create_news_embed(item: NewsItem) -> discord.Embed:
    embed = discord.Embed(
        title=truncate(item.title, 253),
        url=item.url,
        color=CATEGORY_COLORS.get(item.category, DEFAULT_COLOR),
        timestamp=item.published_at,
    )
    if item.description:
        embed.description = truncate(item.description, DESCRIPTION_LENGTH)
    if item.image_url:
        embed.set_image(url=item.image_url)
    if item.author:
        embed.set_author(name=item.author)
    embed.set_footer(text=f"📰 {item.source}")
    return embed


class NewsService:
    def __init__(
        self,
        bot: discord.Client,
        storage: Storage,
        provider: NewsProvider,
        dry_run: bool = False,
        send_delay: float = SEND_DELAY_SECONDS,
    ):
        self.bot = bot
        self.storage = storage
        self.provider = provider
        self.dry_run = dry_run
        self.send_delay = send_delay

    def start(self):
        if self.news_loop.is_running():
            logger.warning("News service already running")
            return
        logger.info(f"Starting news service{' (dry run)' if self.dry_run else ''}")
        self.news_loop.start()
        self.cleanup_loop.start()

    def stop(self):
        if self.news_loop.is_running() or self.cleanup_loop.is_running():
            self.news_loop.cancel()
            self.cleanup_loop.cancel()
            logger.info("News service stopped")

    @property
    def is_running(self) -> bool:
        return self.news_loop.is_running()

    @tasks.loop(minutes=CHECK_INTERVAL_MINUTES)
    async def news_loop(self):
        await self.check_and_send_news()

    @news_loop.before_loop
    async def before_news_loop(self):
        await self.bot.wait_until_ready()
        # first tick after a restart waits one full period
        await asyncio.sleep(CHECK_INTERVAL_MINUTES * 60)

    @tasks.loop(hours=24)
    async def cleanup_loop(self):
        try:
            await self.storage.cleanup_old_news(DEFAULT_RETENTION_DAYS)
        except DatabaseError as e:
            logger.error(f"News cleanup failed: {e}")

    @cleanup_loop.before_loop
    async def before_cleanup_loop(self):
        await self.bot.wait_until_ready()

    async def check_and_send_news(self) -> int:
        """One tick over every enabled configuration. Returns the number of items delivered."""
        try:
            configs = await self.storage.get_enabled_news_configs()
        except DatabaseError as e:
            logger.error(f"Error checking news: {e}")
            return 0

        total = 0
        for config in configs:
            total += await self.process_config_news(config)
        return total

    async def process_config_news(self, config: NewsChannelConfig) -> int:
        try:
            channel = await self.resolve_channel(config.channel_id)
            if channel is None:
                logger.warning(f"Channel {config.channel_id} not found")
                return 0

            sent_in_last_hour = await self.storage.get_news_count_in_last_hour(config.channel_id)
            remaining = config.max_per_hour - sent_in_last_hour
            if remaining <= 0:
                logger.debug(f"Rate limit reached for channel {config.channel_id} ({sent_in_last_hour}/{config.max_per_hour})")
                return 0

            sent = 0
            for category in config.categories:
                if remaining <= 0:
                    break
                count = await self.process_category_news(
                    category, config, channel, min(NEWS_PER_CATEGORY, remaining)
                )
                sent += count
                remaining -= count
            return sent
        except Exception:
            logger.exception(f"Error processing news for channel {config.channel_id}")
            return 0

    async def process_category_news(
        self,
        category: NewsCategory,
        config: NewsChannelConfig,
        channel,
        max_news: int,
    ) -> int:
        logger.debug(f"Fetching news for category {category.value}")
        news = await self.provider.get_news(category, max_news * 2)
        fresh = await self.filter_already_sent_news(news, config.channel_id)
        if not fresh:
            logger.debug(f"No new news found for {category.value}")
            return 0

        sent = 0
        for index, item in enumerate(fresh[:max_news]):
            if index and self.send_delay:
                await asyncio.sleep(self.send_delay)
            if await self.send_news_to_channel(item, config, channel):
                sent += 1

        if sent:
            logger.info(f"Sent {sent} news items for {category.value} to {config.channel_id}")
        return sent

    async def filter_already_sent_news(self, news: Iterable[NewsItem], channel_id: str) -> List[NewsItem]:
        news = list(news)
        already_sent = await self.storage.get_already_sent_news_ids(
            [item.external_id for item in news], channel_id
        )
        return [item for item in news if item.external_id not in already_sent]

    async def send_news_to_channel(self, item: NewsItem, config: NewsChannelConfig, channel) -> bool:
        """Posts one item and records it. Thread and reaction failures do not undo the delivery."""
        if self.dry_run:
            logger.info(
                f"[DRY RUN] Would send news to {config.channel_id} ({getattr(channel, 'name', '?')}): "
                f"{item.title!r} from {item.source} [{item.category.value}] "
                f"threads={config.create_threads} reactions={config.add_reactions}"
            )
            return await self._record(
                item, config.channel_id, DRY_RUN_MESSAGE_ID,
                DRY_RUN_THREAD_ID if config.create_threads else None,
            )

        try:
            message = await asyncio.wait_for(
                channel.send(
                    content=f"{NEWS_CATEGORIES[item.category]} **Nouveauté**",
                    embed=create_news_embed(item),
                ),
                timeout=SEND_TIMEOUT_SECONDS,
            )
        except (discord.HTTPException, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Error sending news {item.external_id} to channel {config.channel_id}: {e!r}")
            return False

        thread_id = None
        if config.create_threads:
            try:
                thread = await message.create_thread(
                    name=f"💬 {item.title[:THREAD_NAME_LENGTH]}",
                    auto_archive_duration=THREAD_AUTO_ARCHIVE_MINUTES,
                )
                thread_id = str(thread.id)
            except Exception as e:
                logger.warning(f"Failed to create thread for message {message.id}: {e!r}", exc_info=True)

        if config.add_reactions:
            for emoji in REACTIONS:
                try:
                    await message.add_reaction(emoji)
                except Exception as e:
                    logger.warning(f"Failed to add reaction {emoji} to message {message.id}: {e!r}", exc_info=True)

        return await self._record(item, config.channel_id, str(message.id), thread_id)

    async def _record(self, item: NewsItem, channel_id: str, message_id: str, thread_id: Optional[str]) -> bool:
        try:
            await self.storage.save_news_item(item, channel_id, message_id, thread_id)
        except DatabaseError as e:
            logger.error(f"Delivered news {item.external_id} to {channel_id} but could not record it: {e}")
            return False
        return True

    async def resolve_channel(self, channel_id: str):
        channel = self.bot.get_channel(int(channel_id))
        if channel is not None:
            return channel
        try:
            return await self.bot.fetch_channel(int(channel_id))
        except (discord.NotFound, discord.Forbidden):
            return None

    # Administration

    async def add_channel_config(
        self,
        channel_id: str,
        categories: List[NewsCategory],
        create_threads: bool = False,
        add_reactions: bool = True,
        max_per_hour: int = 3,
        enabled: bool = True,
    ) -> NewsChannelConfig:
        config = await self.storage.create_news_channel_config(NewsChannelConfig(
            channel_id=channel_id,
            categories=list(categories),
            create_threads=create_threads,
            add_reactions=add_reactions,
            max_per_hour=max_per_hour,
            enabled=enabled,
        ))
        logger.info(f"News channel config created (channel_id={channel_id}, categories={[c.value for c in categories]})")
        return config

    async def remove_channel_config(self, channel_id: str) -> bool:
        removed = await self.storage.delete_news_channel_config(channel_id)
        if removed:
            logger.info(f"News channel config removed (channel_id={channel_id})")
        return removed

    async def update_channel_config(self, channel_id: str, **updates) -> Optional[NewsChannelConfig]:
        config = await self.storage.update_news_channel_config(channel_id, **updates)
        if config is not None:
            logger.info(f"News channel config updated (channel_id={channel_id}, updates={updates})")
        return config

    async def list_channel_configs(self) -> List[NewsChannelConfig]:
        return await self.storage.list_news_configs()

    async def get_channel_config(self, channel_id: str) -> Optional[NewsChannelConfig]:
        return await self.storage.get_news_channel_config(channel_id)
