import logging

import discord
from discord.ext import commands

from brobot.cogs.news_config import NewsConfig
from brobot.cogs.reviews import Reviews
from brobot.config import Config
from brobot.error_handler import handle_interaction_error
from brobot.news import NewsService
from brobot.parser import RSSProvider
from brobot.storage import Storage

logger = logging.getLogger(__name__)

COMMAND_NAMES = ('review', 'mes-reviews', 'news-config')


class BroBotClient(commands.Bot):
    """Gateway client; slash commands only, so no message content intent."""

    def __init__(self, config: Config, storage: Storage):
        intents = discord.Intents.none()
        intents.guilds = True
        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            application_id=int(config.client_id),
        )
        self.config = config
        self.storage = storage
        self.news_service = NewsService(
            self, storage, RSSProvider(), dry_run=config.news_dry_run
        )
        self.tree.error(handle_interaction_error)

    async def setup_hook(self):
        await self.add_cog(Reviews(self.storage, self.config.authorized_users))
        await self.add_cog(NewsConfig(self.news_service, self.config.authorized_users))
        self.check_command_registry()

        logger.info("Deploying slash commands...")
        synced = await self.tree.sync()
        logger.info(f"Slash commands deployed successfully ({len(synced)} commands)")

    def check_command_registry(self):
        registered = {command.name for command in self.tree.get_commands()}
        if registered != set(COMMAND_NAMES):
            raise RuntimeError(
                f"Command registry mismatch: registered={sorted(registered)} expected={sorted(COMMAND_NAMES)}"
            )

    async def on_ready(self):
        logger.info(
            f"✅ Logged in as {self.user} (ID: {self.user.id}), "
            f"guilds={len(self.guilds)}, environment={self.config.environment}"
        )
