import logging
from typing import Iterable, List, Optional

import discord
from discord import app_commands
from discord.ext import commands

from brobot.errors import AuthorizationError
from brobot.models import NEWS_CATEGORIES, NewsCategory, NewsChannelConfig
from brobot.news import NewsService
from brobot.validation import validate_authorization

logger = logging.getLogger(__name__)

DEFAULT_MAX_PER_HOUR = 3


def parse_categories(raw: str) -> List[NewsCategory]:
    """Comma-separated list -> known categories, in order, without duplicates."""
    categories: List[NewsCategory] = []
    for value in raw.split(','):
        value = value.strip().lower()
        if value in NewsCategory._value2member_map_:
            category = NewsCategory(value)
            if category not in categories:
                categories.append(category)
    return categories


def yes_no(value: bool) -> str:
    return '✅' if value else '❌'


def status_label(enabled: bool) -> str:
    return '🟢 Actif' if enabled else '🔴 Inactif'


def categories_label(categories: Iterable[NewsCategory]) -> str:
    return ', '.join(NEWS_CATEGORIES[c] for c in categories) or '-'


def build_created_embed(config: NewsChannelConfig, channel_mention: str) -> discord.Embed:
    embed = discord.Embed(title="✅ Configuration des news créée", color=0x00FF00)
    embed.add_field(name="Channel", value=channel_mention, inline=True)
    embed.add_field(name="Catégories", value=categories_label(config.categories), inline=True)
    embed.add_field(name="Max/heure", value=str(config.max_per_hour), inline=True)
    embed.add_field(name="Threads", value=yes_no(config.create_threads), inline=True)
    embed.add_field(name="Réactions", value=yes_no(config.add_reactions), inline=True)
    return embed


def build_updated_embed(updates: dict, channel_mention: str) -> discord.Embed:
    embed = discord.Embed(title="✅ Configuration mise à jour", color=0x00FF00)
    embed.add_field(name="Channel", value=channel_mention, inline=True)
    labels = {
        'enabled': ("Statut", status_label),
        'create_threads': ("Threads", yes_no),
        'add_reactions': ("Réactions", yes_no),
        'max_per_hour': ("Max/heure", str),
        'categories': ("Catégories", categories_label),
    }
    for key, value in updates.items():
        name, render = labels[key]
        embed.add_field(name=name, value=render(value), inline=True)
    return embed


def build_list_embed(configs: List[NewsChannelConfig], channel_names: dict) -> discord.Embed:
    embed = discord.Embed(
        title="📰 Configurations des news",
        description=f"{len(configs)} channel(s) configuré(s)",
        color=0x0099FF,
    )
    # Discord rejects embeds with more than 25 fields
    for config in configs[:25]:
        embed.add_field(
            name=channel_names.get(config.channel_id, config.channel_id),
            value="\n".join([
                f"**Catégories:** {categories_label(config.categories)}",
                f"**Max/heure:** {config.max_per_hour}",
                f"**Threads:** {yes_no(config.create_threads)}",
                f"**Réactions:** {yes_no(config.add_reactions)}",
                f"**Statut:** {status_label(config.enabled)}",
            ]),
            inline=False,
        )
    return embed


class NewsConfig(commands.Cog):
    news_config = app_commands.Group(
        name="news-config",
        description="Configurer les news pour un channel",
        default_permissions=discord.Permissions(manage_channels=True),
        guild_only=True,
    )

    def __init__(self, news_service: NewsService, authorized_users: Iterable[str]):
        self.news_service = news_service
        self.authorized_users = authorized_users

    def check_access(self, interaction: discord.Interaction) -> None:
        validate_authorization(interaction.user.id, self.authorized_users)
        if not interaction.permissions.manage_channels:
            raise AuthorizationError("Vous devez avoir la permission de gérer les salons")

    @news_config.command(name="add", description="Activer les news pour un channel")
    @app_commands.rename(max_per_hour="max-par-heure")
    @app_commands.describe(
        channel="Channel où envoyer les news",
        categories="Catégories séparées par des virgules : sports, gaming, films, series, wwe, lectures",
        threads="Créer des threads pour chaque news",
        reactions="Ajouter des réactions aux news",
        max_per_hour="Nombre maximum de news par heure",
    )
    async def add(
        self,
        interaction: discord.Interaction,
        channel: discord.TextChannel,
        categories: str,
        threads: Optional[bool] = None,
        reactions: Optional[bool] = None,
        max_per_hour: Optional[app_commands.Range[int, 1, 10]] = None,
    ):
        self.check_access(interaction)
        await interaction.response.defer(ephemeral=True)

        valid_categories = parse_categories(categories)
        if not valid_categories:
            await interaction.edit_original_response(content="❌ Aucune catégorie valide fournie")
            return

        config = await self.news_service.add_channel_config(
            str(channel.id),
            valid_categories,
            create_threads=threads if threads is not None else False,
            add_reactions=reactions if reactions is not None else True,
            max_per_hour=max_per_hour or DEFAULT_MAX_PER_HOUR,
        )
        await interaction.edit_original_response(embed=build_created_embed(config, channel.mention))
        logger.info(f"News config created by user {interaction.user.id} for channel {channel.id}")

    @news_config.command(name="remove", description="Désactiver les news pour un channel")
    @app_commands.describe(channel="Channel à désactiver")
    async def remove(self, interaction: discord.Interaction, channel: discord.TextChannel):
        self.check_access(interaction)
        await interaction.response.defer(ephemeral=True)

        if not await self.news_service.remove_channel_config(str(channel.id)):
            await interaction.edit_original_response(
                content=f"❌ Aucune configuration trouvée pour {channel.mention}"
            )
            return

        await interaction.edit_original_response(
            content=f"✅ Configuration des news supprimée pour {channel.mention}"
        )
        logger.info(f"News config removed by user {interaction.user.id} for channel {channel.id}")

    @news_config.command(name="list", description="Voir la configuration des news")
    async def list_configs(self, interaction: discord.Interaction):
        self.check_access(interaction)
        await interaction.response.defer(ephemeral=True)

        configs = await self.news_service.list_channel_configs()
        if not configs:
            await interaction.edit_original_response(content="📝 Aucune configuration de news")
            return

        channel_names = {}
        for config in configs:
            channel = await self.news_service.resolve_channel(config.channel_id)
            if channel is not None:
                channel_names[config.channel_id] = f"#{channel.name}"

        await interaction.edit_original_response(embed=build_list_embed(configs, channel_names))

    @news_config.command(name="update", description="Modifier la configuration d'un channel")
    @app_commands.rename(max_per_hour="max-par-heure")
    @app_commands.describe(
        channel="Channel à modifier",
        enabled="Activer/désactiver les news",
        categories="Nouvelles catégories séparées par des virgules",
        threads="Créer des threads pour chaque news",
        reactions="Ajouter des réactions aux news",
        max_per_hour="Nombre maximum de news par heure",
    )
    async def update(
        self,
        interaction: discord.Interaction,
        channel: discord.TextChannel,
        enabled: Optional[bool] = None,
        categories: Optional[str] = None,
        threads: Optional[bool] = None,
        reactions: Optional[bool] = None,
        max_per_hour: Optional[app_commands.Range[int, 1, 10]] = None,
    ):
        self.check_access(interaction)
        await interaction.response.defer(ephemeral=True)

        updates = {}
        if enabled is not None:
            updates['enabled'] = enabled
        if categories is not None:
            valid_categories = parse_categories(categories)
            if not valid_categories:
                await interaction.edit_original_response(content="❌ Aucune catégorie valide fournie")
                return
            updates['categories'] = valid_categories
        if threads is not None:
            updates['create_threads'] = threads
        if reactions is not None:
            updates['add_reactions'] = reactions
        if max_per_hour is not None:
            updates['max_per_hour'] = max_per_hour

        if not updates:
            await interaction.edit_original_response(content="❌ Aucune modification spécifiée")
            return

        config = await self.news_service.update_channel_config(str(channel.id), **updates)
        if config is None:
            await interaction.edit_original_response(
                content=f"❌ Aucune configuration trouvée pour {channel.mention}"
            )
            return

        await interaction.edit_original_response(embed=build_updated_embed(updates, channel.mention))
        logger.info(f"News config updated by user {interaction.user.id} for channel {channel.id}: {updates}")
