"""Tests for the /news-config command group."""

from unittest.mock import MagicMock

import pytest

from brobot.cogs.news_config import (
    NewsConfig,
    build_list_embed,
    build_updated_embed,
    parse_categories,
)
from brobot.errors import AuthorizationError, ConfigAlreadyExistsError
from brobot.models import NewsCategory, NewsChannelConfig
from brobot.news import NewsService
from tests.helpers import AUTHORIZED_USERS, make_interaction


def make_channel(channel_id=100, name="news"):
    channel = MagicMock()
    channel.id = channel_id
    channel.name = name
    channel.mention = f"<#{channel_id}>"
    return channel


@pytest.fixture
def bot():
    bot = MagicMock()
    bot.get_channel = MagicMock(side_effect=lambda channel_id: make_channel(channel_id))
    return bot


@pytest.fixture
def cog(storage, bot):
    return NewsConfig(NewsService(bot, storage, MagicMock()), AUTHORIZED_USERS)


def last_content(interaction):
    return interaction.edit_original_response.call_args.kwargs.get("content")


def last_embed(interaction):
    return interaction.edit_original_response.call_args.kwargs.get("embed")


class TestParseCategories:
    def test_known_values_kept_in_order(self):
        assert parse_categories(" Films, gaming ,wwe") == [NewsCategory.FILMS, NewsCategory.GAMING, NewsCategory.WWE]

    def test_unknown_and_duplicates_dropped(self):
        assert parse_categories("films,cuisine,films") == [NewsCategory.FILMS]

    def test_nothing_valid(self):
        assert parse_categories("cuisine, ,") == []


class TestEmbeds:
    def test_updated_embed_lists_changes(self):
        embed = build_updated_embed({'enabled': False, 'max_per_hour': 5}, "<#100>")
        assert [(f.name, f.value) for f in embed.fields] == [
            ("Channel", "<#100>"), ("Statut", "🔴 Inactif"), ("Max/heure", "5"),
        ]

    def test_list_embed_capped_at_25_fields(self):
        configs = [NewsChannelConfig(channel_id=str(i), categories=[NewsCategory.FILMS]) for i in range(30)]
        embed = build_list_embed(configs, {})
        assert len(embed.fields) == 25
        assert embed.description == "30 channel(s) configuré(s)"


class TestAdd:
    async def test_creates_config_with_defaults(self, cog, storage, interaction):
        await cog.add.callback(cog, interaction, make_channel(), "films, gaming, bogus")

        interaction.response.defer.assert_awaited_once_with(ephemeral=True)
        config = await storage.get_news_channel_config("100")
        assert config.categories == [NewsCategory.FILMS, NewsCategory.GAMING]
        assert (config.max_per_hour, config.create_threads, config.add_reactions) == (3, False, True)
        assert last_embed(interaction).title == "✅ Configuration des news créée"

    async def test_explicit_options(self, cog, storage, interaction):
        await cog.add.callback(cog, interaction, make_channel(), "wwe", threads=True, reactions=False, max_per_hour=7)
        config = await storage.get_news_channel_config("100")
        assert (config.max_per_hour, config.create_threads, config.add_reactions) == (7, True, False)

    async def test_no_valid_category(self, cog, storage, interaction):
        await cog.add.callback(cog, interaction, make_channel(), "cuisine")
        assert last_content(interaction) == "❌ Aucune catégorie valide fournie"
        assert await storage.list_news_configs() == []

    async def test_duplicate_channel(self, cog, storage, interaction):
        await cog.add.callback(cog, interaction, make_channel(), "films")
        with pytest.raises(ConfigAlreadyExistsError):
            await cog.add.callback(cog, make_interaction(), make_channel(), "wwe")
        assert (await storage.get_news_channel_config("100")).categories == [NewsCategory.FILMS]

    async def test_requires_allow_list(self, cog, storage):
        interaction = make_interaction(user_id=999)
        with pytest.raises(AuthorizationError):
            await cog.add.callback(cog, interaction, make_channel(), "films")
        interaction.response.defer.assert_not_awaited()

    async def test_requires_manage_channels(self, cog, storage):
        interaction = make_interaction(manage_channels=False)
        with pytest.raises(AuthorizationError):
            await cog.add.callback(cog, interaction, make_channel(), "films")
        assert await storage.list_news_configs() == []


class TestRemove:
    async def test_remove_existing(self, cog, storage, interaction):
        await cog.add.callback(cog, make_interaction(), make_channel(), "films")
        await cog.remove.callback(cog, interaction, make_channel())
        assert last_content(interaction) == "✅ Configuration des news supprimée pour <#100>"
        assert await storage.get_news_channel_config("100") is None

    async def test_remove_missing(self, cog, interaction):
        await cog.remove.callback(cog, interaction, make_channel())
        assert last_content(interaction) == "❌ Aucune configuration trouvée pour <#100>"


class TestList:
    async def test_empty(self, cog, interaction):
        await cog.list_configs.callback(cog, interaction)
        assert last_content(interaction) == "📝 Aucune configuration de news"

    async def test_shows_every_config(self, cog, interaction):
        await cog.add.callback(cog, make_interaction(), make_channel(100), "films")
        await cog.add.callback(cog, make_interaction(), make_channel(200), "wwe")
        await cog.update.callback(cog, make_interaction(), make_channel(200), enabled=False)

        await cog.list_configs.callback(cog, interaction)
        embed = last_embed(interaction)
        assert [f.name for f in embed.fields] == ["#news", "#news"]
        assert "🔴 Inactif" in embed.fields[1].value


class TestUpdate:
    async def test_applies_given_fields(self, cog, storage, interaction):
        await cog.add.callback(cog, make_interaction(), make_channel(), "films")
        await cog.update.callback(cog, interaction, make_channel(), categories="series,lectures", max_per_hour=2)

        config = await storage.get_news_channel_config("100")
        assert config.categories == [NewsCategory.SERIES, NewsCategory.LECTURES]
        assert config.max_per_hour == 2
        assert config.enabled is True
        assert last_embed(interaction).title == "✅ Configuration mise à jour"

    async def test_nothing_to_change(self, cog, interaction):
        await cog.update.callback(cog, interaction, make_channel())
        assert last_content(interaction) == "❌ Aucune modification spécifiée"

    async def test_missing_config(self, cog, interaction):
        await cog.update.callback(cog, interaction, make_channel(), enabled=False)
        assert last_content(interaction) == "❌ Aucune configuration trouvée pour <#100>"
