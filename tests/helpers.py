from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from brobot.models import NewsCategory, NewsItem

AUTHORIZED_ID = 111111111111111111
AUTHORIZED_USERS = (str(AUTHORIZED_ID),)


def make_interaction(user_id=AUTHORIZED_ID, name="alice", done=False, manage_channels=True):
    interaction = MagicMock()
    interaction.user.id = user_id
    interaction.user.name = name
    interaction.user.display_avatar.url = "https://cdn.example.com/avatar.png"
    interaction.guild_id = 42
    interaction.id = 1001
    interaction.permissions.manage_channels = manage_channels
    interaction.response.is_done = MagicMock(return_value=done)
    interaction.response.send_message = AsyncMock()
    interaction.response.send_modal = AsyncMock()
    interaction.response.defer = AsyncMock()
    interaction.followup.send = AsyncMock()
    interaction.edit_original_response = AsyncMock()
    return interaction


def make_news_item(external_id="rss_abc", category=NewsCategory.FILMS, title="Dune 3 annoncé",
                   published_at=None, **kwargs):
    return NewsItem(
        external_id=external_id,
        title=title,
        description=kwargs.pop("description", "Denis Villeneuve confirme un troisième film de la saga."),
        url=kwargs.pop("url", f"https://www.allocine.fr/news/{external_id}"),
        published_at=published_at or datetime.now(timezone.utc),
        source=kwargs.pop("source", "AlloCiné"),
        category=category,
        **kwargs,
    )
