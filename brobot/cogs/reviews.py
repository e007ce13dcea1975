import logging
from typing import Iterable, List

import discord
from discord import app_commands
from discord.ext import commands

from brobot.error_handler import handle_interaction_error
from brobot.models import Review, ReviewData
from brobot.storage import Storage
from brobot.validation import (
    MAX_COMMENT_LENGTH,
    MAX_TITLE_LENGTH,
    format_rating,
    format_work_type,
    truncate,
    validate_authorization,
    validate_comment,
    validate_rating_strict,
    validate_title,
    validate_work_type_strict,
)

logger = logging.getLogger(__name__)

REVIEW_MODAL_ID = 'review_modal'
CONFIRMATION_COMMENT_LENGTH = 200
LIST_COMMENT_LENGTH = 100


def rating_label(rating: int) -> str:
    return f"{rating}/5 {format_rating(rating)}"


def build_confirmation_embed(review: Review, user: discord.abc.User) -> discord.Embed:
    embed = discord.Embed(
        title="✅ Review ajoutée !",
        color=0x00FF7F,
        timestamp=discord.utils.utcnow(),
    )
    embed.add_field(name="🎯 Œuvre", value=review.title, inline=True)
    embed.add_field(name="📂 Type", value=format_work_type(review.type), inline=True)
    embed.add_field(name="⭐ Note", value=rating_label(review.rating), inline=True)
    embed.add_field(
        name="💭 Commentaire",
        value=truncate(review.comment, CONFIRMATION_COMMENT_LENGTH),
        inline=False,
    )
    embed.set_footer(text=user.name, icon_url=user.display_avatar.url)
    return embed


def build_reviews_embed(reviews: List[Review], user: discord.abc.User) -> discord.Embed:
    if not reviews:
        embed = discord.Embed(
            title="📚 Vos reviews",
            description=(
                "Vous n'avez pas encore de reviews.\n"
                "Utilisez `/review` pour ajouter votre première review !"
            ),
            color=0xFFA500,
        )
        embed.set_footer(text=user.name, icon_url=user.display_avatar.url)
        return embed

    embed = discord.Embed(
        title=f"📚 Vos reviews ({len(reviews)})",
        color=0x0099FF,
        timestamp=discord.utils.utcnow(),
    )
    for index, review in enumerate(reviews, start=1):
        embed.add_field(
            name=f"{index}. {review.title}",
            value=(
                f"{format_work_type(review.type)} • {rating_label(review.rating)}\n"
                f"📅 {review.created_at.strftime('%d/%m/%Y')}\n"
                f"💭 {truncate(review.comment, LIST_COMMENT_LENGTH)}"
            ),
            inline=False,
        )
    embed.set_footer(text=user.name, icon_url=user.display_avatar.url)
    return embed


async def submit_review(
    interaction: discord.Interaction,
    storage: Storage,
    authorized_users: Iterable[str],
    title: str,
    work_type: str,
    rating: str,
    comment: str,
) -> Review:
    """Validates the form fields in order, stores the review and confirms it to the author."""
    validate_authorization(interaction.user.id, authorized_users)

    review_data = ReviewData(
        title=validate_title(title),
        type=validate_work_type_strict(work_type),
        rating=validate_rating_strict(rating),
        comment=validate_comment(comment),
    )

    user = await storage.find_or_create_user(str(interaction.user.id), interaction.user.name)
    review = await storage.create_review(user.id, review_data)

    await interaction.response.send_message(embed=build_confirmation_embed(review, interaction.user))

    logger.info(
        f"Review created (user_id={interaction.user.id}, review_id={review.id}, "
        f"title={review.title!r}, type={review.type}, rating={review.rating})"
    )
    return review


async def show_user_reviews(
    interaction: discord.Interaction,
    storage: Storage,
    authorized_users: Iterable[str],
) -> List[Review]:
    validate_authorization(interaction.user.id, authorized_users)

    await interaction.response.defer()

    user = await storage.find_or_create_user(str(interaction.user.id), interaction.user.name)
    reviews = await storage.get_user_reviews(user.id)

    await interaction.edit_original_response(embed=build_reviews_embed(reviews, interaction.user))

    logger.info(f"Reviews list shown (user_id={interaction.user.id}, count={len(reviews)})")
    return reviews


class ReviewModal(discord.ui.Modal, title="✨ Ajouter une review"):
    work_title = discord.ui.TextInput(
        label="Titre de l'œuvre",
        placeholder="Ex: The Matrix, One Piece...",
        max_length=MAX_TITLE_LENGTH,
    )
    work_type = discord.ui.TextInput(
        label="Type",
        placeholder="film, série, manga, comics, roman, livre, anime, jeu",
        max_length=20,
    )
    rating = discord.ui.TextInput(
        label="Note (0-5)",
        placeholder="Entre 0 et 5",
        max_length=1,
    )
    comment = discord.ui.TextInput(
        label="Commentaire",
        style=discord.TextStyle.paragraph,
        placeholder="Votre avis sur cette œuvre...",
        max_length=MAX_COMMENT_LENGTH,
    )

    def __init__(self, storage: Storage, authorized_users: Iterable[str]):
        super().__init__(custom_id=REVIEW_MODAL_ID)
        self.storage = storage
        self.authorized_users = authorized_users

    async def on_submit(self, interaction: discord.Interaction):
        await submit_review(
            interaction,
            self.storage,
            self.authorized_users,
            title=self.work_title.value,
            work_type=self.work_type.value,
            rating=self.rating.value,
            comment=self.comment.value,
        )

    async def on_error(self, interaction: discord.Interaction, error: Exception):
        await handle_interaction_error(interaction, error)


class Reviews(commands.Cog):
    def __init__(self, storage: Storage, authorized_users: Iterable[str]):
        self.storage = storage
        self.authorized_users = authorized_users

    @app_commands.command(name="review", description="Ajouter une review d'œuvre")
    async def review(self, interaction: discord.Interaction):
        validate_authorization(interaction.user.id, self.authorized_users)
        await interaction.response.send_modal(ReviewModal(self.storage, self.authorized_users))
        logger.info(f"Review modal shown (user_id={interaction.user.id}, username={interaction.user.name})")

    @app_commands.command(name="mes-reviews", description="Voir toutes vos reviews")
    async def my_reviews(self, interaction: discord.Interaction):
        await show_user_reviews(interaction, self.storage, self.authorized_users)
