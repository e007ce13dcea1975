"""
Single response path for failed interactions, and the process-wide fatal handler.
"""

import asyncio
import logging
import os
from typing import Optional

import discord
from discord import app_commands

from brobot.errors import AuthorizationError, BotError, DiscordError

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "Une erreur inattendue s'est produite. Veuillez réessayer."
EXIT_GRACE_SECONDS = 5


def unwrap_error(error: BaseException) -> BaseException:
    if isinstance(error, app_commands.CheckFailure):
        return AuthorizationError()
    if isinstance(error, app_commands.CommandInvokeError):
        error = error.original
    if isinstance(error, discord.HTTPException):
        wrapped = DiscordError()
        wrapped.__cause__ = error
        return wrapped
    return error


def _context(interaction: discord.Interaction) -> str:
    command = getattr(interaction.command, 'qualified_name', None)
    return (
        f"user_id={interaction.user.id} guild_id={interaction.guild_id} "
        f"interaction_id={interaction.id} command={command}"
    )


async def handle_interaction_error(interaction: discord.Interaction, error: BaseException) -> None:
    """Logs the failure and sends exactly one ephemeral reply to the user."""
    error = unwrap_error(error)

    if isinstance(error, BotError):
        cause = f", cause={error.__cause__!r}" if error.__cause__ else ""
        logger.warning(f"Bot error: {error.message} (code={error.code}, {_context(interaction)}{cause})")
        message = f"❌ {error.message}"
    else:
        logger.error(
            f"Unexpected error in interaction ({_context(interaction)})",
            exc_info=(type(error), error, error.__traceback__),
        )
        message = f"❌ {UNEXPECTED_ERROR_MESSAGE}"

    try:
        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)
    except discord.HTTPException as reply_error:
        logger.error(f"Failed to send error response (user_id={interaction.user.id}): {reply_error}")


def _force_exit() -> None:
    logging.shutdown()
    os._exit(1)


def handle_process_error(
    error: BaseException,
    production: bool,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> None:
    """Logs an uncaught error; in production the process exits after a short grace period."""
    logger.critical(
        "Unhandled process error",
        exc_info=(type(error), error, error.__traceback__),
    )
    if production:
        logger.critical(f"Exiting in {EXIT_GRACE_SECONDS}s")
        (loop or asyncio.get_running_loop()).call_later(EXIT_GRACE_SECONDS, _force_exit)
