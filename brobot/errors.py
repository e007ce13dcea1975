"""
Error taxonomy shared by commands, services and the interaction error handler.

Every ``BotError`` carries a stable code and a French message that is safe to
show to end users.
"""

from typing import Optional


class BotError(Exception):
    def __init__(self, message: str, code: str = "UNKNOWN_ERROR"):
        super().__init__(message)
        self.message = message
        self.code = code


class ValidationError(BotError):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(f"{field}: {message}" if field else message, "VALIDATION_ERROR")
        self.field = field


class AuthorizationError(BotError):
    def __init__(self, message: str = "Vous n'êtes pas autorisé à utiliser cette commande"):
        super().__init__(message, "AUTHORIZATION_ERROR")


class DatabaseError(BotError):
    def __init__(self, message: str = "Erreur de base de données"):
        super().__init__(message, "DATABASE_ERROR")


class DiscordError(BotError):
    def __init__(self, message: str = "Erreur de communication avec Discord. Veuillez réessayer."):
        super().__init__(message, "DISCORD_ERROR")


class ConfigAlreadyExistsError(BotError):
    def __init__(self, channel_id: str):
        super().__init__(
            "Une configuration existe déjà pour ce channel. "
            "Utilisez `/news-config update` pour la modifier.",
            "CONFIG_EXISTS",
        )
        self.channel_id = channel_id


class ConfigError(Exception):
    """Invalid process configuration; fatal at startup."""
