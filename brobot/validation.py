"""
Normalisation and checks for review form fields, plus the allow-list test.

Lenient validators return None on bad input; the ``*_strict`` variants and the
title/comment validators raise ValidationError with a French, field-scoped
message.
"""

import re
from typing import Iterable, Optional

from brobot.errors import AuthorizationError, ValidationError
from brobot.models import WORK_TYPES

MAX_TITLE_LENGTH = 100
MAX_COMMENT_LENGTH = 1000
MIN_RATING = 0
MAX_RATING = 5

WORK_TYPE_ALIASES = {
    'films': 'film',
    'movie': 'film',
    'series': 'serie',
    'série': 'serie',
    'séries': 'serie',
    'tv': 'serie',
    'mangas': 'manga',
    'comic': 'comics',
    'bd': 'comics',
    'book': 'livre',
    'livres': 'livre',
    'romans': 'roman',
    'animes': 'anime',
    'jeux': 'jeu',
    'game': 'jeu',
}

_LEADING_INT = re.compile(r'^\s*([+-]?\d+)')


def is_authorized(user_id, authorized_users: Iterable[str]) -> bool:
    return str(user_id) in authorized_users


def validate_authorization(user_id, authorized_users: Iterable[str]) -> None:
    if not is_authorized(user_id, authorized_users):
        raise AuthorizationError()


def validate_work_type(value: str) -> Optional[str]:
    normalized = value.strip().lower()
    normalized = WORK_TYPE_ALIASES.get(normalized, normalized)
    return normalized if normalized in WORK_TYPES else None


def validate_work_type_strict(value: str) -> str:
    work_type = validate_work_type(value)
    if work_type is None:
        raise ValidationError(
            f"Type inconnu. Types acceptés : {', '.join(WORK_TYPES)}", 'Type'
        )
    return work_type


def validate_rating(value: str) -> Optional[int]:
    # Only the leading integer counts: "4/5" -> 4, "x" -> None
    match = _LEADING_INT.match(value)
    if not match:
        return None
    rating = int(match.group(1))
    return rating if MIN_RATING <= rating <= MAX_RATING else None


def validate_rating_strict(value: str) -> int:
    rating = validate_rating(value)
    if rating is None:
        raise ValidationError(
            f"La note doit être un nombre entre {MIN_RATING} et {MAX_RATING}", 'Note'
        )
    return rating


def validate_title(value: str) -> str:
    title = value.strip()
    if not title:
        raise ValidationError("Le titre ne peut pas être vide", 'Titre')
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(
            f"Le titre ne peut pas dépasser {MAX_TITLE_LENGTH} caractères", 'Titre'
        )
    return title


def validate_comment(value: str) -> str:
    comment = value.strip()
    if not comment:
        raise ValidationError("Le commentaire ne peut pas être vide", 'Commentaire')
    if len(comment) > MAX_COMMENT_LENGTH:
        raise ValidationError(
            f"Le commentaire ne peut pas dépasser {MAX_COMMENT_LENGTH} caractères",
            'Commentaire',
        )
    return comment


def format_work_type(work_type: str) -> str:
    return WORK_TYPES.get(work_type, work_type)


def format_rating(rating: int) -> str:
    return '⭐' * rating + '☆' * (MAX_RATING - rating)


def truncate(text: str, length: int) -> str:
    return text if len(text) <= length else text[:length] + '...'
