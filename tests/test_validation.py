"""Tests for form field validation and formatting."""

import pytest

from brobot.errors import AuthorizationError, ValidationError
from brobot.models import WORK_TYPES
from brobot.validation import (
    MAX_COMMENT_LENGTH,
    MAX_TITLE_LENGTH,
    format_rating,
    format_work_type,
    is_authorized,
    truncate,
    validate_authorization,
    validate_comment,
    validate_rating,
    validate_rating_strict,
    validate_title,
    validate_work_type,
    validate_work_type_strict,
)


class TestFormatRating:
    @pytest.mark.parametrize("rating", range(6))
    def test_glyph_counts(self, rating):
        """A rating r gives r filled stars followed by 5 - r empty ones."""
        rendered = format_rating(rating)
        assert len(rendered) == 5
        assert rendered == '⭐' * rating + '☆' * (5 - rating)

    def test_full_marks(self):
        assert format_rating(5) == '⭐⭐⭐⭐⭐'


class TestWorkType:
    @pytest.mark.parametrize("raw,expected", [
        ("film", "film"),
        ("  FILM ", "film"),
        ("movie", "film"),
        ("Série", "serie"),
        ("tv", "serie"),
        ("BD", "comics"),
        ("game", "jeu"),
    ])
    def test_aliases_normalize(self, raw, expected):
        assert validate_work_type(raw) == expected

    @pytest.mark.parametrize("work_type", list(WORK_TYPES))
    def test_idempotent_on_canonical_values(self, work_type):
        assert validate_work_type(validate_work_type(work_type)) == work_type

    @pytest.mark.parametrize("raw", ["", "podcast", "films et séries"])
    def test_unknown_returns_none(self, raw):
        assert validate_work_type(raw) is None

    def test_strict_raises_with_field(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_work_type_strict("podcast")
        assert exc_info.value.field == 'Type'
        assert exc_info.value.message.startswith("Type: ")

    def test_format_known_and_unknown(self):
        assert format_work_type('film') == '🎬 Film'
        assert format_work_type('other') == 'other'


class TestRating:
    @pytest.mark.parametrize("raw,expected", [
        ("0", 0), ("3", 3), ("5", 5), (" 4", 4), ("4/5", 4),
    ])
    def test_valid(self, raw, expected):
        assert validate_rating(raw) == expected

    @pytest.mark.parametrize("raw", ["6", "-1", "x", "", "10"])
    def test_invalid(self, raw):
        assert validate_rating(raw) is None

    def test_strict_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_rating_strict("6")
        assert exc_info.value.code == "VALIDATION_ERROR"
        assert exc_info.value.field == 'Note'


class TestTitleAndComment:
    def test_title_is_trimmed(self):
        assert validate_title("  Dune  ") == "Dune"

    def test_blank_title_rejected(self):
        with pytest.raises(ValidationError, match="Titre"):
            validate_title("   ")

    def test_title_length_limit(self):
        assert validate_title("a" * MAX_TITLE_LENGTH) == "a" * MAX_TITLE_LENGTH
        with pytest.raises(ValidationError):
            validate_title("a" * (MAX_TITLE_LENGTH + 1))

    def test_comment_rules(self):
        assert validate_comment(" Great ") == "Great"
        with pytest.raises(ValidationError, match="Commentaire"):
            validate_comment("")
        with pytest.raises(ValidationError):
            validate_comment("a" * (MAX_COMMENT_LENGTH + 1))


class TestAuthorization:
    def test_ids_compared_as_strings(self):
        assert is_authorized(123, ("123",))
        assert is_authorized("123", ("123",))
        assert not is_authorized(124, ("123",))

    def test_empty_allow_list_denies_everyone(self):
        with pytest.raises(AuthorizationError):
            validate_authorization(123, ())


class TestTruncate:
    def test_short_text_untouched(self):
        assert truncate("abc", 3) == "abc"

    def test_long_text_gets_ellipsis(self):
        assert truncate("abcdef", 3) == "abc..."
