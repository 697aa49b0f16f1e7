"""Tests for the shared field cleaners and the form flag parser."""

import pytest

from publishearts.errors import ValidationError
from publishearts.fields import (
    clean_image_list,
    dollars_to_cents,
    parse_flag,
    slugify,
)


class TestSlugify:

    @pytest.mark.parametrize(
        "title,expected",
        [
            ("The Heart Ledger", "the-heart-ledger"),
            ("  Ink -- After   Midnight! ", "ink-after-midnight"),
            ("Café Crème", "cafe-creme"),
            ("!!!", ""),
        ],
    )
    def test_slugify(self, title, expected):
        assert slugify(title) == expected

    def test_slug_is_capped_at_48_characters(self):
        slug = slugify("word " * 30)
        assert len(slug) <= 48
        assert not slug.endswith("-")


class TestParseFlag:

    @pytest.mark.parametrize("token", ["true", "TRUE", "1", "yes", "On"])
    def test_true_tokens(self, token):
        assert parse_flag(token, False, "Visible") is True

    @pytest.mark.parametrize("token", ["false", "0", "No", "off"])
    def test_false_tokens(self, token):
        assert parse_flag(token, True, "Visible") is False

    @pytest.mark.parametrize("blank", [None, "", "   "])
    def test_blank_takes_field_default(self, blank):
        assert parse_flag(blank, True, "Visible") is True
        assert parse_flag(blank, False, "Coming soon") is False

    def test_unknown_token_is_rejected(self):
        with pytest.raises(ValidationError, match="Visible must be true or false."):
            parse_flag("maybe", True, "Visible")

    def test_real_booleans_pass_through(self):
        assert parse_flag(False, True, "Visible") is False


class TestMoneyAndImages:

    @pytest.mark.parametrize(
        "value,expected",
        [("18.99", 1899), ("$1,200", 120000), ("0.005", 1), (12, 1200), ("10.125", 1013)],
    )
    def test_dollars_to_cents_rounds_half_up(self, value, expected):
        assert dollars_to_cents(value, "Price") == expected

    def test_dollars_to_cents_requires_a_number(self):
        with pytest.raises(ValidationError, match="Price is required."):
            dollars_to_cents("abc", "Price")

    def test_image_list_accepts_newline_separated_text(self):
        text = "https://example.com/1.jpg\n\n  /uploads/2.png  \n"
        assert clean_image_list(text, "Product images") == (
            "https://example.com/1.jpg",
            "/uploads/2.png",
        )

    def test_image_list_rejects_bad_entries(self):
        with pytest.raises(ValidationError, match="Included images must start with"):
            clean_image_list(["data:image/png;base64,xx"], "Included images")
