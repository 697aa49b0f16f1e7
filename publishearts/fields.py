"""Field cleaners shared by the product and site settings stores.

Each cleaner takes a raw value and returns the normalized value, or raises
``ValidationError`` with a message naming the field.
"""

from __future__ import annotations

import re
import unicodedata
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional, Tuple

from .errors import ValidationError

PLACEHOLDER_IMAGE_URL = "https://placehold.co/600x800/f2ece1/35211f?text=Book+Cover"
SLUG_MAX_LEN = 48

_URL_RE = re.compile(r"^https?://", re.IGNORECASE)
_COLOR_RE = re.compile(r"^#[0-9a-f]{6}$")

TRUE_TOKENS = frozenset({"true", "1", "yes", "on"})
FALSE_TOKENS = frozenset({"false", "0", "no", "off"})


def slugify(name: Any, max_len: int = SLUG_MAX_LEN) -> str:
    """Lowercase ASCII slug; runs of anything else collapse to a single '-'."""
    norm = unicodedata.normalize("NFKD", str(name or "").strip())
    chars = []
    for ch in norm:
        if unicodedata.category(ch) == "Mn":
            continue
        chars.append(ch if ord(ch) < 128 else "-")
    s = "".join(chars).lower()
    s = re.sub(r"[^a-z0-9]+", "-", s).strip("-")
    return s[:max_len].strip("-")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def clean_text(value: Any, max_len: int, label: str) -> str:
    text = _as_text(value)
    if not text:
        raise ValidationError(f"{label} is required.")
    if len(text) > max_len:
        raise ValidationError(f"{label} must be {max_len} characters or less.")
    return text


def clean_optional_text(value: Any, max_len: int, label: str) -> str:
    text = _as_text(value)
    if len(text) > max_len:
        raise ValidationError(f"{label} must be {max_len} characters or less.")
    return text


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return number


def round_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def dollars_to_cents(value: Any, label: str) -> int:
    """Convert a dollar amount such as ``"18.99"`` or ``"$1,200"`` to whole cents."""
    text = _as_text(value).replace("$", "").replace(",", "")
    number = _to_decimal(text) if text else None
    if number is None:
        raise ValidationError(f"{label} is required.")
    return round_cents(number * 100)


def clean_price_cents(value: Any) -> int:
    number = _to_decimal(value)
    if number is None:
        raise ValidationError("Price is required.")
    cents = round_cents(number)
    if cents < 50 or cents > 1_000_000:
        raise ValidationError("Price must be between $0.50 and $10,000.00.")
    return cents


def clean_fee_cents(value: Any, default: int) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    number = _to_decimal(value)
    if number is None:
        raise ValidationError("Shipping fee must be a number.")
    cents = round_cents(number)
    if cents < 0 or cents > 100_000:
        raise ValidationError("Shipping fee must be between $0.00 and $1,000.00.")
    return cents


def is_image_url(text: str) -> bool:
    return text.startswith("/uploads/") or bool(_URL_RE.match(text))


def clean_image_url(value: Any, label: str = "Image URL", *, fallback: str = PLACEHOLDER_IMAGE_URL) -> str:
    text = _as_text(value)
    if not text:
        return fallback
    if is_image_url(text):
        return text
    raise ValidationError(f"{label} must start with https://, http://, or /uploads/.")


def clean_image_list(value: Any, label: str, max_items: int = 12) -> Tuple[str, ...]:
    if value is None:
        return tuple()
    if isinstance(value, str):
        entries: Iterable[Any] = value.splitlines()
    elif isinstance(value, (list, tuple)):
        entries = value
    else:
        raise ValidationError(f"{label} must be a list of image URLs.")

    urls: List[str] = []
    for entry in entries:
        text = _as_text(entry)
        if not text:
            continue
        urls.append(clean_image_url(text, label))
    if len(urls) > max_items:
        raise ValidationError(f"{label} can hold at most {max_items} images.")
    return tuple(urls)


def clean_bool(value: Any, label: str) -> bool:
    """Core-side flag check: only real booleans are accepted."""
    if isinstance(value, bool):
        return value
    raise ValidationError(f"{label} must be true or false.")


def parse_flag(value: Any, default: bool, label: str) -> bool:
    """Parse an untyped flag (form field, query string) into a boolean.

    Blank or missing values take ``default``; anything outside the accepted
    token sets is rejected rather than guessed.
    """
    if isinstance(value, bool):
        return value
    text = _as_text(value).lower()
    if not text:
        return default
    if text in TRUE_TOKENS:
        return True
    if text in FALSE_TOKENS:
        return False
    raise ValidationError(f"{label} must be true or false.")


def clean_color(value: Any, label: str) -> str:
    color = _as_text(value).lower()
    if not _COLOR_RE.match(color):
        raise ValidationError(f"{label} must be a hex color like #ad4f2d.")
    return color
