"""Storefront branding, copy and theme colors, stored as one JSON object."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Mapping

from .errors import StoreIntegrityError, ValidationError
from .fields import clean_color, clean_image_url, clean_text
from .persistence import JsonDocument

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: Dict[str, str] = {
    "brandName": "PublisHearts",
    "brandMark": "P",
    "logoImageUrl": "",
    "heroBannerImageUrl": "",
    "pageTitle": "PublisHearts Books",
    "pageDescription": (
        "PublisHearts bookstore. Shop featured books, pay securely by card, "
        "and get your receipt by email."
    ),
    "heroEyebrow": "Bookshop",
    "heroTitle": "Stories worth shipping.",
    "heroCopy": (
        "Discover curated titles from PublisHearts and check out securely with card payment. "
        "Every customer receives a receipt email instantly."
    ),
    "heroCtaLabel": "Shop Books",
    "featuredTitle": "Featured Titles",
    "featuredCopy": "Each order is processed securely and shipped to the address collected at checkout.",
    "promise1Title": "Secure Card Checkout",
    "promise1Copy": "Payments run through Stripe, so card data is handled by trusted infrastructure.",
    "promise2Title": "Receipt Emails",
    "promise2Copy": "Customers get a receipt. You get full order details with shipping info by email.",
    "promise3Title": "Ready To Launch",
    "promise3Copy": "This store is free to host and easy to customize as your catalog grows.",
    "footerLeft": "PublisHearts",
    "footerRight": "Books that stay with you",
    "themeAccent": "#ad4f2d",
    "themeAccentStrong": "#8d391c",
    "themeBackground": "#f5efe5",
    "themeInk": "#221d18",
}

# field -> (label, max length)
TEXT_FIELDS: Dict[str, tuple] = {
    "brandName": ("Brand name", 80),
    "brandMark": ("Brand mark", 4),
    "pageTitle": ("Page title", 100),
    "pageDescription": ("Page description", 220),
    "heroEyebrow": ("Hero eyebrow", 80),
    "heroTitle": ("Hero title", 180),
    "heroCopy": ("Hero copy", 600),
    "heroCtaLabel": ("Hero button label", 60),
    "featuredTitle": ("Featured title", 120),
    "featuredCopy": ("Featured copy", 400),
    "promise1Title": ("Promise 1 title", 120),
    "promise1Copy": ("Promise 1 copy", 400),
    "promise2Title": ("Promise 2 title", 120),
    "promise2Copy": ("Promise 2 copy", 400),
    "promise3Title": ("Promise 3 title", 120),
    "promise3Copy": ("Promise 3 copy", 400),
    "footerLeft": ("Footer left text", 120),
    "footerRight": ("Footer right text", 120),
}

IMAGE_FIELDS: Dict[str, str] = {
    "logoImageUrl": "Logo image URL",
    "heroBannerImageUrl": "Hero banner image URL",
}
IMAGE_URL_MAX = 600

COLOR_FIELDS: Dict[str, str] = {
    "themeAccent": "Accent color",
    "themeAccentStrong": "Accent strong color",
    "themeBackground": "Background color",
    "themeInk": "Text color",
}


def _clean_optional_image(value: Any, label: str) -> str:
    url = clean_image_url(value, label, fallback="")
    if len(url) > IMAGE_URL_MAX:
        raise ValidationError(f"{label} must be {IMAGE_URL_MAX} characters or less.")
    return url


def normalize_settings(raw: Mapping[str, Any]) -> Dict[str, str]:
    """Validate a complete settings record, in the canonical key order."""
    cleaned: Dict[str, str] = {}
    for key in DEFAULT_SETTINGS:
        value = raw.get(key)
        if key in TEXT_FIELDS:
            label, max_len = TEXT_FIELDS[key]
            cleaned[key] = clean_text(value, max_len, label)
        elif key in IMAGE_FIELDS:
            cleaned[key] = _clean_optional_image(value, IMAGE_FIELDS[key])
        else:
            cleaned[key] = clean_color(value, COLOR_FIELDS[key])
    return cleaned


class SiteSettingsStore:
    def __init__(self, path: Path) -> None:
        self._document = JsonDocument(path)
        self._settings: Dict[str, str] = dict(DEFAULT_SETTINGS)
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._document.path

    def ensure_loaded(self) -> None:
        if self._loaded:
            return
        with self._document.lock:
            if not self._loaded:
                self._load()
                self._loaded = True

    def _load(self) -> None:
        try:
            parsed = self._document.read()
        except FileNotFoundError:
            settings = normalize_settings(DEFAULT_SETTINGS)
            self._document.write(settings)
            self._settings = settings
            logger.info("Initialized %s with default settings", self.path)
            return

        if not isinstance(parsed, dict):
            raise StoreIntegrityError("Site settings file must contain an object.")
        # Keys added after the file was written fall back to their defaults.
        try:
            self._settings = normalize_settings({**DEFAULT_SETTINGS, **parsed})
        except ValidationError as e:
            raise StoreIntegrityError(f"Site settings file is invalid: {e.message}") from e

    def get(self) -> Dict[str, str]:
        self.ensure_loaded()
        return dict(self._settings)

    def update(self, changes: Mapping[str, Any]) -> Dict[str, str]:
        """Merge known keys onto the current settings and revalidate everything."""
        self.ensure_loaded()
        with self._document.lock:
            merged: Dict[str, Any] = dict(self._settings)
            for key in DEFAULT_SETTINGS:
                if key in changes:
                    merged[key] = changes[key]
            settings = normalize_settings(merged)
            self._document.write(settings)
            self._settings = settings
        logger.info("Updated site settings")
        return dict(settings)
