"""Translate admin request bodies (JSON or multipart) into store changes.

The stores only accept typed values: cents as integers and flags as real
booleans. Form posts carry dollars and string flags, so they are converted
here and nowhere else.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping

from flask import request

from .errors import ValidationError
from .fields import dollars_to_cents, parse_flag
from .product_store import FLAG_DEFAULTS, FLAG_LABELS
from .site_settings_store import DEFAULT_SETTINGS

PRODUCT_TEXT_KEYS = ("title", "subtitle", "included", "imageUrl")
GALLERY_KEYS = ("productImageUrls", "includedImageUrls")

# settings image field -> (upload field, remove flag)
SETTINGS_IMAGE_INPUTS = {
    "logoImageUrl": ("logoImage", "removeLogo"),
    "heroBannerImageUrl": ("heroBannerImage", "removeBanner"),
}


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def request_payload() -> Dict[str, Any]:
    """The body of the current request as a flat dict (JSON object or form fields)."""
    if request.is_json:
        payload = request.get_json(silent=True)
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object.")
        return payload
    return request.form.to_dict()


def product_changes(data: Mapping[str, Any], *, partial: bool = False) -> Dict[str, Any]:
    """Map request fields onto store keys.

    With ``partial`` only the fields present in ``data`` are returned, so an
    update leaves everything else untouched. Otherwise missing flags take their
    defaults.
    """
    changes: Dict[str, Any] = {}

    for key in PRODUCT_TEXT_KEYS:
        if key in data:
            changes[key] = data[key]

    if "priceCents" in data:
        changes["priceCents"] = data["priceCents"]
    elif "price" in data:
        changes["priceCents"] = dollars_to_cents(data["price"], "Price")
    elif not partial:
        raise ValidationError("Price is required.")

    if "shippingFeeCents" in data:
        changes["shippingFeeCents"] = data["shippingFeeCents"]
    elif not _blank(data.get("shippingFee")):
        changes["shippingFeeCents"] = dollars_to_cents(data["shippingFee"], "Shipping fee")

    for key, default in FLAG_DEFAULTS.items():
        if key in data:
            changes[key] = parse_flag(data[key], default, FLAG_LABELS[key])
        elif not partial:
            changes[key] = default

    for key in GALLERY_KEYS:
        if key in data:
            changes[key] = data[key]

    return changes


def wants_removal(data: Mapping[str, Any], key: str) -> bool:
    return parse_flag(data.get(key), False, key)


def settings_changes(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: data[key] for key in DEFAULT_SETTINGS if key in data}
