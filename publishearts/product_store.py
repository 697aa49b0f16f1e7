"""Product catalog backed by a JSON file.

The store is the only writer of the products file. Records are kept as
frozen ``Product`` dataclasses, so everything handed to callers is already an
independent copy. After every mutation the catalog is re-sorted by
``sortOrder`` (ties broken by title) and renumbered 0..N-1.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .default_products import DEFAULT_PRODUCTS
from .errors import StoreIntegrityError, ValidationError
from .fields import (
    PLACEHOLDER_IMAGE_URL,
    SLUG_MAX_LEN,
    clean_bool,
    clean_fee_cents,
    clean_image_list,
    clean_image_url,
    clean_optional_text,
    clean_price_cents,
    clean_text,
    slugify,
)
from .persistence import JsonDocument

logger = logging.getLogger(__name__)

TITLE_MAX = 140
SUBTITLE_MAX = 600
INCLUDED_MAX = 800

# Wire key -> Product attribute, for every field an admin may set.
EDITABLE_FIELDS: Dict[str, str] = {
    "title": "title",
    "subtitle": "subtitle",
    "included": "included",
    "priceCents": "price_cents",
    "imageUrl": "image_url",
    "productImageUrls": "product_image_urls",
    "includedImageUrls": "included_image_urls",
    "shippingEnabled": "shipping_enabled",
    "shippingFeeCents": "shipping_fee_cents",
    "inStock": "in_stock",
    "isVisible": "is_visible",
    "isComingSoon": "is_coming_soon",
}

FLAG_DEFAULTS: Dict[str, bool] = {
    "shippingEnabled": True,
    "inStock": True,
    "isVisible": True,
    "isComingSoon": False,
}

FLAG_LABELS: Dict[str, str] = {
    "shippingEnabled": "Shipping enabled",
    "inStock": "In stock",
    "isVisible": "Visible",
    "isComingSoon": "Coming soon",
}


@dataclass(frozen=True)
class Product:
    id: str
    title: str
    subtitle: str = ""
    included: str = ""
    price_cents: int = 0
    image_url: str = PLACEHOLDER_IMAGE_URL
    product_image_urls: Tuple[str, ...] = ()
    included_image_urls: Tuple[str, ...] = ()
    shipping_enabled: bool = True
    shipping_fee_cents: int = 0
    in_stock: bool = True
    is_visible: bool = True
    is_coming_soon: bool = False
    sort_order: int = 0

    @property
    def purchasable(self) -> bool:
        return self.is_visible and not self.is_coming_soon and self.in_stock

    def image_urls(self) -> Tuple[str, ...]:
        """Every image the product references, cover first."""
        return (self.image_url,) + self.product_image_urls + self.included_image_urls

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "subtitle": self.subtitle,
            "included": self.included,
            "priceCents": self.price_cents,
            "imageUrl": self.image_url,
            "productImageUrls": list(self.product_image_urls),
            "includedImageUrls": list(self.included_image_urls),
            "shippingEnabled": self.shipping_enabled,
            "shippingFeeCents": self.shipping_fee_cents,
            "inStock": self.in_stock,
            "isVisible": self.is_visible,
            "isComingSoon": self.is_coming_soon,
            "sortOrder": self.sort_order,
        }


def clean_product_fields(raw: Mapping[str, Any], default_fee_cents: int) -> Dict[str, Any]:
    """Validate a full set of editable fields; missing keys take their defaults."""
    cleaned: Dict[str, Any] = {
        "title": clean_text(raw.get("title"), TITLE_MAX, "Title"),
        "subtitle": clean_optional_text(raw.get("subtitle"), SUBTITLE_MAX, "Description"),
        "included": clean_optional_text(raw.get("included"), INCLUDED_MAX, "What's included"),
        "price_cents": clean_price_cents(raw.get("priceCents")),
        "image_url": clean_image_url(raw.get("imageUrl")),
        "product_image_urls": clean_image_list(raw.get("productImageUrls"), "Product images"),
        "included_image_urls": clean_image_list(raw.get("includedImageUrls"), "Included images"),
        "shipping_fee_cents": clean_fee_cents(raw.get("shippingFeeCents"), default_fee_cents),
    }
    for key, default in FLAG_DEFAULTS.items():
        value = raw.get(key)
        attr = EDITABLE_FIELDS[key]
        cleaned[attr] = default if value is None else clean_bool(value, FLAG_LABELS[key])
    return cleaned


def _build_id(title: str, existing_ids: Set[str]) -> str:
    candidate = slugify(title) or "book"
    # room for the "-xxxxxx" suffix within the slug limit
    base = slugify(title, SLUG_MAX_LEN - 7) or "book"
    while candidate in existing_ids:
        candidate = f"{base}-{uuid.uuid4().hex[:6]}"
    return candidate


def _stored_id(raw: Mapping[str, Any]) -> str:
    """Stored ids are kept exactly as written; blank ones are assigned later."""
    value = raw.get("id")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError("Product id must be text.")
    return value if value.strip() else ""


def _resorted(products: Iterable[Product]) -> List[Product]:
    ordered = sorted(products, key=lambda p: (p.sort_order, p.title.casefold(), p.title))
    return [p if p.sort_order == i else replace(p, sort_order=i) for i, p in enumerate(ordered)]


class ProductStore:
    def __init__(
        self,
        path: Path,
        *,
        default_shipping_fee_cents: int = 500,
        seed: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        self._document = JsonDocument(path)
        self._default_fee = default_shipping_fee_cents
        self._seed = DEFAULT_PRODUCTS if seed is None else seed
        self._products: List[Product] = []
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._document.path

    # -------------------------
    # Loading
    # -------------------------
    def ensure_loaded(self) -> None:
        if self._loaded:
            return
        with self._document.lock:
            if not self._loaded:
                self._load()
                self._loaded = True

    def _normalize_stored(self, raw: Any, position: int) -> Product:
        if not isinstance(raw, dict):
            raise ValidationError("Each product must be a JSON object.")
        fields = clean_product_fields(raw, self._default_fee)
        sort_order = raw.get("sortOrder", position)
        if isinstance(sort_order, bool) or not isinstance(sort_order, int) or sort_order < 0:
            raise ValidationError("Sort order must be a whole number of 0 or more.")
        return Product(id=_stored_id(raw), sort_order=sort_order, **fields)

    def _load(self) -> None:
        try:
            parsed = self._document.read()
        except FileNotFoundError:
            self._seed_defaults()
            return

        if not isinstance(parsed, list):
            raise StoreIntegrityError("Products file must contain an array.")

        seen: Set[str] = set()
        products: List[Product] = []
        for position, entry in enumerate(parsed):
            try:
                product = self._normalize_stored(entry, position)
            except ValidationError as e:
                raise StoreIntegrityError(
                    f"Products file entry {position + 1} is invalid: {e.message}"
                ) from e
            if not product.id:
                product = replace(product, id=_build_id(product.title, seen))
            if product.id in seen:
                raise StoreIntegrityError(f"Duplicate product id found: {product.id}")
            seen.add(product.id)
            products.append(product)

        self._products = _resorted(products)
        logger.info("Loaded %d products from %s", len(products), self.path)

    def _seed_defaults(self) -> None:
        seen: Set[str] = set()
        products: List[Product] = []
        for position, entry in enumerate(self._seed):
            product = self._normalize_stored(entry, position)
            if not product.id or product.id in seen:
                product = replace(product, id=_build_id(product.title, seen))
            seen.add(product.id)
            products.append(product)
        self._commit(products)
        logger.info("Seeded %s with %d default products", self.path, len(products))

    def _commit(self, products: Iterable[Product]) -> List[Product]:
        ordered = _resorted(products)
        self._document.write([p.to_dict() for p in ordered])
        self._products = ordered
        return ordered

    # -------------------------
    # Reads
    # -------------------------
    def list_products(self) -> List[Product]:
        self.ensure_loaded()
        return list(self._products)

    def find_by_id(self, product_id: str) -> Optional[Product]:
        self.ensure_loaded()
        for p in self._products:
            if p.id == product_id:
                return p
        return None

    # -------------------------
    # Mutations
    # -------------------------
    def create(self, fields: Mapping[str, Any]) -> Product:
        self.ensure_loaded()
        cleaned = clean_product_fields(fields, self._default_fee)
        with self._document.lock:
            current = list(self._products)
            new_id = _build_id(cleaned["title"], {p.id for p in current})
            created = Product(id=new_id, sort_order=len(current), **cleaned)
            ordered = self._commit(current + [created])
        logger.info("Created product %s", new_id)
        return next(p for p in ordered if p.id == new_id)

    def update(self, product_id: str, changes: Mapping[str, Any]) -> Optional[Product]:
        """Apply only the supplied fields. Returns None when the id is unknown."""
        self.ensure_loaded()
        with self._document.lock:
            current = list(self._products)
            index = next((i for i, p in enumerate(current) if p.id == product_id), -1)
            if index == -1:
                return None

            merged = current[index].to_dict()
            for key in EDITABLE_FIELDS:
                if key in changes:
                    merged[key] = changes[key]
            cleaned = clean_product_fields(merged, self._default_fee)
            current[index] = replace(current[index], **cleaned)
            ordered = self._commit(current)
        logger.info("Updated product %s", product_id)
        return next(p for p in ordered if p.id == product_id)

    def delete(self, product_id: str) -> Optional[Product]:
        """Remove a product. Returns the removed record, or None when the id is unknown."""
        self.ensure_loaded()
        with self._document.lock:
            current = list(self._products)
            removed = next((p for p in current if p.id == product_id), None)
            if removed is None:
                return None
            self._commit([p for p in current if p.id != product_id])
        logger.info("Deleted product %s", product_id)
        return removed

    def reorder(self, product_ids: Any) -> List[Product]:
        self.ensure_loaded()
        if not isinstance(product_ids, (list, tuple)) or not all(isinstance(x, str) for x in product_ids):
            raise ValidationError("Product order must be a list of product ids.")

        with self._document.lock:
            current = {p.id: p for p in self._products}
            seen: Set[str] = set()
            for pid in product_ids:
                if pid in seen:
                    raise ValidationError(f"Duplicate product id in order: {pid}")
                if pid not in current:
                    raise ValidationError(f"Unknown product id: {pid}")
                seen.add(pid)
            if len(seen) != len(current):
                raise ValidationError("Product order must include every product exactly once.")

            reordered = [replace(current[pid], sort_order=i) for i, pid in enumerate(product_ids)]
            result = self._commit(reordered)
        logger.info("Reordered %d products", len(result))
        return list(result)
