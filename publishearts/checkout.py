"""Cart pricing, Stripe Checkout session construction and order summaries.

Prices, titles and quantities are always re-derived from the live catalog;
the client only supplies ``{id, quantity}`` pairs. Stock is a flag, not a
counter, so nothing is reserved while a checkout is open.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import NotFoundError, ServiceUnavailableError, UpstreamError, ValidationError
from .payments import CHECKOUT_COMPLETED, CheckoutProvider
from .product_store import Product, ProductStore
from .shipping import DEFAULT_MINIMUM_CENTS, DEFAULT_UNIT_WEIGHT_LBS, ShippingQuote, quote_shipping

logger = logging.getLogger(__name__)

MIN_QUANTITY = 1
MAX_QUANTITY = 10
CART_SUMMARY_MAX = 500
SHIPPING_LINE_NAME = "Shipping"
DEFAULT_ITEM_NAME = "Book"

_SUMMARY_ENTRY_RE = re.compile(r"^(.*)\s+x(\d+)$", re.IGNORECASE)


def clamp_quantity(value: Any) -> int:
    try:
        qty = int(value)
    except (TypeError, ValueError):
        qty = MIN_QUANTITY
    except OverflowError:
        # float infinities
        qty = MAX_QUANTITY if value > 0 else MIN_QUANTITY
    return max(MIN_QUANTITY, min(MAX_QUANTITY, qty))


@dataclass(frozen=True)
class PricedLine:
    product: Product
    quantity: int

    @property
    def line_total_cents(self) -> int:
        return self.product.price_cents * self.quantity


@dataclass(frozen=True)
class CheckoutRequest:
    lines: Tuple[PricedLine, ...]
    items_subtotal_cents: int
    shipping: ShippingQuote

    @property
    def units_total(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def shippable_units(self) -> int:
        return self.shipping.shippable_units

    @property
    def shipping_cents(self) -> int:
        return self.shipping.cents

    @property
    def total_cents(self) -> int:
        return self.items_subtotal_cents + self.shipping_cents

    def cart_summary(self) -> str:
        parts = [f"{line.product.title} x{line.quantity}" for line in self.lines]
        return " | ".join(parts)[:CART_SUMMARY_MAX]

    def metadata(self, storefront: str) -> Dict[str, str]:
        # Stripe metadata values are strings
        return {
            "storefront": storefront,
            "units_total": str(self.units_total),
            "shippable_units": str(self.shippable_units),
            "shipping_weight_lbs": format(self.shipping.weight_lbs, "f"),
            "billable_weight_lbs": str(self.shipping.billable_lbs),
            "items_subtotal_cents": str(self.items_subtotal_cents),
            "shipping_total_cents": str(self.shipping_cents),
            "cart_summary": self.cart_summary(),
        }

    def line_items(self, currency: str) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        for line in self.lines:
            product_data: Dict[str, Any] = {"name": line.product.title}
            if line.product.subtitle:
                product_data["description"] = line.product.subtitle
            items.append(
                {
                    "price_data": {
                        "currency": currency,
                        "unit_amount": line.product.price_cents,
                        "product_data": product_data,
                    },
                    "quantity": line.quantity,
                }
            )
        if self.shipping_cents > 0:
            items.append(
                {
                    "price_data": {
                        "currency": currency,
                        "unit_amount": self.shipping_cents,
                        "product_data": {
                            "name": SHIPPING_LINE_NAME,
                            "description": f"{self.shipping.billable_lbs} lb shipping",
                        },
                    },
                    "quantity": 1,
                }
            )
        return items


@dataclass(frozen=True)
class OrderLine:
    name: str
    quantity: int
    amount_total: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "quantity": self.quantity, "amountTotal": self.amount_total}


@dataclass(frozen=True)
class OrderSummary:
    id: str
    amount_total: int
    currency: str
    customer_email: str
    line_items: Tuple[OrderLine, ...]
    shipping_cents: Optional[int]
    customer_details: Dict[str, Any] = field(default_factory=dict)
    shipping_details: Optional[Dict[str, Any]] = None
    from_metadata: bool = False

    @property
    def units_total(self) -> int:
        return sum(item.quantity for item in self.line_items)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "amountTotal": self.amount_total,
            "currency": self.currency,
            "customerEmail": self.customer_email,
            "shippingDetails": self.shipping_details,
            "lineItems": [item.to_dict() for item in self.line_items],
            "shippingCents": self.shipping_cents,
        }


def parse_cart_summary(metadata: Optional[Mapping[str, Any]]) -> List[OrderLine]:
    """Rebuild order lines from the ``"Title xN | Title xN"`` metadata string."""
    summary = str((metadata or {}).get("cart_summary") or "").strip()
    if not summary:
        return []

    lines: List[OrderLine] = []
    for entry in (part.strip() for part in summary.split("|")):
        if not entry:
            continue
        m = _SUMMARY_ENTRY_RE.match(entry)
        if not m:
            lines.append(OrderLine(name=entry, quantity=1))
            continue
        lines.append(
            OrderLine(
                name=m.group(1).strip() or DEFAULT_ITEM_NAME,
                quantity=max(1, int(m.group(2))),
            )
        )
    return lines


def is_shipping_line(name: str) -> bool:
    return name.strip().lower() == SHIPPING_LINE_NAME.lower()


def _int_or_none(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


class CheckoutEngine:
    def __init__(
        self,
        products: ProductStore,
        provider: Optional[CheckoutProvider],
        *,
        currency: str = "usd",
        allowed_countries: Sequence[str] = ("US",),
        storefront: str = "publishearts.com",
        unit_weight_lbs: float = DEFAULT_UNIT_WEIGHT_LBS,
        minimum_shipping_cents: int = DEFAULT_MINIMUM_CENTS,
        debug_errors: bool = False,
    ) -> None:
        self.products = products
        self.provider = provider
        self.currency = currency.lower()
        self.allowed_countries = [c.upper() for c in allowed_countries]
        self.storefront = storefront
        self.unit_weight_lbs = unit_weight_lbs
        self.minimum_shipping_cents = minimum_shipping_cents
        self.debug_errors = debug_errors

    @property
    def configured(self) -> bool:
        return self.provider is not None

    def _require_provider(self) -> CheckoutProvider:
        if self.provider is None:
            raise ServiceUnavailableError("Stripe is not configured. Add STRIPE_SECRET_KEY in your .env file.")
        return self.provider

    # -------------------------
    # Pricing
    # -------------------------
    def _checked_product(self, entry: Any) -> Product:
        pid = str(entry.get("id") or "").strip() if isinstance(entry, Mapping) else ""
        product = self.products.find_by_id(pid) if pid else None
        if product is None:
            raise ValidationError(f"Unknown product id: {pid or '(missing)'}")
        if not product.is_visible:
            raise ValidationError(f"{product.title} is not available right now.")
        if product.is_coming_soon:
            raise ValidationError(f"{product.title} is coming soon and cannot be ordered yet.")
        if not product.in_stock:
            raise ValidationError(f"{product.title} is sold out right now.")
        return product

    def build_checkout_request(self, cart_lines: Any) -> CheckoutRequest:
        """Price a client cart against the live catalog. All-or-nothing."""
        if not isinstance(cart_lines, (list, tuple)) or not cart_lines:
            raise ValidationError("Your cart is empty.")

        lines: List[PricedLine] = []
        subtotal = 0
        shippable_units = 0
        for entry in cart_lines:
            product = self._checked_product(entry)
            quantity = clamp_quantity(entry.get("quantity"))
            lines.append(PricedLine(product=product, quantity=quantity))
            subtotal += product.price_cents * quantity
            if product.shipping_enabled:
                shippable_units += quantity

        shipping = quote_shipping(
            shippable_units,
            per_unit_weight_lbs=self.unit_weight_lbs,
            minimum_cents=self.minimum_shipping_cents,
        )
        return CheckoutRequest(lines=tuple(lines), items_subtotal_cents=subtotal, shipping=shipping)

    def session_params(self, request: CheckoutRequest, app_url: str) -> Dict[str, Any]:
        base_url = app_url.rstrip("/")
        return {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": request.line_items(self.currency),
            "billing_address_collection": "required",
            "phone_number_collection": {"enabled": True},
            "shipping_address_collection": {"allowed_countries": list(self.allowed_countries)},
            "allow_promotion_codes": True,
            "success_url": f"{base_url}/success?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{base_url}/cancel",
            "metadata": request.metadata(self.storefront),
        }

    def start_checkout(self, cart_lines: Any, app_url: str) -> Dict[str, Any]:
        """Create the Stripe session for a cart. Returns ``{"id", "url"}``."""
        provider = self._require_provider()
        request = self.build_checkout_request(cart_lines)
        params = self.session_params(request, app_url)
        try:
            session = provider.create_session(params)
        except UpstreamError as e:
            logger.exception("Failed creating checkout session: %s", e.detail or e.message)
            message = "Could not start checkout right now."
            if self.debug_errors and e.detail:
                message = f"{message} ({e.detail[:160]})"
            raise UpstreamError(message, detail=e.detail) from e

        url = session.get("url")
        if not url:
            raise UpstreamError("Could not start checkout right now.", detail="Session has no redirect URL.")
        logger.info(
            "Checkout session %s created: %d units, subtotal %d, shipping %d",
            session.get("id"),
            request.units_total,
            request.items_subtotal_cents,
            request.shipping_cents,
        )
        return {"id": session.get("id"), "url": url}

    # -------------------------
    # Completed orders
    # -------------------------
    def _provider_lines(self, provider: CheckoutProvider, session_id: str) -> List[OrderLine]:
        try:
            raw_items = provider.list_line_items(session_id)
        except UpstreamError as e:
            logger.warning("Could not list line items for %s: %s", session_id, e.detail or e.message)
            return []
        lines: List[OrderLine] = []
        for item in raw_items:
            lines.append(
                OrderLine(
                    name=str(item.get("description") or DEFAULT_ITEM_NAME),
                    quantity=max(1, _int_or_none(item.get("quantity")) or 1),
                    amount_total=_int_or_none(item.get("amount_total")),
                )
            )
        return lines

    def describe_completed_session(self, session_id: str, *, require_paid: bool = True) -> OrderSummary:
        provider = self._require_provider()
        session_id = (session_id or "").strip()
        if not session_id:
            raise NotFoundError("Order not found.")

        try:
            session = provider.retrieve_session(session_id)
        except UpstreamError as e:
            logger.warning("Could not retrieve session %s: %s", session_id, e.detail or e.message)
            raise NotFoundError("Order not found.") from e
        if not session or (require_paid and session.get("payment_status") != "paid"):
            raise NotFoundError("Order not found.")

        metadata = session.get("metadata") or {}
        lines = self._provider_lines(provider, session_id)
        from_metadata = False
        if lines:
            shipping_lines = [line for line in lines if is_shipping_line(line.name)]
            product_lines = [line for line in lines if not is_shipping_line(line.name)]
            shipping_cents: Optional[int] = sum(line.amount_total or 0 for line in shipping_lines)
        else:
            product_lines = parse_cart_summary(metadata)
            shipping_cents = _int_or_none(metadata.get("shipping_total_cents"))
            from_metadata = bool(product_lines)
            if from_metadata:
                logger.warning("Using metadata fallback for line items on session %s", session_id)

        customer_details = session.get("customer_details") or {}
        shipping_details = session.get("shipping_details") or (
            (session.get("collected_information") or {}).get("shipping_details")
        )
        return OrderSummary(
            id=str(session.get("id") or session_id),
            amount_total=_int_or_none(session.get("amount_total")) or 0,
            currency=str(session.get("currency") or self.currency),
            customer_email=str(customer_details.get("email") or session.get("customer_email") or ""),
            line_items=tuple(product_lines),
            shipping_cents=shipping_cents,
            customer_details=customer_details,
            shipping_details=shipping_details or None,
            from_metadata=from_metadata,
        )

    def verify_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        return self._require_provider().construct_event(payload, signature)

    def order_from_event(self, event: Mapping[str, Any]) -> Optional[OrderSummary]:
        """Summary for a ``checkout.session.completed`` event, else None."""
        if event.get("type") != CHECKOUT_COMPLETED:
            return None
        session_id = str(((event.get("data") or {}).get("object") or {}).get("id") or "")
        # Re-fetch for complete customer and shipping fields.
        return self.describe_completed_session(session_id, require_paid=False)
