"""Tests for cart pricing, session construction and order summaries."""

import pytest

from publishearts.checkout import (
    CheckoutEngine,
    clamp_quantity,
    parse_cart_summary,
)
from publishearts.errors import (
    ErrorKind,
    NotFoundError,
    ServiceUnavailableError,
    UpstreamError,
    ValidationError,
)


class TestBuildCheckoutRequest:
    """Pricing a cart against the live catalog."""

    def test_example_cart_totals(self, engine):
        """A x2 ships, B x1 does not: 2500 subtotal plus the 3 lb rate."""
        request = engine.build_checkout_request([{"id": "a", "quantity": 2}, {"id": "b", "quantity": 1}])
        assert request.items_subtotal_cents == 2500
        assert request.shippable_units == 2
        assert request.shipping_cents == 1045
        assert request.total_cents == 3545
        assert request.units_total == 3

    def test_sold_out_product_rejects_whole_cart(self, engine, fake_provider):
        with pytest.raises(ValidationError) as exc:
            engine.build_checkout_request([{"id": "a", "quantity": 1}, {"id": "c", "quantity": 1}])
        assert exc.value.message == "C is sold out right now."
        assert fake_provider.created == []

    @pytest.mark.parametrize("cart", [[], None, "a", {"id": "a"}])
    def test_empty_or_malformed_cart_is_rejected(self, engine, cart):
        with pytest.raises(ValidationError, match="Your cart is empty."):
            engine.build_checkout_request(cart)

    def test_unknown_product(self, engine):
        with pytest.raises(ValidationError, match="Unknown product id: nope"):
            engine.build_checkout_request([{"id": "nope", "quantity": 1}])

    def test_hidden_product(self, engine, product_store):
        product_store.update("a", {"isVisible": False})
        with pytest.raises(ValidationError, match="A is not available right now."):
            engine.build_checkout_request([{"id": "a", "quantity": 1}])

    def test_coming_soon_product(self, engine, product_store):
        product_store.update("a", {"isComingSoon": True})
        with pytest.raises(ValidationError, match="A is coming soon and cannot be ordered yet."):
            engine.build_checkout_request([{"id": "a", "quantity": 1}])

    def test_prices_come_from_catalog(self, engine):
        """Client-supplied prices and titles are ignored."""
        request = engine.build_checkout_request(
            [{"id": "a", "quantity": 1, "priceCents": 1, "title": "Free book"}]
        )
        assert request.items_subtotal_cents == 1000
        assert request.lines[0].product.title == "A"

    def test_no_shipping_when_nothing_ships(self, engine):
        request = engine.build_checkout_request([{"id": "b", "quantity": 3}])
        assert request.shipping_cents == 0
        assert len(request.line_items("usd")) == 1

    @pytest.mark.parametrize(
        "raw,expected",
        [
            (0, 1), (-5, 1), (1, 1), (10, 10), (11, 10), ("3", 3), ("abc", 1), (None, 1), (2.9, 2),
            (float("inf"), 10), (float("-inf"), 1), (float("nan"), 1),
        ],
    )
    def test_quantity_is_clamped(self, raw, expected):
        assert clamp_quantity(raw) == expected


class TestSessionParams:
    """What gets sent to Stripe."""

    def test_session_params(self, engine):
        request = engine.build_checkout_request([{"id": "a", "quantity": 2}, {"id": "b", "quantity": 1}])
        params = engine.session_params(request, "http://shop.test/")

        assert params["mode"] == "payment"
        assert params["payment_method_types"] == ["card"]
        assert params["billing_address_collection"] == "required"
        assert params["phone_number_collection"] == {"enabled": True}
        assert params["shipping_address_collection"] == {"allowed_countries": ["US"]}
        assert params["allow_promotion_codes"] is True
        assert params["success_url"] == "http://shop.test/success?session_id={CHECKOUT_SESSION_ID}"
        assert params["cancel_url"] == "http://shop.test/cancel"

        names = [item["price_data"]["product_data"]["name"] for item in params["line_items"]]
        assert names == ["A", "B", "Shipping"]
        assert params["line_items"][-1]["price_data"]["unit_amount"] == 1045

    def test_metadata(self, engine):
        request = engine.build_checkout_request([{"id": "a", "quantity": 2}, {"id": "b", "quantity": 1}])
        metadata = request.metadata("publishearts.com")
        assert metadata == {
            "storefront": "publishearts.com",
            "units_total": "3",
            "shippable_units": "2",
            "shipping_weight_lbs": "3.0",
            "billable_weight_lbs": "3",
            "items_subtotal_cents": "2500",
            "shipping_total_cents": "1045",
            "cart_summary": "A x2 | B x1",
        }

    def test_cart_summary_is_truncated(self, engine, product_store):
        long_title = "L" * 140
        ids = [product_store.create({"title": f"{long_title}{i}"[-140:], "priceCents": 1000}).id for i in range(5)]
        request = engine.build_checkout_request([{"id": pid, "quantity": 1} for pid in ids])
        assert len(request.cart_summary()) == 500


class TestStartCheckout:

    def test_returns_session_url(self, engine, fake_provider):
        result = engine.start_checkout([{"id": "a", "quantity": 1}], "http://shop.test")
        assert result == {"id": "cs_test_1", "url": "https://checkout.stripe.test/cs_test_1"}
        assert len(fake_provider.created) == 1

    def test_unconfigured_provider(self, product_store):
        engine = CheckoutEngine(product_store, None)
        with pytest.raises(ServiceUnavailableError) as exc:
            engine.start_checkout([{"id": "a", "quantity": 1}], "http://shop.test")
        assert exc.value.status == 503

    def test_provider_failure_is_generic(self, engine, fake_provider):
        fake_provider.fail_create = "card_declined: secret detail"
        with pytest.raises(UpstreamError) as exc:
            engine.start_checkout([{"id": "a", "quantity": 1}], "http://shop.test")
        assert exc.value.message == "Could not start checkout right now."
        assert exc.value.kind is ErrorKind.UPSTREAM

    def test_debug_errors_add_detail(self, product_store, fake_provider):
        engine = CheckoutEngine(product_store, fake_provider, debug_errors=True)
        fake_provider.fail_create = "api_key_invalid"
        with pytest.raises(UpstreamError) as exc:
            engine.start_checkout([{"id": "a", "quantity": 1}], "http://shop.test")
        assert exc.value.message == "Could not start checkout right now. (api_key_invalid)"


class TestDescribeCompletedSession:
    """Rebuilding an order from a completed session."""

    def test_paid_session_summary(self, engine, fake_provider):
        fake_provider.add_paid_session()
        order = engine.describe_completed_session("cs_paid")

        assert order.amount_total == 3545
        assert order.customer_email == "reader@example.com"
        assert [(line.name, line.quantity) for line in order.line_items] == [("A", 2), ("B", 1)]
        assert order.shipping_cents == 1045
        assert order.from_metadata is False

    def test_unpaid_session_is_not_found(self, engine, fake_provider):
        fake_provider.add_paid_session(payment_status="unpaid")
        with pytest.raises(NotFoundError, match="Order not found."):
            engine.describe_completed_session("cs_paid")

    def test_unknown_session_is_not_found(self, engine):
        with pytest.raises(NotFoundError):
            engine.describe_completed_session("cs_missing")

    def test_falls_back_to_metadata_when_listing_fails(self, engine, fake_provider):
        fake_provider.add_paid_session()
        fake_provider.fail_line_items = True
        order = engine.describe_completed_session("cs_paid")

        assert order.from_metadata is True
        assert [(line.name, line.quantity, line.amount_total) for line in order.line_items] == [
            ("A", 2, None),
            ("B", 1, None),
        ]
        assert order.shipping_cents == 1045

    def test_falls_back_to_metadata_when_listing_is_empty(self, engine, fake_provider):
        fake_provider.add_paid_session()
        fake_provider.line_items["cs_paid"] = []
        order = engine.describe_completed_session("cs_paid")
        assert order.units_total == 3

    def test_reads_newer_shipping_details_location(self, engine, fake_provider):
        details = {"name": "New API", "address": {"line1": "2 Page St"}}
        fake_provider.add_paid_session(
            shipping_details=None,
            collected_information={"shipping_details": details},
        )
        order = engine.describe_completed_session("cs_paid")
        assert order.shipping_details == details

    def test_to_dict(self, engine, fake_provider):
        fake_provider.add_paid_session()
        data = engine.describe_completed_session("cs_paid").to_dict()
        assert data["id"] == "cs_paid"
        assert data["amountTotal"] == 3545
        assert data["lineItems"][0] == {"name": "A", "quantity": 2, "amountTotal": 2000}


class TestOrderFromEvent:

    def test_other_events_are_ignored(self, engine):
        assert engine.order_from_event({"type": "payment_intent.created"}) is None

    def test_completed_event_does_not_require_paid(self, engine, fake_provider):
        fake_provider.add_paid_session(payment_status="unpaid")
        event = {"type": "checkout.session.completed", "data": {"object": {"id": "cs_paid"}}}
        order = engine.order_from_event(event)
        assert order.id == "cs_paid"


class TestParseCartSummary:

    def test_parses_entries(self):
        lines = parse_cart_summary({"cart_summary": "Book One x2 | Two | Three X10"})
        assert [(line.name, line.quantity) for line in lines] == [
            ("Book One", 2),
            ("Two", 1),
            ("Three", 10),
        ]

    def test_missing_summary(self):
        assert parse_cart_summary(None) == []
        assert parse_cart_summary({}) == []
