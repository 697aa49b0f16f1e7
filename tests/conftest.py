"""Shared test fixtures: temporary data files, a fake Stripe and a recording mailer."""

import json
from typing import Any, Dict, List, Optional

import pytest

from publishearts.app import create_app
from publishearts.checkout import CheckoutEngine
from publishearts.config import Config
from publishearts.errors import UpstreamError, ValidationError
from publishearts.notifications import MailTransport
from publishearts.payments import CheckoutProvider
from publishearts.product_store import ProductStore
from publishearts.site_settings_store import SiteSettingsStore

ADMIN_PASSWORD = "correct horse battery staple"
VALID_SIGNATURE = "t=1,v1=valid"

SAMPLE_PRODUCTS = [
    {
        "id": "a",
        "title": "A",
        "priceCents": 1000,
        "imageUrl": "https://example.com/a.jpg",
        "shippingEnabled": True,
        "inStock": True,
        "sortOrder": 0,
    },
    {
        "id": "b",
        "title": "B",
        "priceCents": 500,
        "imageUrl": "https://example.com/b.jpg",
        "shippingEnabled": False,
        "inStock": True,
        "sortOrder": 1,
    },
    {
        "id": "c",
        "title": "C",
        "priceCents": 700,
        "imageUrl": "https://example.com/c.jpg",
        "shippingEnabled": True,
        "inStock": False,
        "sortOrder": 2,
    },
]


class FakeCheckoutProvider(CheckoutProvider):
    """In-memory stand-in for Stripe Checkout."""

    def __init__(self) -> None:
        self.created: List[Dict[str, Any]] = []
        self.sessions: Dict[str, Dict[str, Any]] = {}
        self.line_items: Dict[str, List[Dict[str, Any]]] = {}
        self.fail_create: Optional[str] = None
        self.fail_line_items = False

    def create_session(self, params: Dict[str, Any]) -> Dict[str, Any]:
        if self.fail_create:
            raise UpstreamError("Could not start checkout right now.", detail=self.fail_create)
        self.created.append(params)
        session_id = f"cs_test_{len(self.created)}"
        return {"id": session_id, "url": f"https://checkout.stripe.test/{session_id}"}

    def retrieve_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        if session_id not in self.sessions:
            raise UpstreamError("Order not found.", detail=f"No such checkout.session: {session_id}")
        return self.sessions[session_id]

    def list_line_items(self, session_id: str) -> List[Dict[str, Any]]:
        if self.fail_line_items:
            raise UpstreamError("Order not found.", detail="line items unavailable")
        return list(self.line_items.get(session_id, []))

    def construct_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        if signature != VALID_SIGNATURE:
            raise ValidationError("Webhook signature verification failed.")
        return json.loads(payload)

    def add_paid_session(self, session_id: str = "cs_paid", **overrides: Any) -> Dict[str, Any]:
        session = {
            "id": session_id,
            "payment_status": "paid",
            "amount_total": 3545,
            "currency": "usd",
            "customer_details": {
                "email": "reader@example.com",
                "name": "Ada Reader",
                "phone": "+1 555 0100",
            },
            "shipping_details": {
                "name": "Ada Reader",
                "address": {
                    "line1": "1 Book Lane",
                    "city": "Portland",
                    "state": "OR",
                    "postal_code": "97201",
                    "country": "US",
                },
            },
            "metadata": {
                "cart_summary": "A x2 | B x1",
                "shipping_total_cents": "1045",
            },
        }
        session.update(overrides)
        self.sessions[session_id] = session
        self.line_items[session_id] = [
            {"description": "A", "quantity": 2, "amount_total": 2000},
            {"description": "B", "quantity": 1, "amount_total": 500},
            {"description": "Shipping", "quantity": 1, "amount_total": 1045},
        ]
        return session


class RecordingTransport(MailTransport):
    """Mail transport that keeps every message instead of sending it."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: List[Dict[str, str]] = []
        self.fail = fail

    def send(self, to: str, sender: str, subject: str, text: str, html: str) -> None:
        if self.fail:
            raise ConnectionError("SMTP server unavailable")
        self.sent.append({"to": to, "sender": sender, "subject": subject, "text": text, "html": html})


@pytest.fixture
def data_dir(tmp_path):
    """Return a fresh data directory for one test."""
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def products_file(data_dir):
    return data_dir / "products.json"


@pytest.fixture
def product_store(products_file):
    """Product store seeded with A ($10, ships), B ($5, no shipping), C (sold out)."""
    return ProductStore(products_file, seed=SAMPLE_PRODUCTS)


@pytest.fixture
def settings_store(data_dir):
    return SiteSettingsStore(data_dir / "site-settings.json")


@pytest.fixture
def fake_provider():
    return FakeCheckoutProvider()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def engine(product_store, fake_provider):
    return CheckoutEngine(product_store, fake_provider)


@pytest.fixture
def config(data_dir):
    return Config(
        data_dir=data_dir,
        app_url="http://shop.test",
        admin_password=ADMIN_PASSWORD,
        from_email="shop@example.com",
        owner_email="owner@example.com",
    )


@pytest.fixture
def app(config, product_store, settings_store, fake_provider, transport):
    """Flask app wired to temporary stores and fake collaborators."""
    flask_app = create_app(
        config,
        product_store=product_store,
        settings_store=settings_store,
        checkout_provider=fake_provider,
        mail_transport=transport,
    )
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture
def admin_headers():
    return {"X-Admin-Password": ADMIN_PASSWORD}


@pytest.fixture
def valid_signature():
    """Signature header the fake provider accepts."""
    return VALID_SIGNATURE
