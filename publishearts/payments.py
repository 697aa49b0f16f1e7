"""Payment provider port and its Stripe implementation.

The checkout engine talks to ``CheckoutProvider`` only; tests inject a fake.
Everything returned by a provider is plain dicts and lists.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import stripe

from .errors import ServiceUnavailableError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


def _plain(obj: Any) -> Any:
    """Recursively copy Stripe objects into plain dicts and lists."""
    if isinstance(obj, stripe.StripeObject):
        obj = obj.to_dict()
    if isinstance(obj, dict):
        return {k: _plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_plain(v) for v in obj]
    return obj


class CheckoutProvider(ABC):
    @abstractmethod
    def create_session(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Create a hosted checkout session; the result carries ``id`` and ``url``."""

    @abstractmethod
    def retrieve_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def list_line_items(self, session_id: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def construct_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        """Verify a webhook delivery and return the parsed event."""


class StripeCheckoutProvider(CheckoutProvider):
    def __init__(self, api_key: str, webhook_secret: Optional[str] = None) -> None:
        self._api_key = api_key
        self._webhook_secret = webhook_secret

    def create_session(self, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            session = stripe.checkout.Session.create(api_key=self._api_key, **params)
        except stripe.StripeError as e:
            raise UpstreamError("Could not start checkout right now.", detail=str(e)) from e
        return _plain(session)

    def retrieve_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self._api_key)
        except stripe.StripeError as e:
            raise UpstreamError("Order not found.", detail=str(e)) from e
        return _plain(session) if session else None

    def list_line_items(self, session_id: str) -> List[Dict[str, Any]]:
        try:
            items = stripe.checkout.Session.list_line_items(session_id, limit=100, api_key=self._api_key)
        except stripe.StripeError as e:
            raise UpstreamError("Order not found.", detail=str(e)) from e
        return list(_plain(items).get("data") or [])

    def construct_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        if not self._webhook_secret:
            raise ServiceUnavailableError("Missing webhook signature configuration.")
        if not signature:
            raise ValidationError("Missing webhook signature.")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise ValidationError("Webhook signature verification failed.", detail=str(e)) from e
        except ValueError as e:
            raise ValidationError("Invalid webhook payload.", detail=str(e)) from e
        return _plain(event)
