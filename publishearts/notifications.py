"""Order emails: a receipt for the customer and a notification for the owner.

Both are best effort. By the time they are sent the payment has already
succeeded, so a missing configuration or a transport failure is logged and
never raised.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Any, Dict, List, Optional, Sequence

from markupsafe import escape

from .checkout import OrderLine, OrderSummary
from .money import format_money

logger = logging.getLogger(__name__)

NOT_PROVIDED = "Not provided"


class MailTransport(ABC):
    @abstractmethod
    def send(self, to: str, sender: str, subject: str, text: str, html: str) -> None:
        ...


class SmtpTransport(MailTransport):
    def __init__(
        self,
        host: str,
        port: int = 587,
        *,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_ssl: bool = False,
        timeout: float = 20.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_ssl = use_ssl
        self.timeout = timeout

    def send(self, to: str, sender: str, subject: str, text: str, html: str) -> None:
        message = EmailMessage()
        message["From"] = sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text)
        message.add_alternative(html, subtype="html")

        context = ssl.create_default_context()
        if self.use_ssl:
            smtp: smtplib.SMTP = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=context)
        else:
            smtp = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        with smtp:
            if not self.use_ssl:
                smtp.starttls(context=context)
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(message)


# -------------------------
# Rendering helpers
# -------------------------
def format_address(address: Optional[Dict[str, Any]]) -> str:
    if not address:
        return NOT_PROVIDED
    parts = [
        address.get(k)
        for k in ("line1", "line2", "city", "state", "postal_code", "country")
    ]
    joined = ", ".join(str(p) for p in parts if p)
    return joined or NOT_PROVIDED


def normalize_line_items(items: Sequence[Any]) -> List[OrderLine]:
    """Coerce order lines (or loose dicts) into OrderLine with sane defaults."""
    out: List[OrderLine] = []
    for item in items or []:
        if isinstance(item, OrderLine):
            name, quantity, amount = item.name, item.quantity, item.amount_total
        elif isinstance(item, dict):
            name = item.get("name")
            quantity = item.get("quantity")
            amount = item.get("amountTotal")
        else:
            continue
        try:
            qty = max(1, int(quantity))
        except (TypeError, ValueError):
            qty = 1
        if isinstance(amount, bool) or not isinstance(amount, int):
            amount = None
        out.append(OrderLine(name=str(name or "Book"), quantity=qty, amount_total=amount))
    return out


def line_items_text(items: Sequence[OrderLine], currency: str) -> str:
    if not items:
        return "- No line items captured"
    rows = []
    for item in items:
        row = f"- {item.name} x{item.quantity}"
        if item.amount_total is not None:
            row += f" ({format_money(item.amount_total, currency)})"
        rows.append(row)
    return "\n".join(rows)


def line_items_html(items: Sequence[OrderLine], currency: str) -> str:
    if not items:
        return '<tr><td colspan="3" style="padding:10px 0; color:#6b7280;">No line items captured.</td></tr>'
    rows = []
    for item in items:
        total = format_money(item.amount_total, currency) if item.amount_total is not None else "-"
        rows.append(
            "<tr>"
            f'<td style="padding:8px 0;">{escape(item.name)}</td>'
            f'<td style="padding:8px 0; text-align:center;">{item.quantity}</td>'
            f'<td style="padding:8px 0; text-align:right;">{escape(total)}</td>'
            "</tr>"
        )
    return "".join(rows)


def _items_table(items_html: str) -> str:
    th = "border-bottom:1px solid #d1d5db; padding:6px 0;"
    return (
        '<table style="width:100%; border-collapse:collapse; margin:0 0 16px;">'
        "<thead><tr>"
        f'<th style="text-align:left; {th}">Item</th>'
        f'<th style="text-align:center; {th}">Qty</th>'
        f'<th style="text-align:right; {th}">Total</th>'
        "</tr></thead>"
        f"<tbody>{items_html}</tbody></table>"
    )


class NotificationDispatcher:
    def __init__(
        self,
        transport: Optional[MailTransport],
        *,
        from_email: Optional[str],
        owner_email: Optional[str] = None,
        brand_name: str = "PublisHearts",
    ) -> None:
        self.transport = transport
        self.from_email = from_email
        self.owner_email = owner_email
        self.brand_name = brand_name
        self._warned_unconfigured = False
        self._warned_owner = False

    @property
    def configured(self) -> bool:
        configured = bool(self.transport and self.from_email)
        if not configured and not self._warned_unconfigured:
            self._warned_unconfigured = True
            logger.warning("SMTP is not fully configured. Receipt and order emails are disabled.")
        return configured

    def _deliver(self, to: str, subject: str, text: str, html: str) -> bool:
        try:
            self.transport.send(to, self.from_email, subject, text, html)
        except Exception:
            logger.exception("Failed sending '%s' to %s", subject, to)
            return False
        return True

    def _context(self, order: OrderSummary) -> Dict[str, Any]:
        items = normalize_line_items(order.line_items)
        shipping = order.shipping_details or {}
        return {
            "items": items,
            "units": sum(i.quantity for i in items),
            "total": format_money(order.amount_total, order.currency),
            "shipping_total": (
                format_money(order.shipping_cents, order.currency) if order.shipping_cents is not None else None
            ),
            "shipping_name": shipping.get("name") or NOT_PROVIDED,
            "shipping_address": format_address(shipping.get("address")),
        }

    def send_customer_receipt(self, order: OrderSummary) -> bool:
        if not self.configured:
            return False
        if not order.customer_email:
            logger.warning("No customer email found for completed session %s", order.id)
            return False

        ctx = self._context(order)
        shipping_line = f"Shipping: {ctx['shipping_total']}\n" if ctx["shipping_total"] else ""
        text = (
            f"Thank you for your order from {self.brand_name}.\n\n"
            f"Order ID: {order.id}\n"
            f"Total: {ctx['total']}\n"
            f"{shipping_line}"
            f"Units ordered: {ctx['units']}\n\n"
            "Shipping:\n"
            f"Name: {ctx['shipping_name']}\n"
            f"Address: {ctx['shipping_address']}\n\n"
            "Items:\n"
            f"{line_items_text(ctx['items'], order.currency)}\n\n"
            "If you have any questions, reply to this email."
        )
        shipping_html = (
            f'<p style="margin:0 0 16px;">Shipping: <strong>{escape(ctx["shipping_total"])}</strong></p>'
            if ctx["shipping_total"]
            else ""
        )
        html = (
            '<div style="font-family:Arial,sans-serif; color:#1f2937; line-height:1.4;">'
            '<h2 style="margin:0 0 12px;">Thank you for your order.</h2>'
            f'<p style="margin:0 0 8px;">Order ID: <strong>{escape(order.id)}</strong></p>'
            f'<p style="margin:0 0 16px;">Total: <strong>{escape(ctx["total"])}</strong></p>'
            f"{shipping_html}"
            f'<p style="margin:0 0 16px;">Units ordered: <strong>{ctx["units"]}</strong></p>'
            '<h3 style="margin:0 0 8px;">Shipping</h3>'
            f'<p style="margin:0 0 4px;">Name: {escape(ctx["shipping_name"])}</p>'
            f'<p style="margin:0 0 16px;">Address: {escape(ctx["shipping_address"])}</p>'
            f"{_items_table(line_items_html(ctx['items'], order.currency))}"
            '<p style="margin:0;">If you have any questions, reply to this email.</p>'
            "</div>"
        )
        subject = f"{self.brand_name} receipt - Order {order.id}"
        sent = self._deliver(order.customer_email, subject, text, html)
        if sent:
            logger.info("Customer receipt sent for session %s -> %s", order.id, order.customer_email)
        return sent

    def send_owner_notification(self, order: OrderSummary) -> bool:
        if not self.configured:
            return False
        if not self.owner_email:
            if not self._warned_owner:
                self._warned_owner = True
                logger.warning("OWNER_EMAIL is missing. Store owner notifications are disabled.")
            return False

        ctx = self._context(order)
        customer = order.customer_details or {}
        customer_name = customer.get("name") or "Unknown"
        customer_email = customer.get("email") or order.customer_email or "Unknown"
        customer_phone = customer.get("phone") or NOT_PROVIDED
        shipping_line = f"Shipping: {ctx['shipping_total']}\n" if ctx["shipping_total"] else ""

        text = (
            "New order received.\n\n"
            f"Order ID: {order.id}\n"
            f"Total: {ctx['total']}\n"
            f"{shipping_line}"
            f"Units ordered: {ctx['units']}\n\n"
            "Customer:\n"
            f"Name: {customer_name}\n"
            f"Email: {customer_email}\n"
            f"Phone: {customer_phone}\n\n"
            "Shipping:\n"
            f"Name: {ctx['shipping_name']}\n"
            f"Address: {ctx['shipping_address']}\n\n"
            "Items:\n"
            f"{line_items_text(ctx['items'], order.currency)}"
        )
        html = (
            '<div style="font-family:Arial,sans-serif; color:#1f2937; line-height:1.4;">'
            '<h2 style="margin:0 0 12px;">New order received</h2>'
            f'<p style="margin:0 0 4px;">Order ID: <strong>{escape(order.id)}</strong></p>'
            f'<p style="margin:0 0 16px;">Total: <strong>{escape(ctx["total"])}</strong></p>'
            f'<p style="margin:0 0 16px;">Units ordered: <strong>{ctx["units"]}</strong></p>'
            '<h3 style="margin:0 0 8px;">Customer</h3>'
            f'<p style="margin:0 0 4px;">Name: {escape(customer_name)}</p>'
            f'<p style="margin:0 0 4px;">Email: {escape(customer_email)}</p>'
            f'<p style="margin:0 0 16px;">Phone: {escape(customer_phone)}</p>'
            '<h3 style="margin:0 0 8px;">Shipping</h3>'
            f'<p style="margin:0 0 4px;">Name: {escape(ctx["shipping_name"])}</p>'
            f'<p style="margin:0 0 16px;">Address: {escape(ctx["shipping_address"])}</p>'
            '<h3 style="margin:0 0 8px;">Items</h3>'
            f"{_items_table(line_items_html(ctx['items'], order.currency))}"
            "</div>"
        )
        subject = f"New {self.brand_name} order - {order.id}"
        sent = self._deliver(self.owner_email, subject, text, html)
        if sent:
            logger.info("Owner notification sent for session %s", order.id)
        return sent

    def send_order_emails(self, order: OrderSummary) -> Dict[str, bool]:
        return {
            "receipt": self.send_customer_receipt(order),
            "owner": self.send_owner_notification(order),
        }
