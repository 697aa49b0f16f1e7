from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from flask import (
    Flask,
    jsonify,
    render_template,
    request,
    send_from_directory,
)
from werkzeug.exceptions import RequestEntityTooLarge

from .admin_auth import AdminAuthorizer, require_admin
from .checkout import CheckoutEngine
from .config import Config
from .errors import ErrorKind, NotFoundError, ShopError, ValidationError
from .forms import (
    SETTINGS_IMAGE_INPUTS,
    product_changes,
    request_payload,
    settings_changes,
    wants_removal,
)
from .logging_config import configure_logging
from .money import format_money
from .notifications import MailTransport, NotificationDispatcher, SmtpTransport
from .payments import CheckoutProvider, StripeCheckoutProvider
from .product_store import ProductStore
from .site_settings_store import SiteSettingsStore
from .uploads import UploadStore, has_file

logger = logging.getLogger(__name__)

# product image field -> (upload field, remove flag)
PRODUCT_IMAGE_INPUTS = {"imageUrl": ("image", "removeImage")}


def _default_provider(config: Config) -> Optional[CheckoutProvider]:
    if not config.stripe_configured:
        logger.warning("STRIPE_SECRET_KEY is missing. Checkout is disabled until configured.")
        return None
    return StripeCheckoutProvider(config.stripe_secret_key, config.stripe_webhook_secret)


def _default_transport(config: Config) -> Optional[MailTransport]:
    if not (config.smtp_host and config.smtp_user and config.smtp_pass):
        return None
    return SmtpTransport(
        config.smtp_host,
        config.smtp_port,
        username=config.smtp_user,
        password=config.smtp_pass,
        use_ssl=config.smtp_secure,
    )


def create_app(
    config: Optional[Config] = None,
    *,
    product_store: Optional[ProductStore] = None,
    settings_store: Optional[SiteSettingsStore] = None,
    checkout_provider: Optional[CheckoutProvider] = None,
    mail_transport: Optional[MailTransport] = None,
) -> Flask:
    config = config or Config.from_env()

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.max_upload_mb * 1024 * 1024
    app.json.sort_keys = False

    app.add_template_filter(format_money, name="money")

    products = product_store or ProductStore(
        config.products_file,
        default_shipping_fee_cents=config.default_shipping_fee_cents,
    )
    settings = settings_store or SiteSettingsStore(config.site_settings_file)
    uploads = UploadStore(config.uploads_dir)
    provider = checkout_provider if checkout_provider is not None else _default_provider(config)
    transport = mail_transport if mail_transport is not None else _default_transport(config)

    checkout = CheckoutEngine(
        products,
        provider,
        currency=config.currency,
        allowed_countries=config.allowed_shipping_countries,
        storefront=config.storefront_name,
        unit_weight_lbs=config.shipping_unit_weight_lbs,
        minimum_shipping_cents=config.shipping_minimum_cents,
        debug_errors=config.checkout_debug_errors,
    )
    notifier = NotificationDispatcher(
        transport,
        from_email=config.from_email,
        owner_email=config.owner_email,
    )
    admin = AdminAuthorizer(config.admin_password)
    if not admin.configured:
        logger.warning("ADMIN_PASSWORD is missing. Admin endpoints are disabled.")

    # Refuse to start on a corrupt data file
    products.ensure_loaded()
    settings.ensure_loaded()
    uploads.ensure_dir()

    app.extensions["publishearts"] = {
        "config": config,
        "products": products,
        "settings": settings,
        "uploads": uploads,
        "checkout": checkout,
        "notifier": notifier,
        "admin": admin,
    }

    def app_url() -> str:
        return config.app_url or request.url_root.rstrip("/")

    # -------------------------
    # Errors
    # -------------------------
    @app.errorhandler(ShopError)
    def handle_shop_error(err: ShopError):
        if err.kind in (ErrorKind.UPSTREAM, ErrorKind.INTEGRITY):
            logger.error("%s error: %s (%s)", err.kind.value, err.message, err.detail or "no detail")
        return jsonify({"ok": False, "error": err.message}), err.status

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(err):
        return jsonify({"ok": False, "error": f"Uploads must be {config.max_upload_mb} MB or smaller."}), 413

    @app.after_request
    def add_no_cache_headers(resp):
        if request.path.startswith("/api/"):
            resp.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
        return resp

    # -------------------------
    # Upload bookkeeping
    # -------------------------
    def _save_image_inputs(
        data: Mapping[str, Any],
        changes: Dict[str, Any],
        inputs: Mapping[str, tuple],
    ) -> List[str]:
        """Store any uploaded files into ``changes``; returns the new upload URLs."""
        saved: List[str] = []
        try:
            for target, (file_field, remove_flag) in inputs.items():
                file_obj = request.files.get(file_field)
                if has_file(file_obj):
                    url = uploads.save_image(file_obj)
                    saved.append(url)
                    changes[target] = url
                elif wants_removal(data, remove_flag):
                    changes[target] = ""
        except Exception:
            _discard_all(saved)
            raise
        return saved

    def _discard_all(urls: Iterable[str]) -> None:
        for url in urls:
            uploads.discard(url)

    def _discard_replaced(before: Iterable[str], after: Iterable[str]) -> None:
        keep = set(after)
        _discard_all(url for url in set(before) if url not in keep)

    def _images_in_use() -> set:
        current = settings.get()
        in_use = {current[key] for key in SETTINGS_IMAGE_INPUTS}
        in_use.update(url for p in products.list_products() for url in p.image_urls())
        return in_use

    def _write_with_uploads(saved: List[str], write: Callable[[], Any]) -> Any:
        try:
            return write()
        except Exception:
            _discard_all(saved)
            raise

    # -------------------------
    # Pages
    # -------------------------
    @app.get("/")
    def home():
        listed = [p for p in products.list_products() if p.is_visible]
        return render_template(
            "index.html",
            settings=settings.get(),
            products=listed,
            currency=config.currency,
        )

    @app.get("/success")
    def success_page():
        return render_template(
            "success.html",
            settings=settings.get(),
            session_id=(request.args.get("session_id") or "").strip(),
        )

    @app.get("/cancel")
    def cancel_page():
        return render_template("cancel.html", settings=settings.get())

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"})

    @app.get("/uploads/<path:filename>")
    def uploaded_file(filename: str):
        return send_from_directory(uploads.directory, filename)

    # -------------------------
    # Storefront API
    # -------------------------
    @app.get("/api/products")
    def api_products():
        return jsonify([p.to_dict() for p in products.list_products() if p.is_visible])

    @app.get("/api/site-settings")
    def api_site_settings():
        return jsonify(settings.get())

    @app.post("/api/create-checkout-session")
    def api_create_checkout_session():
        payload = request.get_json(silent=True) or {}
        cart = payload.get("cart") if isinstance(payload, dict) else None
        session = checkout.start_checkout(cart, app_url())
        return jsonify({"url": session["url"]})

    @app.get("/api/order/<session_id>")
    def api_order(session_id: str):
        order = checkout.describe_completed_session(session_id)
        return jsonify(order.to_dict())

    @app.post("/api/webhooks/stripe")
    def api_stripe_webhook():
        event = checkout.verify_event(request.get_data(), request.headers.get("Stripe-Signature", ""))
        try:
            order = checkout.order_from_event(event)
            if order is not None:
                notifier.send_order_emails(order)
        except Exception:
            # A verified event is always acknowledged so Stripe stops retrying.
            logger.exception("Failed to process checkout completion for event %s", event.get("id"))
        return jsonify({"received": True})

    # -------------------------
    # Admin API
    # -------------------------
    @app.post("/api/admin/login")
    def api_admin_login():
        payload = request.get_json(silent=True) or {}
        password = payload.get("password") if isinstance(payload, dict) else None
        admin.check(password if isinstance(password, str) else None)
        return jsonify({"ok": True})

    @app.get("/api/admin/products")
    @require_admin
    def api_admin_products():
        return jsonify([p.to_dict() for p in products.list_products()])

    @app.post("/api/admin/products")
    @require_admin
    def api_admin_create_product():
        data = request_payload()
        changes = product_changes(data)
        saved = _save_image_inputs(data, changes, PRODUCT_IMAGE_INPUTS)
        product = _write_with_uploads(saved, lambda: products.create(changes))
        return jsonify(product.to_dict()), 201

    @app.put("/api/admin/products/<product_id>")
    @require_admin
    def api_admin_update_product(product_id: str):
        before = products.find_by_id(product_id)
        if before is None:
            raise NotFoundError("Product not found.")

        data = request_payload()
        changes = product_changes(data, partial=True)
        saved = _save_image_inputs(data, changes, PRODUCT_IMAGE_INPUTS)
        product = _write_with_uploads(saved, lambda: products.update(product_id, changes))
        if product is None:
            _discard_all(saved)
            raise NotFoundError("Product not found.")
        _discard_replaced(before.image_urls(), _images_in_use())
        return jsonify(product.to_dict())

    @app.delete("/api/admin/products/<product_id>")
    @require_admin
    def api_admin_delete_product(product_id: str):
        removed = products.delete(product_id)
        if removed is None:
            raise NotFoundError("Product not found.")
        _discard_replaced(removed.image_urls(), _images_in_use())
        return jsonify({"ok": True, "id": removed.id})

    @app.post("/api/admin/products/reorder")
    @require_admin
    def api_admin_reorder_products():
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            raise ValidationError("Product order must be a list of product ids.")
        reordered = products.reorder(payload.get("productIds"))
        return jsonify([p.to_dict() for p in reordered])

    @app.get("/api/admin/site-settings")
    @require_admin
    def api_admin_site_settings():
        return jsonify(settings.get())

    @app.put("/api/admin/site-settings")
    @require_admin
    def api_admin_update_site_settings():
        before = settings.get()
        data = request_payload()
        changes = settings_changes(data)
        saved = _save_image_inputs(data, changes, SETTINGS_IMAGE_INPUTS)
        updated = _write_with_uploads(saved, lambda: settings.update(changes))
        _discard_replaced([before[key] for key in SETTINGS_IMAGE_INPUTS], _images_in_use())
        return jsonify(updated)

    return app


def main() -> None:
    config = Config.from_env()
    configure_logging(config.log_level)
    app = create_app(config)
    logger.info("PublisHearts store running on http://localhost:%d", config.port)
    app.run(host=config.host, port=config.port, debug=config.debug)


if __name__ == "__main__":
    main()
