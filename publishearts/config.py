"""Centralized configuration for the PublisHearts storefront."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Project root (parent of the 'publishearts' package)
_THIS_DIR = Path(__file__).parent
PROJECT_ROOT = _THIS_DIR.parent


def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def _env_optional(name: str) -> Optional[str]:
    value = (os.getenv(name) or "").strip()
    return value or None


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _country_list(raw: str) -> List[str]:
    return [c.strip().upper() for c in raw.split(",") if c.strip()]


@dataclass
class Config:
    # Flask
    host: str = "0.0.0.0"
    port: int = 4242
    debug: bool = False
    log_level: str = "INFO"
    app_url: str = ""
    storefront_name: str = "publishearts.com"

    # Data files
    data_dir: Path = PROJECT_ROOT / "data"
    products_file: Optional[Path] = None
    site_settings_file: Optional[Path] = None
    uploads_dir: Optional[Path] = None
    max_upload_mb: int = 5

    # Stripe
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    currency: str = "usd"
    allowed_shipping_countries: List[str] = field(default_factory=lambda: ["US"])
    checkout_debug_errors: bool = False

    # Shipping
    default_shipping_fee_cents: int = 500
    shipping_unit_weight_lbs: float = 1.5
    shipping_minimum_cents: int = 1000

    # Admin
    admin_password: Optional[str] = None

    # Mail
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_secure: bool = False
    smtp_user: Optional[str] = None
    smtp_pass: Optional[str] = None
    from_email: Optional[str] = None
    owner_email: Optional[str] = None

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)
        if self.products_file is None:
            self.products_file = self.data_dir / "products.json"
        if self.site_settings_file is None:
            self.site_settings_file = self.data_dir / "site-settings.json"
        if self.uploads_dir is None:
            self.uploads_dir = self.data_dir / "uploads"
        self.products_file = Path(self.products_file)
        self.site_settings_file = Path(self.site_settings_file)
        self.uploads_dir = Path(self.uploads_dir)
        self.currency = (self.currency or "usd").lower()

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key)

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Config":
        """Build a Config from the process environment (and ``.env`` if present)."""
        load_dotenv(dotenv_path=env_file or PROJECT_ROOT / ".env")

        data_dir = Path(_env_str("DATA_DIR") or PROJECT_ROOT / "data")
        products_file = _env_optional("PRODUCTS_FILE")
        site_settings_file = _env_optional("SITE_SETTINGS_FILE")
        uploads_dir = _env_optional("UPLOADS_DIR")

        return cls(
            host=_env_str("FLASK_HOST", "0.0.0.0"),
            # Render-style hosts set PORT dynamically
            port=_env_int("FLASK_PORT", _env_int("PORT", 4242)),
            debug=_env_bool("FLASK_DEBUG"),
            log_level=_env_str("LOG_LEVEL", "INFO").upper(),
            app_url=_env_str("APP_URL").rstrip("/"),
            storefront_name=_env_str("STOREFRONT_NAME", "publishearts.com"),
            data_dir=data_dir,
            products_file=Path(products_file) if products_file else None,
            site_settings_file=Path(site_settings_file) if site_settings_file else None,
            uploads_dir=Path(uploads_dir) if uploads_dir else None,
            max_upload_mb=_env_int("MAX_UPLOAD_MB", 5),
            stripe_secret_key=_env_optional("STRIPE_SECRET_KEY"),
            stripe_webhook_secret=_env_optional("STRIPE_WEBHOOK_SECRET"),
            currency=_env_str("STRIPE_CURRENCY", "usd"),
            allowed_shipping_countries=_country_list(_env_str("ALLOWED_SHIPPING_COUNTRIES", "US")) or ["US"],
            checkout_debug_errors=_env_bool("CHECKOUT_DEBUG_ERRORS"),
            default_shipping_fee_cents=_env_int("DEFAULT_SHIPPING_FEE_CENTS", 500),
            shipping_unit_weight_lbs=_env_float("SHIPPING_UNIT_WEIGHT_LBS", 1.5),
            shipping_minimum_cents=_env_int("SHIPPING_MINIMUM_CENTS", 1000),
            admin_password=os.getenv("ADMIN_PASSWORD") or None,
            smtp_host=_env_optional("SMTP_HOST"),
            smtp_port=_env_int("SMTP_PORT", 587),
            smtp_secure=_env_bool("SMTP_SECURE"),
            smtp_user=_env_optional("SMTP_USER"),
            smtp_pass=_env_optional("SMTP_PASS"),
            from_email=_env_optional("FROM_EMAIL"),
            owner_email=_env_optional("OWNER_EMAIL"),
        )
