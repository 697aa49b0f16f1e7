"""PublisHearts storefront: catalog, checkout and admin API on Flask + Stripe."""

from .app import create_app, main
from .config import Config

__all__ = ["create_app", "main", "Config"]
__version__ = "0.1.0"
