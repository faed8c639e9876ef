"""Storefront HTTP API package."""

from gateway.api.routes import product_router, search_router

__all__ = ["product_router", "search_router"]
