"""Tracking API package."""

from tracking.api.partner_routes import partner_router
from tracking.api.routes import customer_router, delivery_router, manifest_router, package_router

__all__ = [
    "package_router",
    "manifest_router",
    "customer_router",
    "delivery_router",
    "partner_router",
]
