"""
catalog/events.py -- Change notifications emitted after product mutations.

The payloads are plain dicts so any transport can carry them. The service
hands them to a Notifier; realtime.hub.BroadcastHub is the production one.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Protocol

from catalog.models import Product

PRODUCT_CREATED = "product_created"
PRODUCT_UPDATED = "product_updated"
PRODUCT_DELETED = "product_deleted"

# Label used when a mutation has no authenticated actor.
SYSTEM_ACTOR = "System"


class Notifier(Protocol):
    """Fire-and-forget sink for change events. Must not block the caller."""

    def publish(self, event: str, payload: dict[str, Any]) -> None: ...


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def product_created(product: Product, actor: str) -> dict[str, Any]:
    return {
        "type": PRODUCT_CREATED,
        "message": f"New product created: {product.name}",
        "product": product.to_dict(),
        "timestamp": _timestamp(),
        "user": actor,
    }


def product_updated(product: Product, actor: str) -> dict[str, Any]:
    return {
        "type": PRODUCT_UPDATED,
        "message": f"Product updated: {product.name}",
        "product": product.to_dict(),
        "timestamp": _timestamp(),
        "user": actor,
    }


def product_deleted(product: Product, actor: str) -> dict[str, Any]:
    return {
        "type": PRODUCT_DELETED,
        "message": f"Product deleted: {product.name}",
        "productId": product.id,
        "timestamp": _timestamp(),
        "user": actor,
    }
