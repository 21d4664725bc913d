"""
catalog/service.py -- Product create/read/update/delete rules.

ProductService sits between the HTTP routes and a ProductRepository:

  - callers hand in already-validated attribute values (the request models in
    api/models.py do the checking), so the service only assigns and persists;
  - ids and timestamps are assigned here, and updated_at is forced strictly
    past its previous value on every update;
  - store exceptions are mapped onto the error taxonomy (IntegrityError ->
    DuplicateName, any other SQLAlchemyError -> InternalError);
  - after a successful mutation a change event goes to the optional notifier.
    Notifier failures are logged and swallowed -- they never fail the request.

Methods are synchronous; routes call them from FastAPI's threadpool.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from catalog import events
from catalog.events import Notifier
from catalog.models import Product, ProductFilters
from catalog.store import ProductRepository
from core.errors import DuplicateName, InternalError, InvalidId, NotFound
from core.ids import is_valid_id, new_id

logger = logging.getLogger("catalog.products")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _next_timestamp(previous: str) -> str:
    """Current time, nudged one microsecond past previous if the clock hasn't moved."""
    now = _now()
    try:
        floor = datetime.fromisoformat(previous) + timedelta(microseconds=1)
    except ValueError:
        return now.isoformat(timespec="microseconds")
    return max(now, floor).isoformat(timespec="microseconds")


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except IntegrityError as exc:
        raise DuplicateName() from exc
    except SQLAlchemyError as exc:
        logger.exception("Store failure while %s", action)
        raise InternalError(f"Error {action}") from exc


class ProductService:
    """Mutating operations on products, each followed by a change event.

    notifier is optional: with None, mutations simply emit nothing.
    """

    def __init__(self, store: ProductRepository, notifier: Optional[Notifier] = None) -> None:
        self.store = store
        self.notifier = notifier

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list(self, filters: Optional[ProductFilters] = None) -> list[Product]:
        with _store_errors("fetching products"):
            return self.store.list(filters or ProductFilters())

    def get(self, product_id: str) -> Product:
        if not is_valid_id(product_id):
            raise InvalidId()
        with _store_errors("fetching product"):
            product = self.store.get(product_id)
        if product is None:
            raise NotFound(f"Product with ID {product_id} not found")
        return product

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, fields: Mapping[str, Any], actor: Optional[str] = None) -> Product:
        """Persist a product built from attribute values, notify, and return it."""
        now = _now().isoformat(timespec="microseconds")
        product = Product(
            id=new_id(),
            created_at=now,
            updated_at=now,
            **fields,
        )
        with _store_errors("creating product"):
            self.store.insert(product)
        logger.info("Product %s created by %s", product.id, actor or events.SYSTEM_ACTOR)
        self._notify(events.PRODUCT_CREATED, events.product_created(product, actor or events.SYSTEM_ACTOR))
        return product

    def update(self, product_id: str, changes: Mapping[str, Any], actor: Optional[str] = None) -> Product:
        """Merge only the supplied attribute values onto the stored product."""
        existing = self.get(product_id)
        changes = dict(changes)
        changes["updated_at"] = _next_timestamp(existing.updated_at)

        with _store_errors("updating product"):
            found = self.store.update(product_id, changes)
        if not found:
            # Deleted between the read and the write.
            raise NotFound(f"Product with ID {product_id} not found")

        for attr, value in changes.items():
            setattr(existing, attr, value)
        logger.info("Product %s updated by %s", product_id, actor or events.SYSTEM_ACTOR)
        self._notify(events.PRODUCT_UPDATED, events.product_updated(existing, actor or events.SYSTEM_ACTOR))
        return existing

    def delete(self, product_id: str, actor: Optional[str] = None) -> Product:
        """Remove a product and return the record as it was before deletion."""
        existing = self.get(product_id)
        with _store_errors("deleting product"):
            found = self.store.delete(product_id)
        if not found:
            raise NotFound(f"Product with ID {product_id} not found")
        logger.info("Product %s deleted by %s", product_id, actor or events.SYSTEM_ACTOR)
        self._notify(events.PRODUCT_DELETED, events.product_deleted(existing, actor or events.SYSTEM_ACTOR))
        return existing

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _notify(self, event: str, payload: dict[str, Any]) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.publish(event, payload)
        except Exception:
            logger.warning("Notifier failed for %s", event, exc_info=True)
