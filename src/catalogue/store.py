"""Catalogue store: the only component that accepts product writes.

Each write is a command processed synchronously by the catalogue domain. Its
handler runs inside a unit of work that persists the product together with the
outbox rows of the event it raised. A writer that loses the version race is
retried by the domain against the fresh record; a caller that pinned an
``expected_version`` sees the conflict instead.
"""

import math
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import structlog
from protean.domain import Domain
from protean.exceptions import (
    DatabaseError,
    ExpectedVersionError,
    ObjectNotFoundError,
    TransactionError,
)
from protean.exceptions import ValidationError as DomainValidationError
from sqlalchemy.exc import OperationalError

from catalogue.product.creation import CreateProduct
from catalogue.product.details import UpdateProduct
from catalogue.product.product import Product
from catalogue.product.removal import DeleteProduct
from shared.cancellation import CancellationToken, cancellable
from shared.exceptions import NotFoundError, TransientInfraError, ValidationError

logger = structlog.get_logger(__name__)

SORTABLE_COLUMNS = ("created_at", "updated_at", "name", "price_minor")


@dataclass
class ProductPage:
    items: list[Product]
    page: int
    size: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.size) if self.size else 0


class CatalogueStore:
    def __init__(self, domain: Domain, max_page_size: int = 100):
        self.domain = domain
        self.max_page_size = max_page_size

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def create(
        self,
        owner_id: str,
        fields: dict[str, Any],
        cancellation: CancellationToken | None = None,
    ) -> Product:
        product = self._process(CreateProduct, cancellation, owner_id=owner_id, details=fields)
        logger.info("Product created", product_id=product.id, owner_id=owner_id)
        return product

    def update(
        self,
        product_id: str,
        owner_id: str,
        fields: dict[str, Any],
        expected_version: int | None = None,
        cancellation: CancellationToken | None = None,
    ) -> Product:
        product = self._process(
            UpdateProduct,
            cancellation,
            product_id=product_id,
            owner_id=owner_id,
            details=fields,
            expected_version=expected_version,
        )
        logger.info("Product updated", product_id=product_id, version=product.version)
        return product

    def delete(
        self,
        product_id: str,
        owner_id: str,
        expected_version: int | None = None,
        cancellation: CancellationToken | None = None,
    ) -> None:
        product = self._process(
            DeleteProduct,
            cancellation,
            product_id=product_id,
            owner_id=owner_id,
            expected_version=expected_version,
        )
        logger.info("Product deleted", product_id=product_id, version=product.version)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, product_id: str) -> Product:
        with self._reading(), self.domain.domain_context():
            try:
                product = self.domain.repository_for(Product).get(product_id)
            except ObjectNotFoundError:
                raise NotFoundError(f"Product {product_id} not found") from None
        if not product.active:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    def list_products(
        self,
        page: int = 0,
        size: int = 20,
        sort_by: str = "created_at",
        sort_dir: str = "desc",
    ) -> ProductPage:
        errors: dict[str, list[str]] = {}
        if page < 0:
            errors["page"] = ["Page cannot be negative"]
        if size < 1:
            errors["size"] = ["Size must be at least 1"]
        if sort_by not in SORTABLE_COLUMNS:
            errors["sort_by"] = [f"Cannot sort by '{sort_by}'"]
        if sort_dir not in ("asc", "desc"):
            errors["sort_dir"] = ["Sort direction must be 'asc' or 'desc'"]
        if errors:
            raise ValidationError(errors)

        size = min(size, self.max_page_size)
        ordering = [f"-{sort_by}" if sort_dir == "desc" else sort_by, "id"]
        with self._reading(), self.domain.domain_context():
            results = (
                self.domain.repository_for(Product)
                ._dao.query.filter(active=True)
                .order_by(ordering)
                .offset(page * size)
                .limit(size)
                .all()
            )
        return ProductPage(items=list(results.items), page=page, size=size, total=results.total)

    def list_by_owner(self, owner_id: str) -> list[Product]:
        with self._reading(), self.domain.domain_context():
            results = (
                self.domain.repository_for(Product)
                ._dao.query.filter(owner_id=owner_id, active=True)
                .order_by(["-created_at", "id"])
                .limit(None)
                .all()
            )
        return list(results.items)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _process(self, command_cls, cancellation: CancellationToken | None, **attributes) -> Product:
        product_id = attributes.get("product_id")
        with self.domain.domain_context(), cancellable(cancellation):
            try:
                return self.domain.process(command_cls(**attributes), asynchronous=False)
            except ObjectNotFoundError:
                raise NotFoundError(f"Product {product_id} not found") from None
            except DomainValidationError as exc:
                raise ValidationError(exc.messages) from None
            except ExpectedVersionError:
                logger.error("Product write lost every version race", product_id=product_id)
                raise TransientInfraError(
                    f"Product {product_id} is being modified concurrently, try again"
                ) from None
            except (TransactionError, DatabaseError, OperationalError) as exc:
                logger.error("Catalogue database unavailable", error=str(exc))
                raise TransientInfraError("Catalogue database unavailable") from exc

    @contextmanager
    def _reading(self) -> Iterator[None]:
        """Surface database outages on reads as TransientInfraError."""
        try:
            yield
        except (DatabaseError, OperationalError) as exc:
            raise TransientInfraError("Catalogue database unavailable") from exc
