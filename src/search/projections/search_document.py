"""Search document — denormalized product projection served to readers."""

import structlog
from protean.core.projector import on
from protean.fields import Boolean, DateTime, Identifier, Integer, List, String, Text
from protean.utils.globals import current_domain

from catalogue.domain import catalogue
from catalogue.product.events import ProductCreated, ProductDeleted, ProductUpdated
from catalogue.product.product import Product

logger = structlog.get_logger(__name__)


@catalogue.projection(provider="search")
class SearchDocument:
    """One row per product ever seen. Deleted products stay as tombstones."""

    product_id: Identifier(identifier=True, required=True)
    source_version: Integer(required=True)
    tombstoned: Boolean(default=False)
    owner_id: String(max_length=64, sanitize=False)
    name: String(max_length=100, sanitize=False)
    price_minor: Integer()
    stock_count: Integer()
    category: String(max_length=20, sanitize=False)
    description: Text(sanitize=False)
    tags: List(content_type=String(sanitize=False))
    # Lowercased copies for case-insensitive substring matching in SQL
    name_text: String(max_length=100, sanitize=False)
    description_text: Text(sanitize=False)
    tags_text: Text(sanitize=False)
    created_at: DateTime()
    updated_at: DateTime()
    indexed_at: DateTime()


@catalogue.projector(projector_for=SearchDocument, aggregates=[Product])
class SearchDocumentProjector:
    @on(ProductCreated)
    def on_product_created(self, event):
        self._apply(event.product_id, event.version, event)

    @on(ProductUpdated)
    def on_product_updated(self, event):
        self._apply(event.product_id, event.version, event)

    @on(ProductDeleted)
    def on_product_deleted(self, event):
        self._apply(event.product_id, event.version, None)

    def _apply(self, product_id, version, snapshot):
        from search.index import SearchIndex

        applied = SearchIndex(current_domain).apply_if_newer(product_id, version, snapshot)
        if not applied:
            logger.debug("Skipped stale product event", product_id=product_id, version=version)
