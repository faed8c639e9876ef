"""Search index: denormalized product documents served to readers.

Writes arrive only through ``apply_if_newer``, a single upsert guarded by the
source version, so duplicated or reordered product events can never move a
document backwards or bring a deleted product back.
"""

import math
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from protean.domain import Domain
from protean.exceptions import DatabaseError, ObjectNotFoundError
from sqlalchemy import false, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from catalogue.product.product import Category
from search.projections.search_document import SearchDocument
from shared.exceptions import NotFoundError, TransientInfraError, ValidationError

logger = structlog.get_logger(__name__)

NAME_WEIGHT = 3
TAG_WEIGHT = 2
DESCRIPTION_WEIGHT = 1


@dataclass
class SearchPage:
    items: list[SearchDocument]
    page: int
    size: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.size) if self.size else 0


@contextmanager
def translate_infra_errors() -> Iterator[None]:
    """Surface database outages as TransientInfraError."""
    try:
        yield
    except (OperationalError, PoolTimeoutError, DatabaseError) as exc:
        raise TransientInfraError(f"Search index unavailable: {exc}") from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            raise TransientInfraError(f"Search index connection lost: {exc}") from exc
        raise


def _escape_like(token: str) -> str:
    return token.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _naive_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(UTC).replace(tzinfo=None)
    return value


def _score(document: SearchDocument, tokens: list[str]) -> int:
    name = document.name_text or ""
    description = document.description_text or ""
    tags = (document.tags_text or "").split("\n")

    score = 0
    for token in tokens:
        if token in name:
            score += NAME_WEIGHT
        if any(token in tag for tag in tags):
            score += TAG_WEIGHT
        if token in description:
            score += DESCRIPTION_WEIGHT
    return score


class SearchIndex:
    def __init__(self, domain: Domain, max_page_size: int = 100):
        self.domain = domain
        self.max_page_size = max_page_size

    @property
    def provider(self):
        return self.domain.providers[SearchDocument.meta_.provider]

    @property
    def model(self):
        return self.domain.repository_for(SearchDocument)._dao.database_model_cls

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def apply_if_newer(self, product_id: str, version: int, snapshot=None) -> bool:
        """Store ``snapshot`` at ``version`` unless an equal or newer version is already stored.

        ``snapshot`` is a created or updated event; ``None`` stores a tombstone.
        Returns whether the write applied.
        """
        values = {
            "product_id": product_id,
            "source_version": version,
            "tombstoned": snapshot is None,
            "owner_id": None,
            "name": None,
            "price_minor": None,
            "stock_count": None,
            "category": None,
            "description": None,
            "tags": None,
            "name_text": None,
            "description_text": None,
            "tags_text": None,
            "created_at": None,
            "updated_at": None,
            "indexed_at": _naive_utc(datetime.now(UTC)),
        }
        if snapshot is not None:
            values.update(
                owner_id=snapshot.owner_id,
                name=snapshot.name,
                price_minor=snapshot.price_minor,
                stock_count=snapshot.stock_count,
                category=snapshot.category,
                description=snapshot.description or "",
                tags=list(snapshot.tags),
                name_text=snapshot.name.lower(),
                description_text=(snapshot.description or "").lower(),
                tags_text="\n".join(tag.lower() for tag in snapshot.tags),
                created_at=_naive_utc(snapshot.created_at),
                updated_at=_naive_utc(snapshot.updated_at),
            )

        with self.domain.domain_context(), translate_infra_errors():
            table = self.model.__table__
            engine = self.provider._engine
            insert = postgresql.insert if engine.dialect.name == "postgresql" else sqlite.insert
            statement = insert(table).values(**values)
            statement = statement.on_conflict_do_update(
                index_elements=[table.c.product_id],
                set_={key: statement.excluded[key] for key in values if key != "product_id"},
                where=statement.excluded.source_version > table.c.source_version,
            )

            with engine.begin() as connection:
                applied = connection.execute(statement).rowcount > 0

        logger.debug(
            "Search document write",
            product_id=product_id,
            version=version,
            tombstone=snapshot is None,
            applied=applied,
        )
        return applied

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def query_by_text(self, q: str) -> list[SearchDocument]:
        tokens = (q or "").lower().split()
        if not tokens:
            raise ValidationError({"q": ["Search query cannot be blank"]})

        with self.domain.domain_context(), translate_infra_errors():
            model = self.model
            conditions = []
            for token in tokens:
                pattern = f"%{_escape_like(token)}%"
                # Matched against stored lowercase copies, so non-ASCII letters fold like ASCII ones
                conditions.append(model.name_text.like(pattern, escape="\\"))
                conditions.append(model.description_text.like(pattern, escape="\\"))
                conditions.append(model.tags_text.like(pattern, escape="\\"))

            query = select(model).where(model.tombstoned == false(), or_(*conditions))
            session = self.provider._session_factory()
            try:
                documents = [model.to_entity(record) for record in session.scalars(query)]
            finally:
                session.close()

        scored = [(_score(document, tokens), document) for document in documents]
        scored.sort(key=lambda pair: (-pair[0], -pair[1].updated_at.timestamp(), pair[1].product_id))
        return [document for _, document in scored]

    def query_by_category(self, category: str) -> list[SearchDocument]:
        if category not in Category.values():
            raise ValidationError(
                {"category": [f"Category must be one of {', '.join(Category.values())}, got '{category}'"]}
            )
        return self._fetch(["-updated_at", "product_id"], category=category)

    def query_by_price_range(self, min_price: int, max_price: int) -> list[SearchDocument]:
        errors: dict[str, list[str]] = {}
        if min_price < 0:
            errors["min_price"] = ["Minimum price cannot be negative"]
        if max_price < 0:
            errors["max_price"] = ["Maximum price cannot be negative"]
        if not errors and min_price > max_price:
            errors["_entity"] = ["Minimum price cannot be greater than maximum price"]
        if errors:
            raise ValidationError(errors)

        return self._fetch(["price_minor", "product_id"], price_minor__gte=min_price, price_minor__lte=max_price)

    def get_by_id(self, product_id: str) -> SearchDocument:
        with self.domain.domain_context(), translate_infra_errors():
            try:
                document = self.domain.repository_for(SearchDocument).get(product_id)
            except ObjectNotFoundError:
                raise NotFoundError(f"Product {product_id} not found") from None
        if document.tombstoned:
            raise NotFoundError(f"Product {product_id} not found")
        return document

    def list_documents(self, page: int = 0, size: int = 20) -> SearchPage:
        errors: dict[str, list[str]] = {}
        if page < 0:
            errors["page"] = ["Page cannot be negative"]
        if size < 1:
            errors["size"] = ["Size must be at least 1"]
        if errors:
            raise ValidationError(errors)

        size = min(size, self.max_page_size)
        with self.domain.domain_context(), translate_infra_errors():
            results = (
                self._query()
                .filter(tombstoned=False)
                .order_by(["-updated_at", "product_id"])
                .offset(page * size)
                .limit(size)
                .all()
            )
        return SearchPage(items=list(results.items), page=page, size=size, total=results.total)

    def count(self) -> int:
        """Number of live (non-tombstoned) documents."""
        with self.domain.domain_context(), translate_infra_errors():
            return self._query().filter(tombstoned=False).count()

    def source_version(self, product_id: str) -> int | None:
        """Highest version applied for a product, tombstones included."""
        with self.domain.domain_context(), translate_infra_errors():
            try:
                return self.domain.repository_for(SearchDocument).get(product_id).source_version
            except ObjectNotFoundError:
                return None

    def _query(self):
        return self.domain.repository_for(SearchDocument)._dao.query

    def _fetch(self, ordering: list[str], **filters) -> list[SearchDocument]:
        with self.domain.domain_context(), translate_infra_errors():
            results = self._query().filter(tombstoned=False, **filters).order_by(ordering).limit(None).all()
        return list(results.items)
