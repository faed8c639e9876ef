"""Product aggregate root and its details value object."""

from collections.abc import Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Integer, List, String, Text

from catalogue.domain import catalogue
from catalogue.product.events import ProductCreated, ProductDeleted, ProductUpdated
from shared.exceptions import ForbiddenError, NotFoundError

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 2000
MAX_TAGS = 5
TAG_MAX_LENGTH = 30

_DETAIL_FIELDS = ("name", "price_minor", "stock_count", "category", "description", "tags")
_REQUIRED_FIELDS = ("name", "price_minor", "stock_count", "category", "tags")


class Category(Enum):
    """Fixed set of product categories."""

    ELECTRONICS = "Electronics"
    CLOTHING = "Clothing"
    BOOKS = "Books"
    HOME = "Home"
    SPORTS = "Sports"
    FOOD = "Food"
    BEAUTY = "Beauty"
    TOYS = "Toys"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """SQL providers hand datetimes back naive; they were stored as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@catalogue.value_object(part_of="Product")
class ProductDetails:
    """Value object for the replaceable fields of a product.

    Built from raw input through ``from_fields`` so that every rule is checked
    and all violations are reported together.
    """

    name: String(required=True, max_length=NAME_MAX_LENGTH, sanitize=False)
    price_minor: Integer(required=True, min_value=1)
    stock_count: Integer(required=True, min_value=0)
    category: String(required=True, max_length=20, choices=Category, sanitize=False)
    description: Text(default="", sanitize=False)
    tags: List(content_type=String(max_length=TAG_MAX_LENGTH, sanitize=False))

    @invariant.post
    def tags_must_be_within_limits(self):
        if not self.tags:
            raise ValidationError({"tags": ["Tags cannot be empty"]})
        if len(self.tags) > MAX_TAGS:
            raise ValidationError({"tags": [f"Tags cannot be more than {MAX_TAGS}"]})

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any]) -> "ProductDetails":
        errors: dict[str, list[str]] = {}

        unknown = sorted(set(fields) - set(_DETAIL_FIELDS))
        if unknown:
            errors["_entity"] = [f"Unknown fields: {', '.join(unknown)}"]

        for required in _REQUIRED_FIELDS:
            if fields.get(required) is None:
                errors.setdefault(required, []).append("is required")

        name = fields.get("name")
        if name is not None:
            if not isinstance(name, str):
                errors.setdefault("name", []).append("Name must be a string")
            else:
                name = name.strip()
                if not name:
                    errors.setdefault("name", []).append("Name cannot be blank")
                elif not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
                    errors.setdefault("name", []).append(
                        f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters"
                    )

        price = fields.get("price_minor")
        if price is not None:
            if not _is_int(price):
                errors.setdefault("price_minor", []).append("Price must be an integer amount of minor units")
            elif price <= 0:
                errors.setdefault("price_minor", []).append("Price must be greater than zero")

        stock = fields.get("stock_count")
        if stock is not None:
            if not _is_int(stock):
                errors.setdefault("stock_count", []).append("Stock must be an integer")
            elif stock < 0:
                errors.setdefault("stock_count", []).append("Stock cannot be negative")

        category = fields.get("category")
        if category is not None and category not in Category.values():
            errors.setdefault("category", []).append(
                f"Category must be one of {', '.join(Category.values())}, got '{category}'"
            )

        description = fields.get("description") or ""
        if not isinstance(description, str):
            errors.setdefault("description", []).append("Description must be a string")
        elif len(description) > DESCRIPTION_MAX_LENGTH:
            errors.setdefault("description", []).append(
                f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters"
            )

        tags = fields.get("tags")
        normalized_tags: list[str] = []
        if tags is not None:
            if not isinstance(tags, list | tuple | set | frozenset) or not all(isinstance(t, str) for t in tags):
                errors.setdefault("tags", []).append("Tags must be a list of strings")
            else:
                stripped = [t.strip() for t in tags]
                if any(not t for t in stripped):
                    errors.setdefault("tags", []).append("Tags cannot be blank")
                if any(len(t) > TAG_MAX_LENGTH for t in stripped):
                    errors.setdefault("tags", []).append(f"Tags cannot exceed {TAG_MAX_LENGTH} characters")
                normalized_tags = sorted({t for t in stripped if t})
                if not normalized_tags:
                    errors.setdefault("tags", []).append("Tags cannot be empty")
                elif len(normalized_tags) > MAX_TAGS:
                    errors.setdefault("tags", []).append(f"Tags cannot be more than {MAX_TAGS}")

        if errors:
            raise ValidationError(errors)

        return cls(
            name=name,
            price_minor=price,
            stock_count=stock,
            category=category,
            description=description,
            tags=normalized_tags,
        )


@catalogue.aggregate
class Product:
    """Product aggregate root.

    Lifecycle: active (create) → active (update)* → deleted (terminal).
    Every mutation bumps ``version`` and raises exactly one event.
    """

    owner_id: String(required=True, max_length=64, sanitize=False)
    name: String(required=True, max_length=NAME_MAX_LENGTH, sanitize=False)
    price_minor: Integer(required=True, min_value=1)
    stock_count: Integer(required=True, min_value=0)
    category: String(required=True, max_length=20, choices=Category, sanitize=False)
    description: Text(default="", sanitize=False)
    tags: List(content_type=String(max_length=TAG_MAX_LENGTH, sanitize=False))
    active: Boolean(default=True)
    version: Integer(default=1, min_value=1)
    created_at: DateTime(default=utcnow)
    updated_at: DateTime(default=utcnow)

    @classmethod
    def create(cls, owner_id: str, details: ProductDetails) -> "Product":
        if not owner_id:
            raise ValidationError({"owner_id": ["is required"]})

        now = utcnow()
        product = cls(
            owner_id=owner_id,
            created_at=now,
            updated_at=now,
            **details.to_dict(),
        )
        product.raise_(ProductCreated(**product._snapshot()))
        return product

    def ensure_owned_by(self, owner_id: str) -> None:
        if self.owner_id != owner_id:
            raise ForbiddenError()

    def replace_details(self, owner_id: str, details: ProductDetails) -> None:
        """Full-field replace of every mutable field."""
        self._ensure_active()
        self.ensure_owned_by(owner_id)

        self.name = details.name
        self.price_minor = details.price_minor
        self.stock_count = details.stock_count
        self.category = details.category
        self.description = details.description
        self.tags = list(details.tags)
        self._touch()

        self.raise_(ProductUpdated(**self._snapshot()))

    def delete(self, owner_id: str) -> None:
        """Logical delete. The record is kept, flagged inactive."""
        self._ensure_active()
        self.ensure_owned_by(owner_id)

        self.active = False
        self._touch()

        self.raise_(ProductDeleted(product_id=self.id, version=self.version, deleted_at=self.updated_at))

    def _snapshot(self) -> dict:
        return {
            "product_id": self.id,
            "version": self.version,
            "owner_id": self.owner_id,
            "name": self.name,
            "price_minor": self.price_minor,
            "stock_count": self.stock_count,
            "category": self.category,
            "description": self.description,
            "tags": list(self.tags),
            "created_at": as_utc(self.created_at),
            "updated_at": as_utc(self.updated_at),
        }

    def _ensure_active(self) -> None:
        if not self.active:
            raise NotFoundError(f"Product {self.id} not found")

    def _touch(self) -> None:
        self.version += 1
        # updated_at never moves backwards, even if the wall clock does
        self.updated_at = max(utcnow(), as_utc(self.updated_at))
