"""Domain events for the Product aggregate.

Created and updated events carry the full product snapshot at their version,
so a consumer never needs to read the catalogue to apply one.
"""

from protean.fields import DateTime, Identifier, Integer, List, String, Text

from catalogue.domain import catalogue


@catalogue.event(part_of="Product")
class ProductCreated:
    """A new product was added to the catalogue."""

    __version__ = 1

    product_id: Identifier(required=True)
    version: Integer(required=True)
    owner_id: String(required=True, max_length=64, sanitize=False)
    name: String(required=True, max_length=100, sanitize=False)
    price_minor: Integer(required=True)
    stock_count: Integer(required=True)
    category: String(required=True, max_length=20, sanitize=False)
    description: Text(sanitize=False)
    tags: List(content_type=String(sanitize=False))
    created_at: DateTime(required=True)
    updated_at: DateTime(required=True)


@catalogue.event(part_of="Product")
class ProductUpdated:
    """Every mutable field of a product was replaced."""

    __version__ = 1

    product_id: Identifier(required=True)
    version: Integer(required=True)
    owner_id: String(required=True, max_length=64, sanitize=False)
    name: String(required=True, max_length=100, sanitize=False)
    price_minor: Integer(required=True)
    stock_count: Integer(required=True)
    category: String(required=True, max_length=20, sanitize=False)
    description: Text(sanitize=False)
    tags: List(content_type=String(sanitize=False))
    created_at: DateTime(required=True)
    updated_at: DateTime(required=True)


@catalogue.event(part_of="Product")
class ProductDeleted:
    """A product was logically deleted. Carries no snapshot."""

    __version__ = 1

    product_id: Identifier(required=True)
    version: Integer(required=True)
    deleted_at: DateTime(required=True)
