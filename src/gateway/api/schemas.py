"""Pydantic request/response schemas for the storefront API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from catalogue.product.product import Product, as_utc
from catalogue.store import ProductPage
from search.index import SearchPage
from search.projections.search_document import SearchDocument

# --- Product Request Schemas ---


class ProductRequest(BaseModel):
    """Full set of product fields. Used for create and for full-field replace."""

    # No coercion: `true` or "7" is not a count
    model_config = ConfigDict(
        strict=True,
        json_schema_extra={
            "examples": [
                {
                    "name": "Noise Cancelling Headphones",
                    "price_minor": 19999,
                    "stock_count": 25,
                    "category": "Electronics",
                    "description": "Over-ear wireless headphones with 30h battery.",
                    "tags": ["audio", "wireless"],
                }
            ]
        },
    )

    name: str
    price_minor: int
    stock_count: int
    category: str
    description: str = ""
    tags: list[str]


# --- Product Response Schemas ---


class ProductResponse(BaseModel):
    id: str
    owner_id: str
    name: str
    price_minor: int
    stock_count: int
    category: str
    description: str
    tags: list[str]
    created_at: datetime
    updated_at: datetime
    version: int

    @classmethod
    def from_product(cls, product: Product) -> ProductResponse:
        return cls(
            id=product.id,
            owner_id=product.owner_id,
            name=product.name,
            price_minor=product.price_minor,
            stock_count=product.stock_count,
            category=product.category,
            description=product.description,
            tags=list(product.tags),
            created_at=as_utc(product.created_at),
            updated_at=as_utc(product.updated_at),
            version=product.version,
        )


class ProductPageResponse(BaseModel):
    items: list[ProductResponse]
    page: int
    size: int
    total: int
    total_pages: int

    @classmethod
    def from_page(cls, page: ProductPage) -> ProductPageResponse:
        return cls(
            items=[ProductResponse.from_product(product) for product in page.items],
            page=page.page,
            size=page.size,
            total=page.total,
            total_pages=page.total_pages,
        )


# --- Search Response Schemas ---


class SearchDocumentResponse(BaseModel):
    product_id: str
    source_version: int
    owner_id: str
    name: str
    price_minor: int
    stock_count: int
    category: str
    description: str
    tags: list[str]
    created_at: datetime
    updated_at: datetime
    indexed_at: datetime

    @classmethod
    def from_document(cls, document: SearchDocument) -> SearchDocumentResponse:
        return cls(
            product_id=document.product_id,
            source_version=document.source_version,
            owner_id=document.owner_id,
            name=document.name,
            price_minor=document.price_minor,
            stock_count=document.stock_count,
            category=document.category,
            description=document.description or "",
            tags=list(document.tags or []),
            created_at=as_utc(document.created_at),
            updated_at=as_utc(document.updated_at),
            indexed_at=as_utc(document.indexed_at),
        )


class SearchPageResponse(BaseModel):
    items: list[SearchDocumentResponse]
    page: int
    size: int
    total: int
    total_pages: int

    @classmethod
    def from_page(cls, page: SearchPage) -> SearchPageResponse:
        return cls(
            items=[SearchDocumentResponse.from_document(document) for document in page.items],
            page=page.page,
            size=page.size,
            total=page.total,
            total_pages=page.total_pages,
        )


class HealthResponse(BaseModel):
    status: str
    search_documents: int
    outbox: dict[str, int]
