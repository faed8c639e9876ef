"""FastAPI endpoints for products and search.

Reads are anonymous. Writes require a principal; ownership is enforced by the
catalogue store, not here. Writes run in a worker thread while the request
watches for a client disconnect, which cancels the write if it has not
committed yet.
"""

import asyncio
import threading

from fastapi import APIRouter, Depends, Query, Request, Response
from starlette.concurrency import run_in_threadpool

from gateway.api.schemas import (
    ProductPageResponse,
    ProductRequest,
    ProductResponse,
    SearchDocumentResponse,
    SearchPageResponse,
)
from gateway.auth.port import Principal
from gateway.dependencies import expected_version, get_services, require_principal
from services import Services
from shared.exceptions import ValidationError

product_router = APIRouter(prefix="/products", tags=["products"])
search_router = APIRouter(prefix="/search", tags=["search"])


async def _run_cancellable(request: Request, services: Services, func, *args, **kwargs):
    """Run a blocking store write, cancelling it if the client goes away first."""
    cancellation = threading.Event()
    finished = asyncio.Event()
    poll = services.settings.disconnect_poll_seconds

    async def watch_disconnect():
        while not finished.is_set():
            if await request.is_disconnected():
                cancellation.set()
                return
            await asyncio.sleep(poll)

    watcher = asyncio.create_task(watch_disconnect()) if poll > 0 else None
    try:
        return await run_in_threadpool(func, *args, cancellation=cancellation, **kwargs)
    finally:
        finished.set()
        if watcher is not None:
            watcher.cancel()


def _etag(version: int) -> str:
    return f'"{version}"'


def _documents(documents) -> list[SearchDocumentResponse]:
    return [SearchDocumentResponse.from_document(document) for document in documents]


# --- Product endpoints ---


@product_router.post("", status_code=201, response_model=ProductResponse)
async def create_product(
    body: ProductRequest,
    request: Request,
    response: Response,
    principal: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
) -> ProductResponse:
    product = await _run_cancellable(request, services, services.store.create, principal.id, body.model_dump())
    response.headers["Location"] = f"/products/{product.id}"
    response.headers["ETag"] = _etag(product.version)
    return ProductResponse.from_product(product)


@product_router.get("", response_model=ProductPageResponse)
def list_products(
    page: int = Query(0),
    size: int | None = Query(None),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_dir: str = Query("desc", alias="sortDir"),
    services: Services = Depends(get_services),
) -> ProductPageResponse:
    size = size if size is not None else services.settings.default_page_size
    return ProductPageResponse.from_page(services.store.list_products(page, size, sort_by, sort_dir))


@product_router.get("/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: str,
    response: Response,
    services: Services = Depends(get_services),
) -> ProductResponse:
    product = services.store.get(product_id)
    response.headers["ETag"] = _etag(product.version)
    return ProductResponse.from_product(product)


@product_router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    body: ProductRequest,
    request: Request,
    response: Response,
    version: int | None = Depends(expected_version),
    principal: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
) -> ProductResponse:
    product = await _run_cancellable(
        request,
        services,
        services.store.update,
        product_id,
        principal.id,
        body.model_dump(),
        expected_version=version,
    )
    response.headers["ETag"] = _etag(product.version)
    return ProductResponse.from_product(product)


@product_router.delete("/{product_id}", status_code=204)
async def delete_product(
    product_id: str,
    request: Request,
    version: int | None = Depends(expected_version),
    principal: Principal = Depends(require_principal),
    services: Services = Depends(get_services),
) -> Response:
    await _run_cancellable(
        request,
        services,
        services.store.delete,
        product_id,
        principal.id,
        expected_version=version,
    )
    return Response(status_code=204)


# --- Search endpoints ---


@search_router.get("", response_model=list[SearchDocumentResponse] | SearchPageResponse)
def search(
    q: str | None = Query(None),
    category: str | None = Query(None),
    min_price: int | None = Query(None, alias="minPrice"),
    max_price: int | None = Query(None, alias="maxPrice"),
    page: int = Query(0),
    size: int | None = Query(None),
    services: Services = Depends(get_services),
) -> list[SearchDocumentResponse] | SearchPageResponse:
    index = services.index
    if q is not None:
        return _documents(index.query_by_text(q))
    if category is not None:
        return _documents(index.query_by_category(category))
    if min_price is not None or max_price is not None:
        if min_price is None or max_price is None:
            raise ValidationError({"_entity": ["Both minPrice and maxPrice are required for a price search"]})
        return _documents(index.query_by_price_range(min_price, max_price))

    size = size if size is not None else services.settings.default_page_size
    return SearchPageResponse.from_page(index.list_documents(page, size))


@search_router.get("/{product_id}", response_model=SearchDocumentResponse)
def get_search_document(product_id: str, services: Services = Depends(get_services)) -> SearchDocumentResponse:
    return SearchDocumentResponse.from_document(services.index.get_by_id(product_id))
