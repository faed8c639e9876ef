"""Storefront FastAPI application.

Serves product writes through the catalogue store and reads through the
search index. Change propagation runs in a separate process (``server.py``).

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from gateway.api import product_router, search_router
from gateway.api.schemas import HealthResponse
from gateway.dependencies import get_services
from gateway.errors import register_error_handlers
from services import Services, build_services
from shared.logging import add_context, clear_context, configure_logging

REQUEST_ID_HEADER = "X-Request-ID"


def create_app(services: Services | None = None) -> FastAPI:
    """Build the application. Tests pass their own ``services``; otherwise they come from settings."""
    if services is None:
        configure_logging(log_dir="logs", log_file_prefix="storefront")
        services = build_services()

    app = FastAPI(
        title="Storefront API",
        description="Product catalogue writes and search reads",
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        """Bind a request id to every log line of the request and echo it back."""
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        clear_context()
        add_context(request_id=request_id, method=request.method, path=request.url.path)
        try:
            response = await call_next(request)
        finally:
            clear_context()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    register_error_handlers(app)

    app.include_router(product_router)
    app.include_router(search_router)

    @app.get("/health", response_model=HealthResponse)
    def health(request: Request) -> HealthResponse:
        services = get_services(request)
        return HealthResponse(
            status="ok",
            search_documents=services.index.count(),
            outbox=services.outbox.count_by_status(),
        )

    return app


def __getattr__(name: str):
    # ``uvicorn app:app`` builds the default application on first access
    if name == "app":
        application = create_app()
        globals()["app"] = application
        return application
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
