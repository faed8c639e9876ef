"""Storefront monitoring dashboard.

Lightweight FastAPI server for watching the outbox queue, dead letters and
search index size.

Usage:
    uvicorn monitor:app --app-dir src --host 0.0.0.0 --port 9000
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from services import Services, build_services
from shared.exceptions import CatalogError

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _outbox_status(services: Services):
    """Query outbox counts per status and per partition."""
    try:
        partitions = {
            str(partition): services.outbox.pending_count(partition)
            for partition in range(services.outbox.partitions)
        }
        return {"status": "ok", "counts": services.outbox.count_by_status(), "pending_by_partition": partitions}
    except Exception as e:
        logger.error("Error querying outbox", error=str(e))
        return {"status": "error", "error": str(e)}


def _search_status(services: Services):
    try:
        return {"status": "ok", "documents": services.index.count()}
    except CatalogError as e:
        logger.error("Error querying search index", error=e.message)
        return {"status": "error", "error": e.message}


def _dead_letters(services: Services):
    return [
        {
            "id": letter.id,
            "message_id": letter.message_id,
            "product_id": letter.product_id,
            "type": letter.type,
            "version": letter.version,
            "attempts": letter.attempts,
            "error": letter.error,
            "failed_at": letter.failed_at.isoformat() if letter.failed_at else None,
        }
        for letter in services.outbox.list_dead_letters()
    ]


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
def create_monitor(services: Services | None = None) -> FastAPI:
    app = FastAPI(
        title="Storefront Monitor",
        description="Monitoring dashboard for the outbox queue, dead letters and search index",
    )
    app.state.services = services or build_services()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health(request: Request):
        """Health check for both databases."""
        services = request.app.state.services
        outbox = _outbox_status(services)
        search = _search_status(services)
        healthy = outbox["status"] == "ok" and search["status"] == "ok"
        return JSONResponse(
            content={
                "status": "ok" if healthy else "degraded",
                "outbox": outbox,
                "search": search,
            }
        )

    @app.get("/outbox")
    def outbox(request: Request):
        """Outbox queue depth."""
        return JSONResponse(content=_outbox_status(request.app.state.services))

    @app.get("/dead-letters")
    def dead_letters(request: Request):
        """Dead-lettered product events awaiting manual replay."""
        return JSONResponse(content={"dead_letters": _dead_letters(request.app.state.services)})

    return app


def __getattr__(name: str):
    if name == "app":
        application = create_monitor()
        globals()["app"] = application
        return application
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
