"""Domain initialization and configuration."""

import structlog
from protean.domain import Domain

from shared.config import Settings

logger = structlog.get_logger(__name__)

# Domain Composition Root
catalogue = Domain(
    name="catalogue",
    config={
        "databases": {
            "default": {"provider": "sqlite", "database_uri": "sqlite:///catalogue.db"},
            "search": {"provider": "sqlite", "database_uri": "sqlite:///search.db"},
        },
        "enable_outbox": True,
        "command_processing": "sync",
        # Outbox rows are delivered by the propagation engine, never inline
        "event_processing": "async",
        # Required by protean when enable_outbox is set
        "server": {"default_subscription_type": "stream"},
    },
)

_initialized = False


def database_config(url: str, timeout: float) -> dict:
    """Provider settings for a database URL. Extra keys are passed on to ``create_engine``."""
    if url.startswith("postgresql"):
        return {
            "provider": "postgresql",
            "database_uri": url,
            "pool_pre_ping": True,
            "pool_timeout": timeout,
            "connect_args": {
                "connect_timeout": max(1, int(timeout)),
                "options": f"-c statement_timeout={int(timeout * 1000)}",
            },
        }
    return {
        "provider": "sqlite",
        "database_uri": url,
        "connect_args": {"check_same_thread": False, "timeout": timeout},
    }


def init_catalogue(settings: Settings) -> Domain:
    """Point the domain at the configured databases and initialize it once per process.

    Later calls only refresh the settings that are read at call time.
    """
    global _initialized

    if not _initialized:
        catalogue.config["databases"]["default"] = database_config(settings.catalogue_database_url, timeout=5.0)
        catalogue.config["databases"]["search"] = database_config(
            settings.search_database_url, timeout=settings.search_timeout_seconds
        )

        # Elements register themselves on import
        from catalogue.product import creation, details, removal  # noqa: F401
        from search.projections import search_document  # noqa: F401

        catalogue.init(traverse=False)
        _initialized = True
        logger.info(
            "Catalogue domain initialized",
            catalogue_database=settings.catalogue_database_url,
            search_database=settings.search_database_url,
        )

    version_retry = catalogue.config.setdefault("server", {}).setdefault("version_retry", {})
    version_retry["max_retries"] = settings.catalogue_write_retries
    return catalogue
