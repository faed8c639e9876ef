"""Composition root: builds every component of the storefront from settings.

The HTTP app, the propagation engine runner and the management CLI all start
from ``build_services`` so they share one wiring.
"""

from dataclasses import dataclass

from protean.domain import Domain

from catalogue.domain import init_catalogue
from catalogue.outbox import CatalogueOutbox
from catalogue.store import CatalogueStore
from gateway.auth import get_session_validator
from gateway.auth.port import SessionValidatorPort
from propagation.engine import PropagationEngine
from propagation.processor import DeadLetterCallback, OutboxProcessor
from search.index import SearchIndex
from shared.config import Settings, get_settings
from shared.db import drop_db, setup_db


@dataclass
class Services:
    settings: Settings
    domain: Domain
    outbox: CatalogueOutbox
    store: CatalogueStore
    index: SearchIndex
    processor: OutboxProcessor
    propagation: PropagationEngine
    session_validator: SessionValidatorPort

    def setup_databases(self) -> None:
        setup_db(self.domain)

    def drop_databases(self) -> None:
        drop_db(self.domain)


def build_services(
    settings: Settings | None = None,
    session_validator: SessionValidatorPort | None = None,
    sleep=None,
    on_dead_letter: DeadLetterCallback | None = None,
) -> Services:
    settings = settings or get_settings()
    domain = init_catalogue(settings)

    outbox = CatalogueOutbox(domain, partitions=settings.propagation_partitions)
    store = CatalogueStore(domain, max_page_size=settings.max_page_size)
    index = SearchIndex(domain, max_page_size=settings.max_page_size)
    processor = OutboxProcessor(
        domain,
        outbox,
        index,
        max_attempts=settings.propagation_max_attempts,
        base_backoff_seconds=settings.propagation_base_backoff_seconds,
        max_backoff_seconds=settings.propagation_max_backoff_seconds,
        batch_size=settings.propagation_batch_size,
        sleep=sleep,
        on_dead_letter=on_dead_letter,
    )
    propagation = PropagationEngine(
        processor,
        partitions=settings.propagation_partitions,
        poll_interval=settings.propagation_poll_interval_seconds,
    )

    return Services(
        settings=settings,
        domain=domain,
        outbox=outbox,
        store=store,
        index=index,
        processor=processor,
        propagation=propagation,
        session_validator=session_validator or get_session_validator(settings),
    )
