"""Outbox processor: delivers pending product events to the search index.

One call to ``process_partition`` handles a batch of one partition in outbox
order, so events of a product are applied in the order they were committed.

- Transient failures (``TransientInfraError``) are retried in place with
  exponential backoff, so a later event never overtakes an earlier one.
- After ``max_attempts`` the event is dead-lettered and the partition moves on.
- Any other failure (a malformed row, an unknown event type) can never
  succeed and is dead-lettered immediately.

Delivery hands the outbox row to the search document projector, rebuilt as a
domain message the way the domain engine would publish it.
"""

import threading
from collections.abc import Callable
from dataclasses import asdict, dataclass

import structlog
from protean.domain import Domain
from protean.exceptions import DeserializationError

from catalogue.outbox import CatalogueOutbox, DeadLetter, PendingEvent
from search.index import SearchIndex
from search.projections.search_document import SearchDocumentProjector
from shared.exceptions import ConsistencyExhaustedError, TransientInfraError

logger = structlog.get_logger(__name__)

DeadLetterCallback = Callable[[DeadLetter, ConsistencyExhaustedError], None]


def backoff_delay(attempt: int, base: float, maximum: float) -> float:
    """Delay before retry number ``attempt`` (1-based): base, 2*base, 4*base, ... capped."""
    return min(base * (2 ** (attempt - 1)), maximum)


@dataclass
class ProcessorMetrics:
    messages_processed: int = 0
    stale_skipped: int = 0
    retries: int = 0
    dead_lettered: int = 0


class OutboxProcessor:
    def __init__(
        self,
        domain: Domain,
        outbox: CatalogueOutbox,
        index: SearchIndex,
        max_attempts: int = 5,
        base_backoff_seconds: float = 0.5,
        max_backoff_seconds: float = 30.0,
        batch_size: int = 100,
        sleep: Callable[[float], object] | None = None,
        on_dead_letter: DeadLetterCallback | None = None,
    ):
        self.domain = domain
        self.outbox = outbox
        self.index = index
        self.projector = SearchDocumentProjector
        self.max_attempts = max_attempts
        self.base_backoff_seconds = base_backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.batch_size = batch_size
        self.on_dead_letter = on_dead_letter
        self.metrics = ProcessorMetrics()

        self._stopping = threading.Event()
        # Waiting on the stop event lets shutdown interrupt a long backoff
        self._sleep = sleep or self._stopping.wait
        self._metrics_lock = threading.Lock()

    def stop(self) -> None:
        self._stopping.set()

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    def metrics_snapshot(self) -> dict[str, int]:
        with self._metrics_lock:
            return asdict(self.metrics)

    def process_partition(self, partition: int) -> int:
        """Process one batch of a partition. Returns how many events were settled."""
        settled = 0
        for pending in self.outbox.fetch_pending(partition, self.batch_size):
            with structlog.contextvars.bound_contextvars(
                partition=partition,
                product_id=pending.product_id,
                message_id=pending.message_id,
            ):
                if not self._deliver(pending):
                    # Stopped mid-retry; the event stays pending, later ones wait behind it
                    break
            settled += 1
        return settled

    def _deliver(self, pending: PendingEvent) -> bool:
        attempts = pending.attempts
        while True:
            attempts += 1
            try:
                applied = self._apply(pending)
            except TransientInfraError as exc:
                if attempts >= self.max_attempts:
                    self._dead_letter(pending, attempts, str(exc))
                    return True

                self.outbox.record_failure(pending.id, attempts, str(exc))
                delay = backoff_delay(attempts, self.base_backoff_seconds, self.max_backoff_seconds)
                self._count("retries")
                logger.warning(
                    "Search index write failed, retrying",
                    attempt=attempts,
                    max_attempts=self.max_attempts,
                    delay=delay,
                    error=str(exc),
                )
                self._sleep(delay)
                if self.stopping:
                    return False
                continue
            except DeserializationError as exc:
                logger.error("Malformed product event", attempt=attempts, error=str(exc))
                self._dead_letter(pending, attempts, f"Malformed product event: {exc}")
                return True
            except Exception as exc:
                # Anything other than an infrastructure hiccup will fail again on retry
                logger.exception("Product event cannot be applied", attempt=attempts)
                self._dead_letter(pending, attempts, f"{type(exc).__name__}: {exc}")
                return True

            self.outbox.mark_processed(pending.id, attempts)
            self._count("messages_processed")
            if not applied:
                self._count("stale_skipped")
            logger.debug("Product event delivered", version=pending.version, applied=applied)
            return True

    def _apply(self, pending: PendingEvent) -> bool:
        """Hand one row to the projector. Returns False when an equal or newer version was already indexed."""
        indexed_version = self.index.source_version(pending.product_id)
        with self.domain.domain_context():
            self.projector._handle(pending.to_message())
        return indexed_version is None or pending.version is None or indexed_version < pending.version

    def _dead_letter(self, pending: PendingEvent, attempts: int, error: str) -> None:
        dead_letter = self.outbox.dead_letter(pending.id, attempts, error)
        self._count("dead_lettered")

        exhausted = ConsistencyExhaustedError(
            event_id=pending.message_id,
            product_id=pending.product_id,
            attempts=attempts,
            last_error=error,
        )
        logger.error(
            "Product event dead-lettered",
            dead_letter_id=dead_letter.id,
            attempts=attempts,
            error=exhausted.message,
        )

        if self.on_dead_letter is not None:
            try:
                self.on_dead_letter(dead_letter, exhausted)
            except Exception:
                logger.exception("Dead-letter callback failed", dead_letter_id=dead_letter.id)

    def _count(self, metric: str) -> None:
        with self._metrics_lock:
            setattr(self.metrics, metric, getattr(self.metrics, metric) + 1)
