"""Catalogue outbox: the consumer side of the domain's transactional outbox.

The unit of work writes one outbox row per product event in the same
transaction as the product itself. This module reads those rows back per
partition, in commit order, and records what the propagation pipeline did
with each: published, failed for now, or abandoned (dead-lettered).
"""

import zlib
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from protean.domain import Domain
from protean.exceptions import ObjectNotFoundError
from protean.utils.eventing import Message
from protean.utils.outbox import Outbox, OutboxStatus

from catalogue.product.product import as_utc
from shared.exceptions import NotFoundError

# Rows a partition worker may pick up; failed rows are retried before anything behind them
_DELIVERABLE = [OutboxStatus.PENDING.value, OutboxStatus.FAILED.value]


def partition_for(product_id: str, partitions: int) -> int:
    """Stable partition of a product id. Every event of one product lands in one partition."""
    return zlib.crc32(product_id.encode("utf-8")) % partitions


def product_id_of(record: Outbox) -> str:
    """Product id of an outbox row, from its ``<category>-<id>`` stream name."""
    return record.data.get("product_id") or record.stream_name.split("-", 1)[-1]


@dataclass
class PendingEvent:
    id: str
    message_id: str
    product_id: str
    type: str
    version: int | None
    attempts: int
    data: dict
    metadata: Any

    def to_message(self) -> Message:
        return Message(data=self.data, metadata=self.metadata)


@dataclass
class DeadLetter:
    id: str
    message_id: str
    product_id: str
    type: str
    version: int | None
    error: str
    attempts: int
    failed_at: datetime | None


def _to_pending(record: Outbox) -> PendingEvent:
    return PendingEvent(
        id=record.id,
        message_id=record.message_id,
        product_id=product_id_of(record),
        type=record.type,
        version=record.data.get("version"),
        attempts=record.retry_count or 0,
        data=record.data,
        metadata=record.metadata_,
    )


def _to_dead_letter(record: Outbox) -> DeadLetter:
    last_error = record.last_error or {}
    return DeadLetter(
        id=record.id,
        message_id=record.message_id,
        product_id=product_id_of(record),
        type=record.type,
        version=record.data.get("version"),
        error=last_error.get("message", ""),
        attempts=record.retry_count or 0,
        failed_at=as_utc(record.last_processed_at),
    )


class CatalogueOutbox:
    def __init__(self, domain: Domain, partitions: int = 4, provider: str = "default"):
        self.domain = domain
        self.partitions = partitions
        self.provider = provider

    @property
    def repository(self):
        return self.domain._get_outbox_repo(self.provider)

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------
    def fetch_pending(self, partition: int, limit: int = 100) -> list[PendingEvent]:
        """Deliverable events of one partition, in commit order."""
        with self.domain.domain_context():
            records = self._deliverable()
            return [
                _to_pending(record)
                for record in records
                if partition_for(product_id_of(record), self.partitions) == partition
            ][:limit]

    def mark_processed(self, outbox_id: str, attempts: int) -> None:
        with self.domain.domain_context():
            record = self._get(outbox_id)
            record.retry_count = attempts
            record.mark_published(now=datetime.now(UTC))
            self.repository.add(record)

    def record_failure(self, outbox_id: str, attempts: int, error: str) -> None:
        """Persist the attempt count so a restarted worker keeps the same retry budget."""
        now = datetime.now(UTC)
        with self.domain.domain_context():
            record = self._get(outbox_id)
            record.status = OutboxStatus.FAILED.value
            record.retry_count = attempts
            record.last_processed_at = now
            record.last_error = {"message": error, "failed_at": now.isoformat(), "retry_count": attempts}
            self.repository.add(record)

    def dead_letter(self, outbox_id: str, attempts: int, error: str) -> DeadLetter:
        """Abandon an outbox row. It stays in the table for inspection and replay."""
        now = datetime.now(UTC)
        with self.domain.domain_context():
            record = self._get(outbox_id)
            record.status = OutboxStatus.ABANDONED.value
            record.retry_count = attempts
            record.last_processed_at = now
            record.last_error = {
                "message": error,
                "failed_at": now.isoformat(),
                "retry_count": attempts,
                "reason": "Delivery to the search index exhausted",
            }
            record.next_retry_at = None
            self.repository.add(record)
            return _to_dead_letter(record)

    # ------------------------------------------------------------------
    # Monitoring and manual intervention
    # ------------------------------------------------------------------
    def count_by_status(self) -> dict[str, int]:
        with self.domain.domain_context():
            return self.repository.count_by_status()

    def pending_count(self, partition: int | None = None) -> int:
        with self.domain.domain_context():
            if partition is None:
                return self.repository._dao.query.filter(status__in=_DELIVERABLE).count()
            return sum(
                1
                for record in self._deliverable()
                if partition_for(product_id_of(record), self.partitions) == partition
            )

    def list_dead_letters(self) -> list[DeadLetter]:
        with self.domain.domain_context():
            records = (
                self.repository._dao.query.filter(status=OutboxStatus.ABANDONED.value)
                .order_by(["created_at", "id"])
                .limit(None)
                .all()
                .items
            )
            return [_to_dead_letter(record) for record in records]

    def replay_dead_letter(self, outbox_id: str) -> DeadLetter:
        """Put an abandoned row back in line with a fresh retry budget."""
        with self.domain.domain_context():
            try:
                record = self._get(outbox_id)
            except NotFoundError:
                raise NotFoundError(f"Dead letter {outbox_id} not found") from None
            if record.status != OutboxStatus.ABANDONED.value:
                raise NotFoundError(f"Dead letter {outbox_id} not found")

            dead_letter = _to_dead_letter(record)
            record.reset_for_retry()
            record.retry_count = 0
            record.last_error = None
            self.repository.add(record)
            return dead_letter

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _deliverable(self) -> list[Outbox]:
        records = self.repository._dao.query.filter(status__in=_DELIVERABLE).limit(None).all().items
        # Rows of one product are written in version order, one committed write at a time
        return sorted(records, key=lambda record: (as_utc(record.created_at), record.data.get("version") or 0))

    def _get(self, outbox_id: str) -> Outbox:
        try:
            return self.repository.get(outbox_id)
        except ObjectNotFoundError:
            raise NotFoundError(f"Outbox message {outbox_id} not found") from None
