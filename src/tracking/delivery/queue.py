"""DeliveryQueue — the store of pending outbound deliveries.

The queue is an ordinary service over the Delivery repository, constructed
with its settings. Durability follows the configured database provider: with
the in-memory provider the queue is lost on restart.
"""

from collections import Counter
from datetime import UTC, datetime, timedelta

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from tracking.delivery import current_worker
from tracking.delivery.delivery import PRIORITY_RANK, Delivery, DeliveryPriority, EndpointStatus, as_utc
from tracking.delivery.settings import DeliverySettings

logger = structlog.get_logger(__name__)


class DeliveryQueue:
    def __init__(self, settings: DeliverySettings | None = None):
        self.settings = settings or DeliverySettings.from_config()

    @property
    def repository(self):
        return current_domain.repository_for(Delivery)

    def _all(self) -> list:
        return self.repository._dao.query.limit(None).all().items

    def get(self, delivery_id: str):
        return self.repository.get(delivery_id)

    # -------------------------------------------------------------------
    # Enqueue
    # -------------------------------------------------------------------
    def enqueue(self, envelope: dict, endpoints, priority: str = DeliveryPriority.NORMAL.value):
        """Queue ``envelope`` for every ``(url, kind)`` endpoint; returns the delivery."""
        delivery = Delivery.create(envelope, endpoints, max_attempts=self.settings.max_attempts, priority=priority)
        self.repository.add(delivery)
        logger.info(
            "Delivery enqueued",
            delivery_id=str(delivery.id),
            event_type=delivery.event_type,
            endpoints=[e.url for e in delivery.endpoints],
        )

        if not self.settings.delay_drain:
            worker = current_worker()
            if worker is not None:
                worker.wake()
        return delivery

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def due(self, now: datetime | None = None) -> list:
        """Deliveries with at least one endpoint ready to send or a stale claim, in drain order."""
        now = now or datetime.now(UTC)
        stale_after = self.settings.timeout_seconds
        ready = [
            delivery
            for delivery in self._all()
            if delivery.due_endpoints(now) or delivery.stale_endpoints(now, stale_after)
        ]
        return sorted(ready, key=lambda d: (PRIORITY_RANK.get(d.priority, 1), as_utc(d.queued_at)))

    def items(self, limit: int = 50, status: str | None = None, event_type: str | None = None) -> list:
        """Newest first, optionally narrowed to an endpoint status or event type."""
        deliveries = self._all()
        if event_type:
            deliveries = [d for d in deliveries if d.event_type == event_type]
        if status:
            deliveries = [d for d in deliveries if any(e.status == status for e in d.endpoints)]
        deliveries.sort(key=lambda d: as_utc(d.queued_at), reverse=True)
        return deliveries[:limit]

    def stats(self) -> dict:
        deliveries = self._all()
        by_status = Counter({status.value: 0 for status in EndpointStatus})
        for delivery in deliveries:
            by_status.update(endpoint.status for endpoint in delivery.endpoints)
        queued_at = sorted(as_utc(d.queued_at) for d in deliveries)
        return {
            "total_queued": len(deliveries),
            "by_status": dict(by_status),
            "oldest_item": queued_at[0].isoformat() if queued_at else None,
            "newest_item": queued_at[-1].isoformat() if queued_at else None,
        }

    # -------------------------------------------------------------------
    # Operator actions
    # -------------------------------------------------------------------
    def retry(self, delivery_id: str, url: str | None = None) -> list[str]:
        delivery = self.get(delivery_id)
        reset = delivery.retry(url)
        self.repository.add(delivery)
        logger.info("Delivery retry requested", delivery_id=str(delivery_id), endpoints=reset)
        return reset

    def cancel(self, delivery_id: str) -> None:
        delivery = self.get(delivery_id)
        self.repository._dao.delete(delivery)
        logger.info("Delivery cancelled", delivery_id=str(delivery_id), event_type=delivery.event_type)

    def refresh(self, delivery_id: str):
        """The stored delivery, or None when it was cancelled meanwhile."""
        try:
            return self.repository.get(delivery_id)
        except ObjectNotFoundError:
            logger.info("Delivery cancelled during attempt", delivery_id=str(delivery_id))
            return None

    def save(self, delivery) -> bool:
        """Persist endpoint state; returns False when the delivery was cancelled meanwhile."""
        if self.refresh(delivery.id) is None:
            return False
        self.repository.add(delivery)
        return True

    # -------------------------------------------------------------------
    # Garbage collection
    # -------------------------------------------------------------------
    def purge_settled(self, now: datetime | None = None, older_than: timedelta | None = None) -> int:
        """Remove settled deliveries queued before ``now - older_than``."""
        now = as_utc(now or datetime.now(UTC))
        older_than = older_than if older_than is not None else timedelta(hours=self.settings.retention_hours)
        cutoff = now - older_than

        purged = 0
        for delivery in self._all():
            if delivery.is_settled and as_utc(delivery.queued_at) < cutoff:
                self.repository._dao.delete(delivery)
                purged += 1
        if purged:
            logger.info("Settled deliveries purged", purged=purged)
        return purged

    def clean_completed(self, max_age_hours: float = 24) -> int:
        return self.purge_settled(older_than=timedelta(hours=max_age_hours))
