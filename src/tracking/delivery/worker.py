"""DeliveryWorker — drains the delivery queue.

One pass sends every due endpoint once. Passes never overlap within a
process: a pass that finds the lock taken returns immediately. Each endpoint
is claimed (persisted as PROCESSING with its attempt counted) before the
network call, so a crash mid-send never grants an extra attempt. A send that
raises counts as a failed attempt, and a claim left behind by a crashed pass
is failed once it is older than the send timeout.

``start()`` runs passes on a daemon timer thread; ``wake()`` asks for an
immediate pass, e.g. right after an enqueue.
"""

import threading
from datetime import UTC, datetime

import structlog
from protean.utils.globals import current_domain

from tracking.delivery import get_transport, register_worker, unregister_worker
from tracking.delivery.queue import DeliveryQueue
from tracking.delivery.transport import DeliveryResult
from tracking.utils.logging import bind_sync_context, clear_sync_context

logger = structlog.get_logger(__name__)


class DeliveryWorker:
    def __init__(self, queue: DeliveryQueue | None = None, transport=None, domain=None):
        self.queue = queue or DeliveryQueue()
        self.transport = transport
        self.domain = domain
        self._lock = threading.Lock()
        self._wake = threading.Event()
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def settings(self):
        return self.queue.settings

    def drain(self, now: datetime | None = None) -> dict:
        """Run one pass; returns counts of the outcomes."""
        outcome = {"attempted": 0, "succeeded": 0, "retrying": 0, "failed": 0, "purged": 0, "skipped": False}
        if not self._lock.acquire(blocking=False):
            outcome["skipped"] = True
            return outcome

        try:
            now = now or datetime.now(UTC)
            transport = self.transport or get_transport()
            for delivery in self.queue.due(now):
                try:
                    self._deliver(delivery, transport, now, outcome)
                except Exception as exc:
                    logger.exception("Delivery processing failed", delivery_id=str(delivery.id), error=str(exc))
                finally:
                    clear_sync_context()
            outcome["purged"] = self.queue.purge_settled(now)
        finally:
            self._lock.release()

        if outcome["attempted"]:
            logger.info("Delivery queue drained", **{k: v for k, v in outcome.items() if k != "skipped"})
        return outcome

    def _deliver(self, delivery, transport, now: datetime, outcome: dict) -> None:
        bind_sync_context(delivery_id=str(delivery.id), event_type=delivery.event_type)
        envelope = delivery.payload

        stale = delivery.stale_endpoints(now, self.settings.timeout_seconds)
        for endpoint in stale:
            self._record_failure(delivery, endpoint, "Delivery attempt interrupted", now, outcome)
        if stale and not self.queue.save(delivery):
            return

        for url in [endpoint.url for endpoint in delivery.due_endpoints(now)]:
            delivery = self.queue.refresh(delivery.id)
            if delivery is None:
                return
            if url not in {e.url for e in delivery.due_endpoints(now)}:
                continue
            endpoint = delivery.endpoint(url)

            delivery.claim(endpoint, now)
            if not self.queue.save(delivery):
                return
            outcome["attempted"] += 1

            try:
                result = transport.send(endpoint.url, endpoint.kind, envelope, self.settings.timeout_seconds)
            except Exception as exc:
                logger.exception("Delivery transport raised", url=endpoint.url, error=str(exc))
                result = DeliveryResult(success=False, error=f"{type(exc).__name__}: {exc}")

            # Only this endpoint's outcome is applied to the stored copy
            delivery = self.queue.refresh(delivery.id)
            if delivery is None:
                return
            endpoint = delivery.endpoint(url)
            if result.success:
                delivery.record_success(endpoint, result.response)
                outcome["succeeded"] += 1
                logger.info("Delivery succeeded", url=endpoint.url, attempts=endpoint.attempts)
            else:
                self._record_failure(delivery, endpoint, result.error or "Delivery failed", now, outcome)
            if not self.queue.save(delivery):
                return

    def _record_failure(self, delivery, endpoint, error: str, now: datetime, outcome: dict) -> None:
        exhausted = delivery.record_failure(endpoint, error, self.settings.backoff_for(endpoint.attempts), now)
        if exhausted:
            outcome["failed"] += 1
            logger.error(
                "Delivery failed permanently",
                url=endpoint.url,
                attempts=endpoint.attempts,
                error=endpoint.error,
            )
        else:
            outcome["retrying"] += 1
            logger.warning(
                "Delivery attempt failed, will retry",
                url=endpoint.url,
                attempts=endpoint.attempts,
                next_retry_at=endpoint.next_retry_at.isoformat(),
                error=endpoint.error,
            )

    # -------------------------------------------------------------------
    # Background loop
    # -------------------------------------------------------------------
    def wake(self) -> None:
        self._wake.set()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        if self.domain is None:
            self.domain = current_domain._get_current_object()
        self._stopped.clear()
        self._thread = threading.Thread(target=self._run, name="delivery-worker", daemon=True)
        self._thread.start()
        register_worker(self)
        logger.info("Delivery worker started", interval=self.settings.drain_interval_seconds)

    def stop(self, timeout: float | None = 5) -> None:
        unregister_worker(self)
        self._stopped.set()
        self._wake.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Delivery worker stopped")

    def _run(self) -> None:
        while not self._stopped.is_set():
            self._wake.wait(self.settings.drain_interval_seconds)
            self._wake.clear()
            if self._stopped.is_set():
                break
            try:
                with self.domain.domain_context():
                    self.drain()
            except Exception as exc:
                logger.exception("Delivery pass failed", error=str(exc))
