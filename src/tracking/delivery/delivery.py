"""Delivery aggregate — one outbound event fanned out to N endpoints.

Each endpoint keeps its own delivery state, so a success on one recipient
never hides a failure on another:

    PENDING → PROCESSING → SUCCESS
                         → RETRYING → PROCESSING → ...
                         → FAILED (attempts == max_attempts, terminal)

A PROCESSING claim older than the send timeout is treated as a failed
attempt, so an interrupted send never leaves an endpoint stuck.

An operator retry moves a RETRYING or FAILED endpoint that still has
attempts left back to PENDING. A delivery is settled, and eligible for
removal, once every endpoint succeeded or is terminally failed.
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError
from protean.fields import DateTime, HasMany, Integer, String, Text

from tracking.domain import tracking


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class EndpointStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"
    RETRYING = "retrying"


class EndpointKind(Enum):
    WEBHOOK = "webhook"
    PARTNER = "partner"


class DeliveryPriority(Enum):
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


# Drain order, lowest first
PRIORITY_RANK = {
    DeliveryPriority.HIGH.value: 0,
    DeliveryPriority.NORMAL.value: 1,
    DeliveryPriority.LOW.value: 2,
}


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@tracking.entity(part_of="Delivery")
class DeliveryEndpoint:
    url = String(required=True, max_length=500)
    kind = String(choices=EndpointKind, default=EndpointKind.WEBHOOK.value)
    status = String(choices=EndpointStatus, default=EndpointStatus.PENDING.value)
    attempts = Integer(default=0, min_value=0)
    last_attempt_at = DateTime()
    next_retry_at = DateTime()
    response = Text()  # JSON summary of the last 2xx response
    error = Text()


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@tracking.aggregate
class Delivery:
    event_id = String(required=True, max_length=50)
    event_type = String(required=True, max_length=100)
    envelope = Text(required=True)  # JSON envelope, signed
    priority = String(choices=DeliveryPriority, default=DeliveryPriority.NORMAL.value)
    max_attempts = Integer(required=True, min_value=1)
    queued_at = DateTime(required=True)
    endpoints = HasMany(DeliveryEndpoint)

    @classmethod
    def create(cls, envelope: dict, endpoints, max_attempts: int, priority: str = DeliveryPriority.NORMAL.value):
        """``endpoints`` is a list of ``(url, kind)`` pairs; duplicates are dropped."""
        targets = list(dict.fromkeys((url, kind) for url, kind in endpoints if url))
        if not targets:
            raise ValidationError({"endpoints": ["At least one endpoint is required"]})

        delivery = cls(
            event_id=envelope["id"],
            event_type=envelope["type"],
            envelope=json.dumps(envelope, sort_keys=True, default=str),
            priority=priority,
            max_attempts=max_attempts,
            queued_at=datetime.now(UTC),
        )
        for url, kind in targets:
            delivery.add_endpoints(DeliveryEndpoint(url=url, kind=kind))
        return delivery

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def payload(self) -> dict:
        return json.loads(self.envelope)

    def is_exhausted(self, endpoint) -> bool:
        return endpoint.attempts >= self.max_attempts

    def is_terminal(self, endpoint) -> bool:
        return endpoint.status == EndpointStatus.SUCCESS.value or (
            endpoint.status == EndpointStatus.FAILED.value and self.is_exhausted(endpoint)
        )

    def due_endpoints(self, now: datetime | None = None) -> list:
        now = as_utc(now or datetime.now(UTC))
        due = []
        for endpoint in self.endpoints:
            if endpoint.status == EndpointStatus.PENDING.value:
                due.append(endpoint)
            elif endpoint.status in (EndpointStatus.RETRYING.value, EndpointStatus.FAILED.value):
                if self.is_exhausted(endpoint):
                    continue
                next_retry_at = as_utc(endpoint.next_retry_at)
                if next_retry_at is None or now >= next_retry_at:
                    due.append(endpoint)
        return due

    def stale_endpoints(self, now: datetime | None = None, stale_after: float | None = None) -> list:
        """PROCESSING endpoints whose claim is older than ``stale_after`` seconds."""
        if stale_after is None:
            return []
        now = as_utc(now or datetime.now(UTC))
        cutoff = now - timedelta(seconds=stale_after)
        return [
            endpoint
            for endpoint in self.endpoints
            if endpoint.status == EndpointStatus.PROCESSING.value
            and (endpoint.last_attempt_at is None or as_utc(endpoint.last_attempt_at) <= cutoff)
        ]

    @property
    def is_settled(self) -> bool:
        return bool(self.endpoints) and all(self.is_terminal(endpoint) for endpoint in self.endpoints)

    def endpoint(self, url: str):
        match = next((e for e in self.endpoints if e.url == url), None)
        if match is None:
            raise ObjectNotFoundError(f"Delivery {self.id} has no endpoint {url}")
        return match

    # -------------------------------------------------------------------
    # Attempts
    # -------------------------------------------------------------------
    def claim(self, endpoint, now: datetime | None = None):
        """Mark an endpoint in flight; the attempt counts from here."""
        if self.is_exhausted(endpoint) or self.is_terminal(endpoint):
            raise InvalidOperationError(f"Endpoint {endpoint.url} has no attempts left")
        endpoint.status = EndpointStatus.PROCESSING.value
        endpoint.attempts = endpoint.attempts + 1
        endpoint.last_attempt_at = now or datetime.now(UTC)

    def record_success(self, endpoint, response: dict | None = None):
        endpoint.status = EndpointStatus.SUCCESS.value
        endpoint.response = json.dumps(response or {}, default=str)
        endpoint.error = None
        endpoint.next_retry_at = None

    def record_failure(self, endpoint, error: str, backoff_seconds: float, now: datetime | None = None) -> bool:
        """Record a failed attempt; returns True when the endpoint is now terminally failed."""
        now = now or datetime.now(UTC)
        endpoint.error = error
        if self.is_exhausted(endpoint):
            endpoint.status = EndpointStatus.FAILED.value
            endpoint.next_retry_at = None
            return True
        endpoint.status = EndpointStatus.RETRYING.value
        endpoint.next_retry_at = now + timedelta(seconds=backoff_seconds)
        return False

    def retry(self, url: str | None = None) -> list[str]:
        """Operator retry: reset matching endpoints with attempts left to pending.

        ``attempts`` is never reset. Returns the urls reset.
        """
        candidates = [self.endpoint(url)] if url else list(self.endpoints)
        retryable = [
            e for e in candidates if e.status in (EndpointStatus.FAILED.value, EndpointStatus.RETRYING.value)
        ]
        if not retryable:
            raise InvalidOperationError("No failed endpoints to retry")

        reset = []
        for endpoint in retryable:
            if self.is_exhausted(endpoint):
                continue
            endpoint.status = EndpointStatus.PENDING.value
            endpoint.next_retry_at = None
            reset.append(endpoint.url)
        if not reset:
            raise InvalidOperationError("All matching endpoints have exhausted their attempts")
        return reset

    def summary(self) -> dict:
        return {
            "id": str(self.id),
            "event_id": self.event_id,
            "event_type": self.event_type,
            "priority": self.priority,
            "queued_at": self.queued_at.isoformat() if self.queued_at else None,
            "settled": self.is_settled,
            "endpoints": [
                {
                    "url": e.url,
                    "kind": e.kind,
                    "status": e.status,
                    "attempts": e.attempts,
                    "last_attempt_at": e.last_attempt_at.isoformat() if e.last_attempt_at else None,
                    "next_retry_at": e.next_retry_at.isoformat() if e.next_retry_at else None,
                    "error": e.error,
                }
                for e in self.endpoints
            ],
        }
