"""Tests for the Delivery aggregate's per-endpoint state machine."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError
from tracking.delivery.delivery import Delivery, EndpointStatus
from tracking.delivery.envelope import build_envelope

HOOK = "https://hooks.example.com/a"
PARTNER = "https://partner.example.com/api/packages"


def _delivery(endpoints=None, max_attempts=3):
    envelope = build_envelope("package.updated", {"package": {}}, "secret")
    return Delivery.create(envelope, endpoints or [(HOOK, "webhook")], max_attempts=max_attempts)


def _fail(delivery, endpoint, now, backoff=1):
    delivery.claim(endpoint, now)
    return delivery.record_failure(endpoint, "HTTP 500: Internal Server Error", backoff, now)


class TestCreate:
    def test_one_endpoint_per_target(self):
        delivery = _delivery([(HOOK, "webhook"), (HOOK, "webhook"), (PARTNER, "partner")])
        assert [(e.url, e.kind) for e in delivery.endpoints] == [(HOOK, "webhook"), (PARTNER, "partner")]
        assert all(e.status == EndpointStatus.PENDING.value for e in delivery.endpoints)
        assert all(e.attempts == 0 for e in delivery.endpoints)

    def test_defaults(self):
        delivery = _delivery()
        assert delivery.priority == "normal"
        assert delivery.event_type == "package.updated"
        assert delivery.payload["id"] == delivery.event_id

    def test_requires_an_endpoint(self):
        with pytest.raises(ValidationError):
            _delivery([("", "webhook")])


class TestAttempts:
    def test_claim_counts_the_attempt(self):
        delivery = _delivery()
        endpoint = delivery.endpoints[0]
        delivery.claim(endpoint)
        assert endpoint.status == EndpointStatus.PROCESSING.value
        assert endpoint.attempts == 1
        assert endpoint.last_attempt_at is not None

    def test_success(self):
        delivery = _delivery()
        endpoint = delivery.endpoints[0]
        delivery.claim(endpoint)
        delivery.record_success(endpoint, {"status": 200})
        assert endpoint.status == EndpointStatus.SUCCESS.value
        assert delivery.is_settled
        assert delivery.due_endpoints() == []

    def test_failure_schedules_retry(self):
        now = datetime.now(UTC)
        delivery = _delivery()
        endpoint = delivery.endpoints[0]

        assert _fail(delivery, endpoint, now, backoff=5) is False
        assert endpoint.status == EndpointStatus.RETRYING.value
        assert endpoint.next_retry_at == now + timedelta(seconds=5)
        assert endpoint.error == "HTTP 500: Internal Server Error"

    def test_not_due_before_next_retry(self):
        now = datetime.now(UTC)
        delivery = _delivery()
        endpoint = delivery.endpoints[0]
        _fail(delivery, endpoint, now, backoff=5)

        assert delivery.due_endpoints(now + timedelta(seconds=4)) == []
        assert delivery.due_endpoints(now + timedelta(seconds=5)) == [endpoint]

    def test_exhaustion_is_terminal(self):
        now = datetime.now(UTC)
        delivery = _delivery(max_attempts=2)
        endpoint = delivery.endpoints[0]

        _fail(delivery, endpoint, now)
        assert _fail(delivery, endpoint, now + timedelta(seconds=1)) is True
        assert endpoint.status == EndpointStatus.FAILED.value
        assert endpoint.attempts == 2
        assert endpoint.next_retry_at is None
        assert delivery.is_settled
        assert delivery.due_endpoints(now + timedelta(days=1)) == []

    def test_exhausted_endpoint_cannot_be_claimed(self):
        delivery = _delivery(max_attempts=1)
        endpoint = delivery.endpoints[0]
        _fail(delivery, endpoint, datetime.now(UTC))
        with pytest.raises(InvalidOperationError):
            delivery.claim(endpoint)

    def test_not_settled_while_any_endpoint_pending(self):
        delivery = _delivery([(HOOK, "webhook"), (PARTNER, "partner")])
        first = delivery.endpoints[0]
        delivery.claim(first)
        delivery.record_success(first)
        assert not delivery.is_settled


class TestOperatorRetry:
    def test_retrying_endpoint_reset_to_pending(self):
        delivery = _delivery()
        endpoint = delivery.endpoints[0]
        _fail(delivery, endpoint, datetime.now(UTC), backoff=60)

        assert delivery.retry() == [HOOK]
        assert endpoint.status == EndpointStatus.PENDING.value
        assert endpoint.next_retry_at is None
        assert endpoint.attempts == 1

    def test_exhausted_endpoint_not_reset(self):
        delivery = _delivery(max_attempts=1)
        _fail(delivery, delivery.endpoints[0], datetime.now(UTC))
        with pytest.raises(InvalidOperationError):
            delivery.retry()

    def test_nothing_failed(self):
        with pytest.raises(InvalidOperationError):
            _delivery().retry()

    def test_unknown_url(self):
        with pytest.raises(ObjectNotFoundError):
            _delivery().retry("https://nowhere.example.com")

    def test_retry_single_url(self):
        now = datetime.now(UTC)
        delivery = _delivery([(HOOK, "webhook"), (PARTNER, "partner")])
        for endpoint in delivery.endpoints:
            _fail(delivery, endpoint, now, backoff=60)

        assert delivery.retry(PARTNER) == [PARTNER]
        assert delivery.endpoint(HOOK).status == EndpointStatus.RETRYING.value


class TestSummary:
    def test_summary_lists_endpoints(self):
        summary = _delivery().summary()
        assert summary["event_type"] == "package.updated"
        assert summary["settled"] is False
        assert summary["endpoints"][0]["url"] == HOOK
        assert summary["endpoints"][0]["status"] == "pending"
