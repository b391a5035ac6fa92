"""Tests for the package status ledger."""

from datetime import timedelta

import pytest
from protean.exceptions import ValidationError
from tracking.package.events import PackageReceived, PackageStatusChanged
from tracking.package.package import PACKAGE_LEDGER, Package
from tracking.shared.origin import Origin


def _receive(**overrides):
    attributes = {
        "tracking_number": "TN-LEDGER-1",
        "control_number": "EP0000001",
        "first_name": "Ada",
        "last_name": "Lovelace",
        "user_code": "ADA01",
        "weight": 2.5,
        "shipper": "Amazon",
        "description": "Books",
        "branch": "Kingston",
    }
    attributes.update(overrides)
    return Package.receive(attributes)


class TestBootstrap:
    def test_first_entry_written_on_receive(self):
        package = _receive()
        assert package.status == 0
        assert len(package.history) == 1
        entry = package.history[0]
        assert entry.sequence == 1
        assert entry.status == 0
        assert entry.location == "Kingston"
        assert entry.notes == "Package received at warehouse"

    def test_seeded_status(self):
        package = _receive(status=2)
        assert package.status == 2
        assert [e.status for e in package.history] == [2]

    def test_received_event(self):
        package = _receive()
        assert len(package._events) == 1
        event = package._events[0]
        assert isinstance(event, PackageReceived)
        assert event.origin == Origin.WAREHOUSE
        assert event.tracking_number == "TN-LEDGER-1"

    def test_ledger_consistent(self):
        assert PACKAGE_LEDGER.is_consistent(_receive())


class TestAppend:
    def test_transition_appends_entry(self):
        package = _receive()
        assert package.update_status(2, location="JFK", notes="Loaded", updated_by="ops") is True

        assert package.status == 2
        assert len(package.history) == 2
        latest = package.history[-1]
        assert latest.sequence == 2
        assert latest.location == "JFK"
        assert latest.updated_by == "ops"
        assert PACKAGE_LEDGER.is_consistent(package)

    def test_repeating_current_status_is_a_no_op(self):
        package = _receive()
        package.update_status(2)
        package._events.clear()

        assert package.update_status(2) is False
        assert len(package.history) == 2
        assert package._events == []

    def test_status_changed_event(self):
        package = _receive()
        package._events.clear()
        package.update_status(1, origin=Origin.PARTNER)

        event = package._events[0]
        assert isinstance(event, PackageStatusChanged)
        assert event.previous_status == 0
        assert event.status == 1
        assert event.status_name == "DELIVERED TO AIRPORT"
        assert event.origin == Origin.PARTNER

    def test_backward_move_allowed(self):
        package = _receive(status=3)
        package.update_status(1)
        assert [e.status for e in package.history] == [3, 1]

    def test_invalid_status_rejected_without_change(self):
        package = _receive()
        with pytest.raises(ValidationError) as exc:
            package.update_status(7)
        assert "status" in exc.value.messages
        assert package.status == 0
        assert len(package.history) == 1

    def test_numeric_string_status_accepted(self):
        package = _receive()
        package.update_status("3")
        assert package.status == 3


class TestDwellTimes:
    def test_last_status_measured_to_now(self):
        package = _receive()
        now = package.history[0].timestamp + timedelta(seconds=90)
        assert package.dwell_times(now) == [(0, 90.0)]

    def test_one_figure_per_visited_status(self):
        package = _receive()
        package.update_status(1)
        package.update_status(2)
        dwell = package.dwell_times()
        assert [status for status, _ in dwell] == [0, 1, 2]
        assert all(seconds >= 0 for _, seconds in dwell)
