"""Tests for Package attribute merges, manifest assignment and removal rules."""

import json

import pytest
from protean.exceptions import InvalidOperationError
from tracking.package.events import PackageDeleted, PackageStatusChanged, PackageUpdated
from tracking.package.package import Package, customer_attributes
from tracking.shared.origin import Origin


def _receive(**overrides):
    attributes = {
        "tracking_number": "TN-AGG-1",
        "control_number": "EP0000002",
        "first_name": "Grace",
        "last_name": "Hopper",
        "user_code": "GH01",
        "weight": 4.0,
        "shipper": "eBay",
        "description": "Keyboard",
        "branch": "Montego Bay",
        "dimensions": {"length": 10.0, "height": 3.0},
    }
    attributes.update(overrides)
    package = Package.receive(attributes)
    package._events.clear()
    return package


class TestApplyChanges:
    def test_only_present_fields_change(self):
        package = _receive()
        changed = package.apply_changes({"weight": 5.0})

        assert changed == ["weight"]
        assert package.weight == 5.0
        assert package.first_name == "Grace"
        assert package.description == "Keyboard"
        assert package.dimensions.length == 10.0

    def test_unchanged_values_raise_nothing(self):
        package = _receive()
        assert package.apply_changes({"weight": 4.0, "shipper": "eBay"}) == []
        assert package._events == []

    def test_updated_event_lists_changed_fields(self):
        package = _receive()
        package.apply_changes({"description": "Mouse", "pieces": 2}, origin=Origin.PARTNER)

        event = package._events[0]
        assert isinstance(event, PackageUpdated)
        assert json.loads(event.changed_fields) == ["description", "pieces"]
        assert event.origin == Origin.PARTNER
        assert event.previous_user_code is None

    def test_user_code_change_keeps_previous_code(self):
        package = _receive()
        package.apply_changes({"user_code": "GH02"})
        assert package._events[0].previous_user_code == "GH01"

    def test_dimensions_merge_partially(self):
        package = _receive()
        assert package.apply_changes({"dimensions": {"width": 6.0}}) == ["dimensions"]
        assert package.dimensions.length == 10.0
        assert package.dimensions.width == 6.0
        assert package.dimensions.height == 3.0

    def test_protected_fields_ignored(self):
        package = _receive()
        created_at = package.created_at
        package.apply_changes({"created_at": None, "status_history": []})
        assert package.created_at == created_at
        assert len(package.history) == 1

    def test_status_routed_through_ledger(self):
        package = _receive()
        package.apply_changes({"status": 2}, origin=Origin.PARTNER)

        assert package.status == 2
        assert package.history[-1].notes == "Status updated by partner sync"
        assert isinstance(package._events[-1], PackageStatusChanged)


class TestManifestAssignment:
    def test_assign_sets_manifest_and_status(self):
        package = _receive()
        package.assign_to_manifest("MAN-1", "CODE-1", 1, actor="Jane")

        assert package.manifest_id == "MAN-1"
        assert package.status == 1
        latest = package.history[-1]
        assert latest.location == "Manifest Processing"
        assert latest.notes == "Added to manifest CODE-1"
        assert latest.updated_by == "Jane"


class TestRemoval:
    def test_remove_raises_deleted_event(self):
        package = _receive()
        package.remove(origin=Origin.PARTNER)
        event = package._events[0]
        assert isinstance(event, PackageDeleted)
        assert json.loads(event.record)["TrackingNumber"] == "TN-AGG-1"

    def test_delivered_and_claimed_package_cannot_be_removed(self):
        package = _receive(status=4, claimed=True)
        with pytest.raises(InvalidOperationError):
            package.remove()
        assert package._events == []

    def test_delivered_unclaimed_package_can_be_removed(self):
        package = _receive(status=4)
        package.remove()
        assert isinstance(package._events[0], PackageDeleted)


class TestCustomerAttributes:
    def test_unresolved_customer_flags_unknown(self):
        assert customer_attributes(None) == {"customer_id": None, "unknown": True}


class TestPartnerFormat:
    def test_to_partner_uses_partner_names(self):
        record = _receive().to_partner()
        assert record["TrackingNumber"] == "TN-AGG-1"
        assert record["UserCode"] == "GH01"
        assert record["PackageStatus"] == 0
        assert record["Length"] == 10.0
        assert record["Width"] == 0.0
