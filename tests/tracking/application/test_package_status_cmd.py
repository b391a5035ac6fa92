"""Application tests for single and bulk package status updates."""

import json

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError
from tracking.package.intake import ReceivePackage
from tracking.package.package import Package
from tracking.package.status import BulkUpdatePackageStatus, UpdatePackageStatus


def _receive(tracking_number):
    return current_domain.process(
        ReceivePackage(
            tracking_number=tracking_number,
            first_name="Ada",
            last_name="Lovelace",
            user_code="ADA01",
            weight=1.0,
            shipper="Amazon",
            description="Books",
            branch="Kingston",
        ),
        asynchronous=False,
    )


def _update(package_id, status, **kwargs):
    return current_domain.process(UpdatePackageStatus(package_id=package_id, status=status, **kwargs), asynchronous=False)


class TestUpdatePackageStatus:
    def test_history_grows_once_per_transition(self):
        package_id = _receive("TN-S1")
        _update(package_id, 2, location="JFK", updated_by="ops")
        _update(package_id, 2)

        package = current_domain.repository_for(Package).get(package_id)
        assert package.status == 2
        assert [e.status for e in package.history] == [0, 2]
        assert package.history[-1].location == "JFK"
        assert package.history[-1].updated_by == "ops"

    def test_invalid_status(self):
        package_id = _receive("TN-S2")
        with pytest.raises(ValidationError):
            _update(package_id, 12)
        assert current_domain.repository_for(Package).get(package_id).status == 0

    def test_unknown_package(self):
        with pytest.raises(ObjectNotFoundError):
            _update("missing-id", 1)


class TestBulkUpdatePackageStatus:
    def test_items_succeed_or_fail_independently(self):
        first = _receive("TN-B1")
        second = _receive("TN-B2")
        _update(second, 3)

        result = current_domain.process(
            BulkUpdatePackageStatus(package_ids=json.dumps([first, second, "missing-id"]), status=3),
            asynchronous=False,
        )

        assert result["updated"] == [first]
        assert result["unchanged"] == [second]
        assert result["errors"][0]["package_id"] == "missing-id"
        assert current_domain.repository_for(Package).get(first).status == 3

    def test_invalid_status_reported_per_item(self):
        package_id = _receive("TN-B3")
        result = current_domain.process(
            BulkUpdatePackageStatus(package_ids=json.dumps([package_id]), status=8),
            asynchronous=False,
        )
        assert result["updated"] == []
        assert "status" in result["errors"][0]["error"]
