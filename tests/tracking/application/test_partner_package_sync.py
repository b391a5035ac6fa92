"""Application tests for partner package reconciliation and the batch services."""

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError
from tracking.customer.registration import RegisterCustomer
from tracking.delivery.queue import DeliveryQueue
from tracking.package.package import Package
from tracking.partner.reconciliation import PACKAGE_KEYS, PackageReconciliation
from tracking.partner.sync import delete_packages, sync_packages
from tracking.shared.origin import Origin


def _record(**overrides):
    record = {
        "TrackingNumber": "1Z-PARTNER-1",
        "ControlNumber": "EP7000001",
        "FirstName": "Alan",
        "LastName": "Turing",
        "UserCode": "at01",
        "Weight": 3.5,
        "Shipper": "DHL",
        "Description": "Laptop",
        "Branch": "Kingston",
        "PackageStatus": 1,
        "CollectionID": "COL-1",
    }
    record.update(overrides)
    return record


def _package(tracking_number="1Z-PARTNER-1"):
    return current_domain.repository_for(Package)._dao.query.filter(tracking_number=tracking_number).all().first


class TestKeyPriority:
    def test_priority_order(self):
        assert [k.partner_field for k in PACKAGE_KEYS] == [
            "PackageID",
            "TrackingNumber",
            "ControlNumber",
            "OriginalHouseNumber",
        ]

    def test_package_id_wins_over_tracking_number(self):
        sync_packages([_record(), _record(TrackingNumber="1Z-PARTNER-2", ControlNumber="EP7000002")])
        first = _package("1Z-PARTNER-1")

        resolved = PackageReconciliation().resolve({"PackageID": str(first.id), "TrackingNumber": "1Z-PARTNER-2"})
        assert resolved.id == first.id

    def test_falls_through_to_next_key(self):
        sync_packages(_record(OriginalHouseNumber="HOUSE-9"))
        resolved = PackageReconciliation().resolve({"PackageID": "nope", "OriginalHouseNumber": "HOUSE-9"})
        assert resolved.tracking_number == "1Z-PARTNER-1"

    def test_blank_keys_ignored(self):
        sync_packages(_record())
        assert PackageReconciliation().resolve({"TrackingNumber": "  ", "ControlNumber": None}) is None


class TestUpsert:
    def test_creates_package_from_record(self):
        result = sync_packages(_record())

        assert result["success"] is True
        assert result["message"] == "Processed 1 packages"
        assert result["errors"] is None
        package = _package()
        assert package.user_code == "AT01"
        assert package.status == 1
        assert package.unknown is True
        assert [e.status for e in package.history] == [1]

    def test_partial_record_leaves_other_fields_unchanged(self):
        sync_packages(_record())
        before = _package().to_partner()

        sync_packages({"TrackingNumber": "1Z-PARTNER-1", "Weight": 5})

        after = _package().to_partner()
        assert after["Weight"] == 5.0
        assert {k: v for k, v in after.items() if k != "Weight"} == {k: v for k, v in before.items() if k != "Weight"}

    def test_unresolved_customer_updates_in_place_and_flags_unknown(self):
        current_domain.process(
            RegisterCustomer(user_code="AT01", first_name="Alan", last_name="Turing"),
            asynchronous=False,
        )
        sync_packages(_record())
        assert _package().unknown is False

        result = sync_packages({"TrackingNumber": "1Z-PARTNER-1", "UserCode": "NOBODY"})

        assert result["errors"] is None
        package = _package()
        assert package.user_code == "NOBODY"
        assert package.unknown is True
        assert package.customer_id is None
        assert current_domain.repository_for(Package)._dao.query.all().total == 1

    def test_concurrent_create_merges_into_existing(self, monkeypatch):
        sync_packages(_record())
        reconciliation = PackageReconciliation()
        resolve = reconciliation.resolve
        calls = []

        def resolve_missing_first(record):
            calls.append(record)
            return None if len(calls) == 1 else resolve(record)

        monkeypatch.setattr(reconciliation, "resolve", resolve_missing_first)
        package, created = reconciliation.upsert(_record(Weight=7.0))

        assert created is False
        assert len(calls) == 2
        assert package.weight == 7.0
        assert _package().weight == 7.0
        assert current_domain.repository_for(Package)._dao.query.all().total == 1

    def test_status_change_goes_through_ledger(self):
        sync_packages(_record())
        sync_packages({"ControlNumber": "EP7000001", "PackageStatus": "3"})

        package = _package()
        assert package.status == 3
        assert package.history[-1].notes == "Status updated by partner sync"

    def test_missing_required_fields_reported(self):
        result = sync_packages({"TrackingNumber": "1Z-NEW", "Weight": 1})

        assert result["packages"] == []
        assert len(result["errors"]) == 1
        assert result["errors"][0].startswith("Failed to process package 1Z-NEW:")
        assert "FirstName" in result["errors"][0]

    def test_batch_continues_past_failures(self):
        result = sync_packages([_record(Weight="heavy"), _record(TrackingNumber="1Z-OK", ControlNumber="EP7000003"), "junk"])

        assert result["message"] == "Processed 1 packages"
        assert len(result["errors"]) == 2
        assert result["packages"][0]["TrackingNumber"] == "1Z-OK"

    def test_update_only_does_not_create(self):
        result = sync_packages(_record(), update_only=True)

        assert result["packages"] == []
        assert "Package not found" in result["errors"][0]
        assert _package() is None

    def test_update_only_without_match_raises(self):
        with pytest.raises(ObjectNotFoundError):
            PackageReconciliation().upsert({"TrackingNumber": "absent"}, create=False)

    def test_partner_changes_not_pushed_back_to_partner(self):
        sync_packages(_record())

        created = DeliveryQueue().items(event_type="package.created")
        assert len(created) == 1
        assert [e.kind for e in created[0].endpoints] == ["webhook"]
        assert created[0].payload["metadata"]["origin"] == Origin.PARTNER


class TestDelete:
    def test_delete_by_tracking_number(self):
        sync_packages(_record())
        result = delete_packages([{"TrackingNumber": "1Z-PARTNER-1"}])

        assert result["message"] == "Deleted 1 packages"
        assert result["packages"][0]["TrackingNumber"] == "1Z-PARTNER-1"
        assert _package() is None

    def test_unknown_package_reported(self):
        result = delete_packages({"TrackingNumber": "ghost"})
        assert result["message"] == "Deleted 0 packages"
        assert result["errors"][0].startswith("Failed to delete package ghost:")

    def test_delivered_and_claimed_package_not_deleted(self):
        sync_packages(_record(PackageStatus=4, Claimed=True))
        result = delete_packages({"TrackingNumber": "1Z-PARTNER-1"})

        assert len(result["errors"]) == 1
        assert _package() is not None
