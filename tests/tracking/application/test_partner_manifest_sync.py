"""Application tests for partner manifest upserts and package association."""

import json

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from tracking.delivery.queue import DeliveryQueue
from tracking.manifest.manifest import Manifest, find_manifest
from tracking.package.package import Package
from tracking.partner.reconciliation import ManifestReconciliation
from tracking.partner.sync import SyncPartnerManifest, sync_manifest, sync_packages


def _manifest(**overrides):
    record = {
        "ManifestID": "MAN-100",
        "CourierID": "COURIER-1",
        "ServiceTypeID": "59cadcd4-7508-450b-85aa-9ec908d168fe",
        "ManifestStatus": "1",
        "ManifestCode": "AIR-100",
        "FlightDate": "2024-05-01T08:00:00Z",
        "Weight": 120.5,
        "ItemCount": 2,
        "ManifestNumber": 100,
        "StaffName": "Jane",
        "EntryDate": "2024-04-30T08:00:00Z",
        "EntryDateTime": "2024-04-30T08:00:00Z",
        "AWBNumber": "AWB-100",
    }
    record.update(overrides)
    return record


def _payload(manifest=None, collection_codes=(), package_awbs=(), token="partner-token"):
    return {
        "APIToken": token,
        "Manifest": manifest if manifest is not None else _manifest(),
        "CollectionCodes": list(collection_codes),
        "PackageAWBs": list(package_awbs),
    }


def _seed_packages():
    sync_packages(
        [
            {
                "TrackingNumber": f"TN-M{n}",
                "ControlNumber": f"EP800000{n}",
                "FirstName": "Alan",
                "LastName": "Turing",
                "UserCode": "AT01",
                "Weight": 1,
                "Shipper": "DHL",
                "Description": "Parts",
                "Branch": "Kingston",
                "CollectionID": "COL-A" if n < 3 else "COL-B",
            }
            for n in range(1, 5)
        ]
    )


class TestManifestUpsert:
    def test_creates_manifest(self):
        result = sync_manifest(_payload())

        assert result["success"] is True
        assert result["message"] == "Manifest AIR-100 processed successfully"
        assert result["created"] is True
        manifest = find_manifest("MAN-100")
        assert manifest.code == "AIR-100"
        assert manifest.status == 1
        assert manifest.api_token == "partner-token"

    def test_second_upsert_merges(self):
        sync_manifest(_payload())
        result = sync_manifest(_payload(_manifest(ManifestStatus="2", Weight=130)))

        assert result["created"] is False
        manifest = find_manifest("MAN-100")
        assert manifest.weight == 130
        assert [e.status for e in manifest.history] == [1, 2]

    def test_sync_command_processed(self):
        result = current_domain.process(SyncPartnerManifest(body=json.dumps(_payload())), asynchronous=False)

        assert result["created"] is True
        assert result["manifest"]["ManifestCode"] == "AIR-100"
        assert find_manifest("MAN-100") is not None

    def test_concurrent_create_merges_into_existing(self, monkeypatch):
        sync_manifest(_payload())
        reconciliation = ManifestReconciliation()
        resolve = reconciliation.resolve
        calls = []

        def resolve_missing_first(record):
            calls.append(record)
            return None if len(calls) == 1 else resolve(record)

        monkeypatch.setattr(reconciliation, "resolve", resolve_missing_first)
        result = reconciliation.upsert(_payload(_manifest(Weight=130)))

        assert result["created"] is False
        assert len(calls) == 2
        assert find_manifest("MAN-100").weight == 130
        assert current_domain.repository_for(Manifest)._dao.query.all().total == 1

    def test_token_required(self):
        with pytest.raises(ValidationError) as exc:
            sync_manifest(_payload(token=""))
        assert "APIToken" in exc.value.messages

    def test_manifest_required(self):
        with pytest.raises(ValidationError) as exc:
            sync_manifest({"APIToken": "partner-token"})
        assert "Manifest" in exc.value.messages

    def test_manifest_fields_required(self):
        with pytest.raises(ValidationError) as exc:
            sync_manifest(_payload({"ManifestID": "MAN-X", "ManifestCode": "X"}))
        assert "AWBNumber" in exc.value.messages


class TestPackageAssociation:
    def test_packages_matched_by_collection_code_and_awb(self):
        _seed_packages()
        result = sync_manifest(_payload(collection_codes=["COL-A"], package_awbs=["EP8000004", "EP-UNKNOWN"]))

        assert result["packages_updated"] == 3
        assert {p["TrackingNumber"] for p in result["associated_packages"]} == {"TN-M1", "TN-M2", "TN-M4"}

        packages = current_domain.repository_for(Package)._dao.query.filter(manifest_id="MAN-100").all().items
        assert len(packages) == 3
        for package in packages:
            assert package.status == 1
            assert package.history[-1].notes == "Added to manifest AIR-100"

        untouched = current_domain.repository_for(Package)._dao.query.filter(tracking_number="TN-M3").all().first
        assert untouched.manifest_id is None

    def test_association_recorded_on_manifest(self):
        _seed_packages()
        sync_manifest(_payload(collection_codes=["COL-B", "COL-A"]))

        manifest = find_manifest("MAN-100")
        assert manifest.package_count == 4
        assert manifest.associated_codes() == (["COL-A", "COL-B"], [])

    def test_partner_manifest_not_pushed_back(self):
        sync_manifest(_payload(collection_codes=["COL-A"]))

        created = DeliveryQueue().items(event_type="manifest.created")
        assert len(created) == 1
        assert [e.kind for e in created[0].endpoints] == ["webhook"]

        updated = DeliveryQueue().items(event_type="manifest.updated")
        assert updated
        assert updated[0].payload["data"]["collection_codes"] == ["COL-A"]
