"""Tests for partner record parsing."""

import pytest
from protean.exceptions import ValidationError
from tracking.partner.records import (
    PACKAGE_REQUIRED,
    manifest_attributes,
    missing_fields,
    package_attributes,
)


class TestPackageAttributes:
    def test_only_present_fields_parsed(self):
        assert package_attributes({"TrackingNumber": "TN-1", "Weight": 5}) == {
            "tracking_number": "TN-1",
            "weight": 5.0,
        }

    def test_nulls_skipped(self):
        assert package_attributes({"TrackingNumber": "TN-1", "Shipper": None}) == {"tracking_number": "TN-1"}

    def test_user_code_upper_cased(self):
        assert package_attributes({"UserCode": " ab12 "})["user_code"] == "AB12"

    def test_status_string(self):
        assert package_attributes({"PackageStatus": "2"})["status"] == 2

    def test_flags(self):
        attributes = package_attributes({"Claimed": "true", "Unknown": False})
        assert attributes["claimed"] is True
        assert attributes["unknown"] is False

    def test_dimensions_grouped(self):
        attributes = package_attributes({"Length": 10, "Width": "2.5"})
        assert attributes["dimensions"] == {"length": 10.0, "width": 2.5}

    def test_entry_date_parsed_as_utc(self):
        entry_date = package_attributes({"EntryDate": "2024-03-01T10:00:00Z"})["entry_date"]
        assert entry_date.year == 2024
        assert entry_date.utcoffset().total_seconds() == 0

    def test_invalid_values_reported_per_field(self):
        with pytest.raises(ValidationError) as exc:
            package_attributes({"Weight": "heavy", "PackageStatus": 9})
        assert set(exc.value.messages) == {"Weight", "PackageStatus"}

    def test_non_object_rejected(self):
        with pytest.raises(ValidationError):
            package_attributes(["TN-1"])


class TestRequiredFields:
    def test_missing_and_empty_fields(self):
        record = {name: "x" for name in PACKAGE_REQUIRED}
        record["Shipper"] = ""
        del record["Weight"]
        assert missing_fields(record, PACKAGE_REQUIRED) == ["Weight", "Shipper"]


class TestManifestAttributes:
    def test_manifest_fields(self):
        attributes = manifest_attributes({"ManifestCode": "M-1", "ManifestStatus": "1", "ItemCount": "3"})
        assert attributes == {"code": "M-1", "status": 1, "item_count": 3}
