"""Partner record formats.

The partner freight system exchanges flat records keyed by PascalCase field
names (``TrackingNumber``, ``PackageStatus``, ...). This module owns the
mapping between those names and local aggregate fields in both directions.

Inbound parsing is partial: only fields present in the record (and not null)
appear in the result, so a merge never blanks an existing value.
"""

import json
from datetime import UTC, datetime

from protean.exceptions import ValidationError

from tracking.shared.statuses import parse_status


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------
def _text(value) -> str:
    return str(value).strip()


def _user_code(value) -> str:
    return str(value).strip().upper()


def _integer(value) -> int:
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    return int(value)


def _number(value) -> float:
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    return float(value)


def _flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "y")
    return bool(value)


def _timestamp(value) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def _status(value) -> int:
    return int(parse_status(value))


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


# ---------------------------------------------------------------------------
# Field tables: (partner name, local name, coercion)
# ---------------------------------------------------------------------------
PACKAGE_FIELDS = (
    ("PackageID", "id", _text),
    ("CourierID", "courier_id", _text),
    ("ManifestID", "manifest_id", _text),
    ("CollectionID", "collection_id", _text),
    ("TrackingNumber", "tracking_number", _text),
    ("ControlNumber", "control_number", _text),
    ("FirstName", "first_name", _text),
    ("LastName", "last_name", _text),
    ("UserCode", "user_code", _user_code),
    ("Weight", "weight", _number),
    ("Shipper", "shipper", _text),
    ("EntryStaff", "entry_staff", _text),
    ("EntryDate", "entry_date", _timestamp),
    ("EntryDateTime", "entry_date_time", _timestamp),
    ("Branch", "branch", _text),
    ("Claimed", "claimed", _flag),
    ("APIToken", "api_token", _text),
    ("ShowControls", "show_controls", _flag),
    ("Description", "description", _text),
    ("HSCode", "hs_code", _text),
    ("Unknown", "unknown", _flag),
    ("AIProcessed", "ai_processed", _flag),
    ("OriginalHouseNumber", "original_house_number", _text),
    ("Pieces", "pieces", _integer),
    ("Discrepancy", "discrepancy", _flag),
    ("DiscrepancyDescription", "discrepancy_description", _text),
    ("ServiceTypeID", "service_type_id", _text),
    ("HazmatCodeID", "hazmat_code_id", _text),
    ("Coloaded", "coloaded", _flag),
    ("ColoadIndicator", "coload_indicator", _text),
    ("PackageStatus", "status", _status),
    ("PackagePayments", "package_payments", _text),
)

DIMENSION_FIELDS = (
    ("Cubes", "cubes"),
    ("Length", "length"),
    ("Width", "width"),
    ("Height", "height"),
)

PACKAGE_REQUIRED = (
    "TrackingNumber",
    "ControlNumber",
    "FirstName",
    "LastName",
    "UserCode",
    "Weight",
    "Shipper",
    "Description",
    "Branch",
)

MANIFEST_FIELDS = (
    ("ManifestID", "manifest_id", _text),
    ("CourierID", "courier_id", _text),
    ("ServiceTypeID", "service_type_id", _text),
    ("ManifestStatus", "status", _status),
    ("ManifestCode", "code", _text),
    ("FlightDate", "flight_date", _timestamp),
    ("Weight", "weight", _number),
    ("ItemCount", "item_count", _integer),
    ("ManifestNumber", "manifest_number", _integer),
    ("StaffName", "staff_name", _text),
    ("EntryDate", "entry_date", _timestamp),
    ("EntryDateTime", "entry_date_time", _timestamp),
    ("AWBNumber", "awb_number", _text),
)

MANIFEST_REQUIRED = (
    "ManifestID",
    "CourierID",
    "ServiceTypeID",
    "ManifestCode",
    "FlightDate",
    "Weight",
    "ItemCount",
    "ManifestNumber",
    "StaffName",
    "EntryDate",
    "EntryDateTime",
    "AWBNumber",
)


def _present(record: dict, name: str) -> bool:
    return name in record and record[name] is not None


def missing_fields(record: dict, required: tuple[str, ...]) -> list[str]:
    """Required partner fields that are absent or empty."""
    return [name for name in required if not _present(record, name) or record[name] == ""]


def _parse(record: dict, fields) -> dict:
    attributes, errors = {}, {}
    for partner_name, local_name, coerce in fields:
        if not _present(record, partner_name):
            continue
        try:
            attributes[local_name] = coerce(record[partner_name])
        except (TypeError, ValueError) as exc:
            errors[partner_name] = [f"Invalid value {record[partner_name]!r}: {exc}"]
    if errors:
        raise ValidationError(errors)
    return attributes


# ---------------------------------------------------------------------------
# Packages
# ---------------------------------------------------------------------------
def package_attributes(record: dict) -> dict:
    """Local attributes for the fields present in a partner package record.

    Dimension fields are grouped under ``dimensions`` as a partial dict.
    """
    if not isinstance(record, dict):
        raise ValidationError({"record": ["Package record must be an object"]})

    attributes = _parse(record, PACKAGE_FIELDS)

    dimensions, errors = {}, {}
    for partner_name, local_name in DIMENSION_FIELDS:
        if _present(record, partner_name):
            try:
                dimensions[local_name] = _number(record[partner_name])
            except (TypeError, ValueError) as exc:
                errors[partner_name] = [f"Invalid value {record[partner_name]!r}: {exc}"]
    if errors:
        raise ValidationError(errors)
    if dimensions:
        attributes["dimensions"] = dimensions
    return attributes


def package_to_partner(package) -> dict:
    dimensions = package.dimensions
    return {
        "PackageID": str(package.id),
        "CourierID": package.courier_id or "",
        "ManifestID": package.manifest_id or "",
        "CollectionID": package.collection_id or "",
        "TrackingNumber": package.tracking_number,
        "ControlNumber": package.control_number,
        "FirstName": package.first_name,
        "LastName": package.last_name,
        "UserCode": package.user_code,
        "Weight": package.weight,
        "Shipper": package.shipper or "",
        "EntryStaff": package.entry_staff or "",
        "EntryDate": _iso(package.entry_date),
        "EntryDateTime": _iso(package.entry_date_time),
        "Branch": package.branch or "",
        "Claimed": bool(package.claimed),
        "APIToken": package.api_token or "",
        "ShowControls": bool(package.show_controls),
        "Description": package.description or "",
        "HSCode": package.hs_code or "",
        "Unknown": bool(package.unknown),
        "AIProcessed": bool(package.ai_processed),
        "OriginalHouseNumber": package.original_house_number or "",
        "Cubes": dimensions.cubes if dimensions else 0,
        "Length": dimensions.length if dimensions else 0,
        "Width": dimensions.width if dimensions else 0,
        "Height": dimensions.height if dimensions else 0,
        "Pieces": package.pieces,
        "Discrepancy": bool(package.discrepancy),
        "DiscrepancyDescription": package.discrepancy_description or "",
        "ServiceTypeID": package.service_type_id or "",
        "HazmatCodeID": package.hazmat_code_id or "",
        "Coloaded": bool(package.coloaded),
        "ColoadIndicator": package.coload_indicator or "",
        "PackageStatus": package.status,
        "PackagePayments": package.package_payments or "",
    }


# ---------------------------------------------------------------------------
# Manifests
# ---------------------------------------------------------------------------
def manifest_attributes(record: dict) -> dict:
    if not isinstance(record, dict):
        raise ValidationError({"Manifest": ["Manifest record must be an object"]})
    return _parse(record, MANIFEST_FIELDS)


def manifest_to_partner(manifest) -> dict:
    return {
        "ManifestID": manifest.manifest_id,
        "CourierID": manifest.courier_id or "",
        "ServiceTypeID": manifest.service_type_id or "",
        "ManifestStatus": str(manifest.status),
        "ManifestCode": manifest.code,
        "FlightDate": _iso(manifest.flight_date),
        "Weight": manifest.weight,
        "ItemCount": manifest.item_count,
        "ManifestNumber": manifest.manifest_number,
        "StaffName": manifest.staff_name or "",
        "EntryDate": _iso(manifest.entry_date),
        "EntryDateTime": _iso(manifest.entry_date_time),
        "AWBNumber": manifest.awb_number or "",
    }


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------
def customer_to_partner(customer) -> dict:
    return {
        "UserCode": customer.user_code,
        "FirstName": customer.first_name,
        "LastName": customer.last_name,
        "Branch": customer.branch or "",
        "CustomerServiceTypeID": customer.customer_service_type_id or "",
        "CustomerLevelInstructions": customer.customer_level_instructions or "",
        "CourierServiceTypeID": customer.courier_service_type_id or "",
        "CourierLevelInstructions": customer.courier_level_instructions or "",
    }


def snapshot(record: dict) -> str:
    """Serialize a partner record for an event payload."""
    return json.dumps(record, sort_keys=True, default=str)
