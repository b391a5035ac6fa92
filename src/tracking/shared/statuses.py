"""Shipment status and service-type lookup tables.

Packages and manifests share one closed ordinal status set. Every consumer
(ledger validation, partner records, realtime payloads, notifications, API
responses) resolves display names through this module.
"""

from enum import IntEnum

UNKNOWN = "UNKNOWN"


class ShipmentStatus(IntEnum):
    AT_WAREHOUSE = 0
    DELIVERED_TO_AIRPORT = 1
    IN_TRANSIT_TO_LOCAL_PORT = 2
    AT_LOCAL_PORT = 3
    AT_LOCAL_SORTING = 4


# Settled: the package has reached the local sorting facility.
DELIVERED_STATUS = ShipmentStatus.AT_LOCAL_SORTING

STATUS_NAMES = {
    ShipmentStatus.AT_WAREHOUSE: "AT WAREHOUSE",
    ShipmentStatus.DELIVERED_TO_AIRPORT: "DELIVERED TO AIRPORT",
    ShipmentStatus.IN_TRANSIT_TO_LOCAL_PORT: "IN TRANSIT TO LOCAL PORT",
    ShipmentStatus.AT_LOCAL_PORT: "AT LOCAL PORT",
    ShipmentStatus.AT_LOCAL_SORTING: "AT LOCAL SORTING",
}


class ServiceType:
    AIR_STANDARD = "59cadcd4-7508-450b-85aa-9ec908d168fe"
    AIR_EXPRESS = "25a1d8e5-a478-4cc3-b1fd-a37d0d787302"
    AIR_PREMIUM = "8df142ca-0573-4ce9-b11d-7a3e5f8ba196"
    SEA_STANDARD = "7c9638e8-4bb3-499e-8af9-d09f757a099e"


SERVICE_TYPE_NAMES = {
    ServiceType.AIR_STANDARD: "AIR STANDARD",
    ServiceType.AIR_EXPRESS: "AIR EXPRESS",
    ServiceType.AIR_PREMIUM: "AIR PREMIUM",
    ServiceType.SEA_STANDARD: "SEA STANDARD",
    "": "UNSPECIFIED",
}

# (notification type, message template) per status reached
_STATUS_NOTICES = {
    ShipmentStatus.AT_WAREHOUSE: ("package_received", "Your package {tracking} has been received and is being processed."),
    ShipmentStatus.DELIVERED_TO_AIRPORT: ("status_update", "Your package {tracking} has been delivered to the airport."),
    ShipmentStatus.IN_TRANSIT_TO_LOCAL_PORT: ("status_update", "Your package {tracking} is in transit to the local port."),
    ShipmentStatus.AT_LOCAL_PORT: ("status_update", "Your package {tracking} has arrived at the local port."),
    ShipmentStatus.AT_LOCAL_SORTING: (
        "delivery_ready",
        "Your package {tracking} is at the local sorting facility and ready for delivery.",
    ),
}


def parse_status(value) -> ShipmentStatus:
    """Coerce an int or numeric string into a ShipmentStatus.

    Raises ValueError for anything outside the closed set (including bools).
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid shipment status: {value!r}")
    try:
        return ShipmentStatus(int(str(value).strip()))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid shipment status: {value!r}") from exc


def status_name(value) -> str:
    try:
        return STATUS_NAMES[parse_status(value)]
    except ValueError:
        return UNKNOWN


def service_type_name(service_type_id: str | None) -> str:
    return SERVICE_TYPE_NAMES.get(service_type_id or "", UNKNOWN)


def is_delivered(value) -> bool:
    return int(value) == DELIVERED_STATUS


def status_notice(value, tracking_number: str) -> dict:
    """Customer-facing notification for a package that just reached ``value``."""
    try:
        kind, template = _STATUS_NOTICES[parse_status(value)]
    except ValueError:
        kind, template = "status_update", "Your package {tracking} status has been updated."
    return {"type": kind, "message": template.format(tracking=tracking_number)}
