"""Package aggregate — a single parcel and its status ledger.

A package enters the system through warehouse intake or a partner sync. From
then on every status change goes through ``PACKAGE_LEDGER`` so that the
``status`` field always mirrors the last ``status_history`` entry.

Status progression (closed ordinal set, forward moves are not enforced since
the partner system may correct a status in either direction):
    0 AT WAREHOUSE → 1 DELIVERED TO AIRPORT → 2 IN TRANSIT TO LOCAL PORT
      → 3 AT LOCAL PORT → 4 AT LOCAL SORTING
"""

import json
from datetime import UTC, datetime

from protean.exceptions import InvalidOperationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from tracking.domain import tracking
from tracking.package.events import (
    PackageDeleted,
    PackageReceived,
    PackageStatusChanged,
    PackageUpdated,
)
from tracking.partner.records import package_to_partner, snapshot
from tracking.shared.ledger import DEFAULT_ACTOR, StatusLedger
from tracking.shared.origin import Origin
from tracking.shared.statuses import ShipmentStatus, is_delivered, status_name


# Attributes never merged from an update payload
_IMMUTABLE = {"id", "status", "status_history", "created_at"}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@tracking.value_object(part_of="Package")
class Dimensions:
    length = Float(default=0.0, min_value=0.0)
    width = Float(default=0.0, min_value=0.0)
    height = Float(default=0.0, min_value=0.0)
    cubes = Float(default=0.0, min_value=0.0)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@tracking.entity(part_of="Package")
class PackageStatusEntry:
    """One immutable line of the package's status ledger."""

    sequence = Integer(required=True, min_value=1)
    status = Integer(required=True)
    timestamp = DateTime(required=True)
    location = String(max_length=200)
    notes = String(max_length=500)
    updated_by = String(max_length=100, default=DEFAULT_ACTOR)


PACKAGE_LEDGER = StatusLedger(PackageStatusEntry)


def customer_attributes(customer) -> dict:
    """Link attributes for a resolved customer, or the unknown flag when none."""
    if customer is None:
        return {"customer_id": None, "unknown": True}
    return {"customer_id": str(customer.id), "unknown": False}


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@tracking.aggregate
class Package:
    # Partner-side references
    courier_id = String(max_length=100)
    manifest_id = String(max_length=100)
    collection_id = String(max_length=100)

    # Natural keys
    tracking_number = String(required=True, max_length=100, unique=True)
    control_number = String(required=True, max_length=100, unique=True)
    original_house_number = String(max_length=100)  # Shipper's external id

    # Consignee
    first_name = String(required=True, max_length=100)
    last_name = String(required=True, max_length=100)
    user_code = String(required=True, max_length=50)
    customer_id = Identifier()

    # Contents
    weight = Float(required=True, min_value=0.0)
    dimensions = ValueObject(Dimensions)
    pieces = Integer(default=1, min_value=0)
    shipper = String(max_length=255)
    description = String(max_length=500)
    hs_code = String(max_length=50)
    branch = String(max_length=100)
    service_type_id = String(max_length=100)
    hazmat_code_id = String(max_length=100)

    # Status ledger
    status = Integer(default=ShipmentStatus.AT_WAREHOUSE.value)
    status_history = HasMany(PackageStatusEntry)

    # Flags
    claimed = Boolean(default=False)
    unknown = Boolean(default=False)
    ai_processed = Boolean(default=False)
    show_controls = Boolean(default=False)
    discrepancy = Boolean(default=False)
    discrepancy_description = String(max_length=500)
    coloaded = Boolean(default=False)
    coload_indicator = String(max_length=50)

    # Entry
    entry_staff = String(max_length=100)
    entry_date = DateTime()
    entry_date_time = DateTime()

    package_payments = Text()
    api_token = String(max_length=255)

    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def receive(cls, attributes: dict, origin: str = Origin.WAREHOUSE, actor: str | None = None):
        """Create a package from local attributes and write its bootstrap entry.

        ``attributes`` uses local field names; ``dimensions`` may be a dict.
        A ``status`` in the attributes seeds the ledger (defaults to 0).
        """
        now = datetime.now(UTC)
        values = dict(attributes)
        status = values.pop("status", ShipmentStatus.AT_WAREHOUSE.value)
        dimensions = values.pop("dimensions", None) or {}
        values.setdefault("entry_date", now)
        values.setdefault("entry_date_time", now)

        package = cls(
            **values,
            dimensions=Dimensions(**dimensions),
            created_at=now,
            updated_at=now,
        )
        PACKAGE_LEDGER.bootstrap(
            package,
            status,
            location=package.branch or "",
            notes="Package received at warehouse",
            actor=actor or package.entry_staff or DEFAULT_ACTOR,
        )

        package.raise_(
            PackageReceived(
                package_id=str(package.id),
                tracking_number=package.tracking_number,
                control_number=package.control_number,
                user_code=package.user_code,
                status=package.status,
                unknown=bool(package.unknown),
                origin=origin,
                record=snapshot(package.to_partner()),
                received_at=now,
            )
        )
        return package

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def status_name(self) -> str:
        return status_name(self.status)

    @property
    def history(self) -> list:
        return PACKAGE_LEDGER.history(self)

    def dwell_times(self, now=None):
        return PACKAGE_LEDGER.dwell_times(self, now)

    def to_partner(self) -> dict:
        return package_to_partner(self)

    # -------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------
    def update_status(
        self,
        new_status,
        location: str = "",
        notes: str = "",
        updated_by: str = DEFAULT_ACTOR,
        origin: str = Origin.WAREHOUSE,
    ) -> bool:
        """Move the package to ``new_status``; returns False when already there."""
        previous = self.status
        PACKAGE_LEDGER.append(self, new_status, location=location, notes=notes, actor=updated_by)
        if self.status == previous:
            return False

        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            PackageStatusChanged(
                package_id=str(self.id),
                tracking_number=self.tracking_number,
                user_code=self.user_code,
                previous_status=previous,
                status=self.status,
                status_name=self.status_name,
                location=location or "",
                notes=notes or "",
                updated_by=updated_by or DEFAULT_ACTOR,
                origin=origin,
                record=snapshot(self.to_partner()),
                changed_at=now,
            )
        )
        return True

    # -------------------------------------------------------------------
    # Attribute changes
    # -------------------------------------------------------------------
    def apply_changes(self, attributes: dict, origin: str = Origin.WAREHOUSE, actor: str | None = None) -> list[str]:
        """Merge the given attributes; absent keys keep their current value.

        A ``status`` key is routed through the ledger. Returns the names of
        the fields that actually changed (status excluded).
        """
        values = dict(attributes)
        new_status = values.pop("status", None)
        previous_user_code = self.user_code

        changed = []
        for name, value in values.items():
            if name in _IMMUTABLE:
                continue
            if name == "dimensions":
                if self._merge_dimensions(value):
                    changed.append(name)
                continue
            if getattr(self, name) != value:
                setattr(self, name, value)
                changed.append(name)

        now = datetime.now(UTC)
        if changed:
            self.updated_at = now
            self.raise_(
                PackageUpdated(
                    package_id=str(self.id),
                    tracking_number=self.tracking_number,
                    user_code=self.user_code,
                    previous_user_code=previous_user_code if previous_user_code != self.user_code else None,
                    changed_fields=json.dumps(changed),
                    origin=origin,
                    record=snapshot(self.to_partner()),
                    updated_at=now,
                )
            )

        if new_status is not None:
            self.update_status(
                new_status,
                location=self.branch or "",
                notes="Status updated" if origin == Origin.WAREHOUSE else "Status updated by partner sync",
                updated_by=actor or DEFAULT_ACTOR,
                origin=origin,
            )
        return changed

    def _merge_dimensions(self, partial: dict) -> bool:
        current = self.dimensions
        merged = {
            "length": current.length if current else 0.0,
            "width": current.width if current else 0.0,
            "height": current.height if current else 0.0,
            "cubes": current.cubes if current else 0.0,
        }
        before = dict(merged)
        merged.update(partial or {})
        if merged == before and current is not None:
            return False
        self.dimensions = Dimensions(**merged)
        return True

    def assign_to_manifest(self, manifest_id: str, code: str, status, actor: str | None = None, origin=Origin.PARTNER):
        """Attach the package to a manifest and align its status with it."""
        if self.manifest_id != manifest_id:
            self.apply_changes({"manifest_id": manifest_id}, origin=origin, actor=actor)
        self.update_status(
            status,
            location="Manifest Processing",
            notes=f"Added to manifest {code}",
            updated_by=actor or DEFAULT_ACTOR,
            origin=origin,
        )

    # -------------------------------------------------------------------
    # Removal
    # -------------------------------------------------------------------
    def assert_removable(self):
        if is_delivered(self.status) and self.claimed:
            raise InvalidOperationError(
                f"Package {self.tracking_number} has been delivered and claimed and cannot be deleted"
            )

    def remove(self, origin: str = Origin.WAREHOUSE):
        """Raise PackageDeleted; the caller deletes the record afterwards."""
        self.assert_removable()
        self.raise_(
            PackageDeleted(
                package_id=str(self.id),
                tracking_number=self.tracking_number,
                user_code=self.user_code,
                origin=origin,
                record=snapshot(self.to_partner()),
                deleted_at=datetime.now(UTC),
            )
        )
