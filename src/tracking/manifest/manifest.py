"""Manifest aggregate — a consolidated shipment of packages on one flight.

Manifests share the package status set and keep their own status ledger.
Packages join a manifest through partner sync (by collection code or AWB);
the manifest keeps the codes it was sent so that outbound pushes carry the
same association.
"""

import json
from datetime import UTC, datetime
from uuid import uuid4

from protean.fields import DateTime, Float, HasMany, Integer, String, Text
from protean.utils.globals import current_domain

from tracking.domain import tracking
from tracking.manifest.events import ManifestCreated, ManifestStatusChanged, ManifestUpdated
from tracking.partner.records import manifest_to_partner, snapshot
from tracking.shared.ledger import DEFAULT_ACTOR, StatusLedger
from tracking.shared.origin import Origin
from tracking.shared.statuses import ShipmentStatus, status_name

_IMMUTABLE = {"id", "manifest_id", "status", "status_history", "created_at"}


@tracking.entity(part_of="Manifest")
class ManifestStatusEntry:
    sequence = Integer(required=True, min_value=1)
    status = Integer(required=True)
    timestamp = DateTime(required=True)
    location = String(max_length=200)
    notes = String(max_length=500)
    updated_by = String(max_length=100, default=DEFAULT_ACTOR)


MANIFEST_LEDGER = StatusLedger(ManifestStatusEntry)


@tracking.aggregate
class Manifest:
    manifest_id = String(required=True, max_length=100, unique=True)
    code = String(required=True, max_length=100, unique=True)
    courier_id = String(max_length=100)
    service_type_id = String(max_length=100)

    status = Integer(default=ShipmentStatus.AT_WAREHOUSE.value)
    status_history = HasMany(ManifestStatusEntry)

    flight_date = DateTime()
    weight = Float(default=0.0, min_value=0.0)
    item_count = Integer(default=0, min_value=0)
    manifest_number = Integer()
    staff_name = String(max_length=100)
    entry_date = DateTime()
    entry_date_time = DateTime()
    awb_number = String(max_length=100)
    api_token = String(max_length=255)

    # Associations
    collection_codes = Text()  # JSON list
    package_awbs = Text()  # JSON list
    package_count = Integer(default=0, min_value=0)

    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, attributes: dict, origin: str = Origin.WAREHOUSE, actor: str | None = None):
        now = datetime.now(UTC)
        values = dict(attributes)
        status = values.pop("status", ShipmentStatus.AT_WAREHOUSE.value)
        values.setdefault("manifest_id", str(uuid4()))
        values.setdefault("entry_date", now)
        values.setdefault("entry_date_time", now)

        manifest = cls(**values, created_at=now, updated_at=now)
        MANIFEST_LEDGER.bootstrap(
            manifest,
            status,
            location="Manifest Processing",
            notes=f"Manifest {manifest.code} created",
            actor=actor or manifest.staff_name or DEFAULT_ACTOR,
        )
        manifest.raise_(
            ManifestCreated(
                manifest_id=manifest.manifest_id,
                code=manifest.code,
                status=manifest.status,
                origin=origin,
                record=snapshot(manifest.to_partner()),
                collection_codes=manifest.collection_codes,
                package_awbs=manifest.package_awbs,
                created_at=now,
            )
        )
        return manifest

    @property
    def status_name(self) -> str:
        return status_name(self.status)

    @property
    def history(self) -> list:
        return MANIFEST_LEDGER.history(self)

    def associated_codes(self) -> tuple[list, list]:
        """``(collection_codes, package_awbs)`` as lists."""
        return json.loads(self.collection_codes or "[]"), json.loads(self.package_awbs or "[]")

    def to_partner(self) -> dict:
        return manifest_to_partner(self)

    def update_status(self, new_status, location="", notes="", updated_by=DEFAULT_ACTOR, origin=Origin.WAREHOUSE) -> bool:
        previous = self.status
        MANIFEST_LEDGER.append(self, new_status, location=location, notes=notes, actor=updated_by)
        if self.status == previous:
            return False

        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            ManifestStatusChanged(
                manifest_id=self.manifest_id,
                code=self.code,
                previous_status=previous,
                status=self.status,
                status_name=self.status_name,
                location=location or "",
                notes=notes or "",
                updated_by=updated_by or DEFAULT_ACTOR,
                origin=origin,
                record=snapshot(self.to_partner()),
                collection_codes=self.collection_codes,
                package_awbs=self.package_awbs,
                changed_at=now,
            )
        )
        return True

    def apply_changes(self, attributes: dict, origin: str = Origin.WAREHOUSE, actor: str | None = None) -> list[str]:
        """Merge present attributes, then route a ``status`` key through the ledger."""
        values = dict(attributes)
        new_status = values.pop("status", None)

        changed = []
        for name, value in values.items():
            if name in _IMMUTABLE or getattr(self, name) == value:
                continue
            setattr(self, name, value)
            changed.append(name)

        if changed:
            now = datetime.now(UTC)
            self.updated_at = now
            self.raise_(
                ManifestUpdated(
                    manifest_id=self.manifest_id,
                    code=self.code,
                    changed_fields=json.dumps(changed),
                    origin=origin,
                    record=snapshot(self.to_partner()),
                    collection_codes=self.collection_codes,
                    package_awbs=self.package_awbs,
                    updated_at=now,
                )
            )

        if new_status is not None:
            self.update_status(
                new_status,
                location="Manifest Processing",
                notes="Manifest status updated",
                updated_by=actor or self.staff_name or DEFAULT_ACTOR,
                origin=origin,
            )
        return changed

    def record_association(self, collection_codes, package_awbs, package_count: int, origin=Origin.PARTNER) -> list[str]:
        return self.apply_changes(
            {
                "collection_codes": json.dumps(sorted(set(collection_codes or []))),
                "package_awbs": json.dumps(sorted(set(package_awbs or []))),
                "package_count": package_count,
            },
            origin=origin,
        )


def find_manifest(manifest_id: str):
    return current_domain.repository_for(Manifest)._dao.query.filter(manifest_id=manifest_id).all().first
