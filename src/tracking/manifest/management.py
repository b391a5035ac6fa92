"""Manifest creation and status updates — commands and handler."""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, Integer, String
from protean.utils.globals import current_domain

from tracking.domain import tracking
from tracking.manifest.manifest import Manifest, find_manifest
from tracking.shared.ledger import DEFAULT_ACTOR
from tracking.shared.origin import Origin


@tracking.command(part_of="Manifest")
class CreateManifest:
    code = String(required=True, max_length=100)
    manifest_id = String(max_length=100)  # Generated when absent
    courier_id = String(max_length=100)
    service_type_id = String(max_length=100)
    status = Integer(default=0)
    flight_date = DateTime()
    weight = Float(default=0.0)
    item_count = Integer(default=0)
    manifest_number = Integer()
    staff_name = String(max_length=100)
    awb_number = String(max_length=100)


@tracking.command(part_of="Manifest")
class UpdateManifestStatus:
    manifest_id = String(required=True, max_length=100)
    status = Integer(required=True)
    location = String(max_length=200)
    notes = String(max_length=500)
    updated_by = String(max_length=100)


def get_manifest(manifest_id: str) -> Manifest:
    manifest = find_manifest(manifest_id)
    if manifest is None:
        raise ObjectNotFoundError(f"Manifest with manifest_id '{manifest_id}' does not exist")
    return manifest


@tracking.command_handler(part_of=Manifest)
class ManifestManagementHandler:
    @handle(CreateManifest)
    def create_manifest(self, command):
        attributes = {
            "manifest_id": command.manifest_id,
            "code": command.code,
            "courier_id": command.courier_id,
            "service_type_id": command.service_type_id,
            "status": command.status,
            "flight_date": command.flight_date,
            "weight": command.weight,
            "item_count": command.item_count,
            "manifest_number": command.manifest_number,
            "staff_name": command.staff_name,
            "awb_number": command.awb_number,
        }
        manifest = Manifest.create(
            {name: value for name, value in attributes.items() if value is not None},
            origin=Origin.WAREHOUSE,
            actor=command.staff_name,
        )
        current_domain.repository_for(Manifest).add(manifest)
        return manifest.manifest_id

    @handle(UpdateManifestStatus)
    def update_manifest_status(self, command):
        manifest = get_manifest(command.manifest_id)
        manifest.update_status(
            command.status,
            location=command.location or "",
            notes=command.notes or "",
            updated_by=command.updated_by or DEFAULT_ACTOR,
            origin=Origin.WAREHOUSE,
        )
        current_domain.repository_for(Manifest).add(manifest)
        return manifest.manifest_id
