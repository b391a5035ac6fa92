"""Package status updates — single and bulk commands and handler.

A bulk update appends every transition in one unit of work, so all the
resulting events are dispatched together after commit. Each item succeeds or
fails on its own.
"""

import json

from protean import handle
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from tracking.domain import tracking
from tracking.package.package import Package
from tracking.shared.errors import ITEM_ERRORS, error_message
from tracking.shared.ledger import DEFAULT_ACTOR
from tracking.shared.origin import Origin


@tracking.command(part_of="Package")
class UpdatePackageStatus:
    package_id = Identifier(required=True)
    status = Integer(required=True)
    location = String(max_length=200)
    notes = String(max_length=500)
    updated_by = String(max_length=100)


@tracking.command(part_of="Package")
class BulkUpdatePackageStatus:
    package_ids = Text(required=True)  # JSON list
    status = Integer(required=True)
    location = String(max_length=200)
    notes = String(max_length=500)
    updated_by = String(max_length=100)


@tracking.command_handler(part_of=Package)
class PackageStatusHandler:
    @handle(UpdatePackageStatus)
    def update_status(self, command):
        repo = current_domain.repository_for(Package)
        package = repo.get(command.package_id)
        package.update_status(
            command.status,
            location=command.location or "",
            notes=command.notes or "",
            updated_by=command.updated_by or DEFAULT_ACTOR,
            origin=Origin.WAREHOUSE,
        )
        repo.add(package)
        return str(package.id)

    @handle(BulkUpdatePackageStatus)
    def bulk_update_status(self, command):
        """Returns ``{"updated": [...], "unchanged": [...], "errors": [...]}``."""
        package_ids = json.loads(command.package_ids) if isinstance(command.package_ids, str) else command.package_ids
        repo = current_domain.repository_for(Package)
        result = {"updated": [], "unchanged": [], "errors": []}

        for package_id in package_ids:
            try:
                package = repo.get(package_id)
                changed = package.update_status(
                    command.status,
                    location=command.location or "",
                    notes=command.notes or "",
                    updated_by=command.updated_by or DEFAULT_ACTOR,
                    origin=Origin.WAREHOUSE,
                )
                repo.add(package)
            except ITEM_ERRORS as exc:
                result["errors"].append({"package_id": str(package_id), "error": error_message(exc)})
                continue
            result["updated" if changed else "unchanged"].append(str(package_id))

        return result
