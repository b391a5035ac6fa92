"""Partner sync — per-record commands and the batch services around them.

Each record is processed as its own command, so it commits (and dispatches
its events) independently of the rest of the batch. The batch services
collect per-record failures instead of aborting.
"""

import json

import structlog
from protean import handle
from protean.fields import Boolean, Text
from protean.utils.globals import current_domain

from tracking.domain import tracking
from tracking.manifest.manifest import Manifest
from tracking.package.package import Package
from tracking.partner.reconciliation import ManifestReconciliation, PackageReconciliation
from tracking.shared.errors import ITEM_ERRORS, error_message
from tracking.shared.origin import Origin

logger = structlog.get_logger(__name__)


@tracking.command(part_of="Package")
class SyncPartnerPackage:
    record = Text(required=True)  # JSON partner record
    update_only = Boolean(default=False)


@tracking.command(part_of="Package")
class RemovePartnerPackage:
    record = Text(required=True)  # JSON: {PackageID|TrackingNumber|ControlNumber}


@tracking.command(part_of="Manifest")
class SyncPartnerManifest:
    body = Text(required=True)  # JSON: {APIToken, Manifest, CollectionCodes, PackageAWBs}


@tracking.command_handler(part_of=Package)
class PartnerPackageHandler:
    @handle(SyncPartnerPackage)
    def sync_package(self, command):
        package, created = PackageReconciliation().upsert(
            json.loads(command.record),
            origin=Origin.PARTNER,
            create=not command.update_only,
        )
        logger.info(
            "Partner package synced",
            package_id=str(package.id),
            tracking_number=package.tracking_number,
            created=created,
            unknown=bool(package.unknown),
        )
        return package.to_partner()

    @handle(RemovePartnerPackage)
    def remove_package(self, command):
        record = PackageReconciliation().remove(json.loads(command.record), origin=Origin.PARTNER)
        logger.info("Partner package removed", package_id=record["PackageID"], tracking_number=record["TrackingNumber"])
        return record


@tracking.command_handler(part_of=Manifest)
class PartnerManifestHandler:
    @handle(SyncPartnerManifest)
    def sync_manifest(self, command):
        result = ManifestReconciliation().upsert(json.loads(command.body), origin=Origin.PARTNER)
        return {
            "manifest": result["manifest"].to_partner(),
            "created": result["created"],
            "packages_updated": result["packages_updated"],
            "associated_packages": result["associated_packages"],
        }


# ---------------------------------------------------------------------------
# Batch services
# ---------------------------------------------------------------------------
def _as_list(records) -> list:
    return records if isinstance(records, list) else [records]


def _label(record) -> str:
    if not isinstance(record, dict):
        return "unknown"
    return str(record.get("TrackingNumber") or record.get("PackageID") or record.get("ControlNumber") or "unknown")


def sync_packages(records, update_only: bool = False) -> dict:
    """Add or update partner packages; ``records`` is one record or a list."""
    packages, errors = [], []
    for record in _as_list(records):
        try:
            if not isinstance(record, dict):
                raise TypeError("record must be an object")
            packages.append(
                current_domain.process(
                    SyncPartnerPackage(record=json.dumps(record, default=str), update_only=update_only),
                    asynchronous=False,
                )
            )
        except (*ITEM_ERRORS, TypeError) as exc:
            errors.append(f"Failed to process package {_label(record)}: {error_message(exc)}")

    logger.info("Partner packages processed", processed=len(packages), failed=len(errors))
    return {
        "success": True,
        "message": f"Processed {len(packages)} packages",
        "packages": packages,
        "errors": errors or None,
    }


def delete_packages(records) -> dict:
    deleted, errors = [], []
    for record in _as_list(records):
        try:
            if not isinstance(record, dict):
                raise TypeError("record must be an object")
            deleted.append(
                current_domain.process(
                    RemovePartnerPackage(record=json.dumps(record, default=str)),
                    asynchronous=False,
                )
            )
        except (*ITEM_ERRORS, TypeError) as exc:
            errors.append(f"Failed to delete package {_label(record)}: {error_message(exc)}")

    logger.info("Partner packages deleted", deleted=len(deleted), failed=len(errors))
    return {
        "success": True,
        "message": f"Deleted {len(deleted)} packages",
        "packages": deleted,
        "errors": errors or None,
    }


def sync_manifest(payload: dict) -> dict:
    """Upsert a manifest; validation failures propagate to the caller."""
    result = current_domain.process(SyncPartnerManifest(body=json.dumps(payload, default=str)), asynchronous=False)
    return {
        "success": True,
        "message": f"Manifest {result['manifest']['ManifestCode']} processed successfully",
        **result,
    }
