"""Realtime relay — publishes package and manifest changes to live listeners.

Channels:
    packages                    package_created, package_updated, package_deleted
    package_<tracking_number>   status_changed
    manifests                   manifest_created, manifest_updated
"""

import json

import structlog
from protean.utils.mixins import handle

from tracking.domain import tracking
from tracking.manifest.events import ManifestCreated, ManifestStatusChanged, ManifestUpdated
from tracking.manifest.manifest import Manifest
from tracking.package.events import (
    PackageDeleted,
    PackageReceived,
    PackageStatusChanged,
    PackageUpdated,
)
from tracking.package.package import Package
from tracking.realtime import get_publisher
from tracking.shared.statuses import status_notice

logger = structlog.get_logger(__name__)


def package_channel(tracking_number: str) -> str:
    return f"package_{tracking_number}"


def _publish(channel: str, event_name: str, payload: dict) -> None:
    try:
        get_publisher().publish(channel, event_name, payload)
    except Exception as exc:
        logger.exception("Realtime relay failed", channel=channel, event_name=event_name, error=str(exc))


@tracking.event_handler(part_of=Package)
class PackageRelayHandler:
    @handle(PackageReceived)
    def on_package_received(self, event: PackageReceived) -> None:
        _publish("packages", "package_created", {"package": json.loads(event.record)})

    @handle(PackageUpdated)
    def on_package_updated(self, event: PackageUpdated) -> None:
        _publish(
            "packages",
            "package_updated",
            {"package": json.loads(event.record), "changes": json.loads(event.changed_fields)},
        )

    @handle(PackageStatusChanged)
    def on_package_status_changed(self, event: PackageStatusChanged) -> None:
        _publish(
            package_channel(event.tracking_number),
            "status_changed",
            {
                "tracking_number": event.tracking_number,
                "previous_status": event.previous_status,
                "status": event.status,
                "status_name": event.status_name,
                "location": event.location,
                "notes": event.notes,
                "changed_at": event.changed_at.isoformat(),
                "notification": status_notice(event.status, event.tracking_number),
            },
        )

    @handle(PackageDeleted)
    def on_package_deleted(self, event: PackageDeleted) -> None:
        _publish("packages", "package_deleted", {"package": json.loads(event.record)})


@tracking.event_handler(part_of=Manifest)
class ManifestRelayHandler:
    @handle(ManifestCreated)
    def on_manifest_created(self, event: ManifestCreated) -> None:
        _publish("manifests", "manifest_created", {"manifest": json.loads(event.record)})

    @handle(ManifestUpdated)
    def on_manifest_updated(self, event: ManifestUpdated) -> None:
        _publish(
            "manifests",
            "manifest_updated",
            {"manifest": json.loads(event.record), "changes": json.loads(event.changed_fields)},
        )

    @handle(ManifestStatusChanged)
    def on_manifest_status_changed(self, event: ManifestStatusChanged) -> None:
        _publish(
            "manifests",
            "manifest_updated",
            {"manifest": json.loads(event.record), "changes": ["status"], "status_name": event.status_name},
        )
