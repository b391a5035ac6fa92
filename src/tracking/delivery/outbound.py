"""Outbound event handlers — turn domain events into queued deliveries.

Every event is enqueued for each configured webhook. Package and manifest
events are also pushed to the partner system, except when the partner is
where the change came from. Failures here are logged and never reach the
write that raised the event.
"""

import json

import structlog
from protean.utils.mixins import handle

from tracking.customer.customer import Customer
from tracking.customer.events import CustomerRegistered, CustomerUpdated
from tracking.delivery.delivery import DeliveryPriority, EndpointKind
from tracking.delivery.envelope import build_envelope
from tracking.delivery.queue import DeliveryQueue
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
from tracking.shared.origin import Origin
from tracking.shared.statuses import status_notice

logger = structlog.get_logger(__name__)


class EventType:
    PACKAGE_CREATED = "package.created"
    PACKAGE_UPDATED = "package.updated"
    PACKAGE_STATUS_CHANGED = "package.status_changed"
    PACKAGE_DELETED = "package.deleted"
    MANIFEST_CREATED = "manifest.created"
    MANIFEST_UPDATED = "manifest.updated"
    CUSTOMER_CREATED = "customer.created"
    CUSTOMER_UPDATED = "customer.updated"


def endpoints_for(settings, origin: str, partner_resource: str | None = None) -> list[tuple[str, str]]:
    targets = [(url, EndpointKind.WEBHOOK.value) for url in settings.webhook_endpoints]
    if partner_resource and origin != Origin.PARTNER:
        partner_url = settings.partner_endpoint(partner_resource)
        if partner_url:
            targets.append((partner_url, EndpointKind.PARTNER.value))
    return targets


def enqueue_event(
    event_type: str,
    data: dict,
    origin: str,
    partner_resource: str | None = None,
    priority: str = DeliveryPriority.NORMAL.value,
    **metadata,
):
    """Build, sign and queue one envelope; returns the delivery or None.

    Never raises: the caller is an event handler running after commit.
    """
    try:
        queue = DeliveryQueue()
        endpoints = endpoints_for(queue.settings, origin, partner_resource)
        if not endpoints:
            logger.debug("No delivery endpoints configured", event_type=event_type)
            return None

        envelope = build_envelope(
            event_type,
            data,
            queue.settings.secret,
            metadata={"environment": queue.settings.environment, "origin": origin, **metadata},
        )
        return queue.enqueue(envelope, endpoints, priority=priority)
    except Exception as exc:
        logger.exception("Failed to enqueue delivery", event_type=event_type, error=str(exc))
        return None


def _record(event) -> dict:
    return json.loads(event.record)


def _codes(value) -> list:
    return json.loads(value) if value else []


@tracking.event_handler(part_of=Package)
class PackageOutboundHandler:
    @handle(PackageReceived)
    def on_package_received(self, event: PackageReceived) -> None:
        enqueue_event(
            EventType.PACKAGE_CREATED,
            {"package": _record(event)},
            event.origin,
            partner_resource="packages",
            package_id=str(event.package_id),
        )

    @handle(PackageUpdated)
    def on_package_updated(self, event: PackageUpdated) -> None:
        enqueue_event(
            EventType.PACKAGE_UPDATED,
            {"package": _record(event), "changes": json.loads(event.changed_fields)},
            event.origin,
            partner_resource="packages",
            package_id=str(event.package_id),
        )

    @handle(PackageStatusChanged)
    def on_package_status_changed(self, event: PackageStatusChanged) -> None:
        enqueue_event(
            EventType.PACKAGE_STATUS_CHANGED,
            {
                "package": _record(event),
                "previous_status": event.previous_status,
                "status": event.status,
                "status_name": event.status_name,
                "location": event.location,
                "notes": event.notes,
                "updated_by": event.updated_by,
                "notification": status_notice(event.status, event.tracking_number),
            },
            event.origin,
            partner_resource="packages",
            priority=DeliveryPriority.HIGH.value,
            package_id=str(event.package_id),
        )

    @handle(PackageDeleted)
    def on_package_deleted(self, event: PackageDeleted) -> None:
        enqueue_event(
            EventType.PACKAGE_DELETED,
            {"package": _record(event)},
            event.origin,
            package_id=str(event.package_id),
        )


@tracking.event_handler(part_of=Manifest)
class ManifestOutboundHandler:
    def _enqueue(self, event_type: str, event, **extra) -> None:
        enqueue_event(
            event_type,
            {
                "manifest": _record(event),
                "collection_codes": _codes(event.collection_codes),
                "package_awbs": _codes(event.package_awbs),
                **extra,
            },
            event.origin,
            partner_resource="manifest",
            manifest_id=event.manifest_id,
        )

    @handle(ManifestCreated)
    def on_manifest_created(self, event: ManifestCreated) -> None:
        self._enqueue(EventType.MANIFEST_CREATED, event)

    @handle(ManifestUpdated)
    def on_manifest_updated(self, event: ManifestUpdated) -> None:
        self._enqueue(EventType.MANIFEST_UPDATED, event, changes=json.loads(event.changed_fields))

    @handle(ManifestStatusChanged)
    def on_manifest_status_changed(self, event: ManifestStatusChanged) -> None:
        self._enqueue(
            EventType.MANIFEST_UPDATED,
            event,
            changes=["status"],
            previous_status=event.previous_status,
            status_name=event.status_name,
        )


@tracking.event_handler(part_of=Customer)
class CustomerOutboundHandler:
    @handle(CustomerRegistered)
    def on_customer_registered(self, event: CustomerRegistered) -> None:
        enqueue_event(
            EventType.CUSTOMER_CREATED,
            {"customer": _record(event)},
            Origin.WAREHOUSE,
            customer_id=str(event.customer_id),
        )

    @handle(CustomerUpdated)
    def on_customer_updated(self, event: CustomerUpdated) -> None:
        enqueue_event(
            EventType.CUSTOMER_UPDATED,
            {"customer": _record(event), "changes": json.loads(event.changed_fields)},
            Origin.WAREHOUSE,
            customer_id=str(event.customer_id),
        )
