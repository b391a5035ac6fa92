"""Tracking bounded context — Parcel Intake, Partner Sync and Outbound Delivery.

Follows a parcel from warehouse intake through the partner freight network to
final delivery. Every package and manifest keeps its own status ledger, and
every state change is propagated to the partner system, webhook subscribers and
realtime listeners through a retrying delivery queue.
"""

import structlog
from protean.domain import Domain

from tracking.utils.logging import configure_logging

configure_logging()

tracking = Domain(name="tracking")

logger = structlog.get_logger(__name__)
