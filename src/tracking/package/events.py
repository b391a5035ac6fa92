"""Package domain events — immutable facts about package state changes.

Each event carries a partner-format snapshot (``record``, JSON) taken when the
event was raised, so outbound handlers can propagate it even after the package
itself has been removed. ``origin`` names where the change came from
(``warehouse`` or ``partner``) and keeps partner-originated changes from being
pushed back to the partner.
"""

from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text

from tracking.domain import tracking


@tracking.event(part_of="Package")
class PackageReceived:
    """A package entered the system through warehouse intake or partner sync."""

    __version__ = 1

    package_id = Identifier(required=True)
    tracking_number = String(required=True)
    control_number = String(required=True)
    user_code = String(required=True)
    status = Integer(required=True)
    unknown = Boolean(default=False)
    origin = String(required=True)
    record = Text(required=True)  # JSON partner-format snapshot
    received_at = DateTime(required=True)


@tracking.event(part_of="Package")
class PackageUpdated:
    """One or more package attributes changed (status changes are separate)."""

    __version__ = 1

    package_id = Identifier(required=True)
    tracking_number = String(required=True)
    user_code = String(required=True)
    previous_user_code = String()
    changed_fields = Text(required=True)  # JSON list of local field names
    origin = String(required=True)
    record = Text(required=True)
    updated_at = DateTime(required=True)


@tracking.event(part_of="Package")
class PackageStatusChanged:
    """The package moved to a new status in its ledger."""

    __version__ = 1

    package_id = Identifier(required=True)
    tracking_number = String(required=True)
    user_code = String(required=True)
    previous_status = Integer(required=True)
    status = Integer(required=True)
    status_name = String(required=True)
    location = String()
    notes = String()
    updated_by = String()
    origin = String(required=True)
    record = Text(required=True)
    changed_at = DateTime(required=True)


@tracking.event(part_of="Package")
class PackageDeleted:
    """The package was removed."""

    __version__ = 1

    package_id = Identifier(required=True)
    tracking_number = String(required=True)
    user_code = String(required=True)
    origin = String(required=True)
    record = Text(required=True)
    deleted_at = DateTime(required=True)
