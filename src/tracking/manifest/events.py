"""Domain events for the Manifest aggregate."""

from protean.fields import DateTime, Integer, String, Text

from tracking.domain import tracking


@tracking.event(part_of="Manifest")
class ManifestCreated:
    """A manifest was registered locally or through partner sync."""

    __version__ = 1

    manifest_id = String(required=True)
    code = String(required=True)
    status = Integer(required=True)
    origin = String(required=True)
    record = Text(required=True)  # JSON partner-format snapshot
    collection_codes = Text()  # JSON list
    package_awbs = Text()  # JSON list
    created_at = DateTime(required=True)


@tracking.event(part_of="Manifest")
class ManifestUpdated:
    """Manifest attributes or package associations changed."""

    __version__ = 1

    manifest_id = String(required=True)
    code = String(required=True)
    changed_fields = Text(required=True)  # JSON list
    origin = String(required=True)
    record = Text(required=True)
    collection_codes = Text()
    package_awbs = Text()
    updated_at = DateTime(required=True)


@tracking.event(part_of="Manifest")
class ManifestStatusChanged:
    """The manifest moved to a new status in its ledger."""

    __version__ = 1

    manifest_id = String(required=True)
    code = String(required=True)
    previous_status = Integer(required=True)
    status = Integer(required=True)
    status_name = String(required=True)
    location = String()
    notes = String()
    updated_by = String()
    origin = String(required=True)
    record = Text(required=True)
    collection_codes = Text()
    package_awbs = Text()
    changed_at = DateTime(required=True)
