"""Reconciliation of partner records with local aggregates.

A partner record may identify an entity by any of several natural keys. The
candidates are tried in a fixed priority order and the first hit wins, so a
record carrying both a PackageID and a TrackingNumber always resolves through
the PackageID.

Upserts are partial: only fields present in the record are merged, and a
status that differs from the current one goes through the entity's ledger.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from tracking.customer.customer import find_customer
from tracking.manifest.manifest import Manifest
from tracking.package.package import Package, customer_attributes
from tracking.package.removal import remove_package
from tracking.partner.records import (
    MANIFEST_REQUIRED,
    PACKAGE_REQUIRED,
    manifest_attributes,
    missing_fields,
    package_attributes,
)
from tracking.shared.errors import is_duplicate_key
from tracking.shared.origin import Origin

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class KeyCandidate:
    partner_field: str
    local_field: str

    def value(self, record: dict) -> str | None:
        raw = record.get(self.partner_field)
        if raw is None:
            return None
        value = str(raw).strip()
        return value or None


# Priority order matters: the first candidate present and matching wins.
PACKAGE_KEYS = (
    KeyCandidate("PackageID", "id"),
    KeyCandidate("TrackingNumber", "tracking_number"),
    KeyCandidate("ControlNumber", "control_number"),
    KeyCandidate("OriginalHouseNumber", "original_house_number"),
)

MANIFEST_KEYS = (
    KeyCandidate("ManifestID", "manifest_id"),
    KeyCandidate("ManifestCode", "code"),
)


def _required_error(missing: list[str]) -> ValidationError:
    return ValidationError({name: ["is required"] for name in missing})


class ReconciliationAdapter:
    def __init__(self, aggregate_cls, keys):
        self.aggregate_cls = aggregate_cls
        self.keys = tuple(keys)

    @property
    def repository(self):
        return current_domain.repository_for(self.aggregate_cls)

    def resolve(self, record: dict):
        """The local entity matching ``record``, or None."""
        for candidate in self.keys:
            value = candidate.value(record)
            if value is None:
                continue
            match = self._lookup(candidate.local_field, value)
            if match is not None:
                return match
        return None

    def _lookup(self, field: str, value: str):
        if field == "id":
            try:
                return self.repository.get(value)
            except ObjectNotFoundError:
                return None
        return self.repository._dao.query.filter(**{field: value}).all().first


class PackageReconciliation(ReconciliationAdapter):
    def __init__(self):
        super().__init__(Package, PACKAGE_KEYS)

    def upsert(self, record: dict, origin: str = Origin.PARTNER, actor: str | None = None, create: bool = True):
        """Create or merge a package from a partner record.

        Returns ``(package, created)``. With ``create=False`` an unmatched
        record raises ObjectNotFoundError.
        """
        attributes = package_attributes(record)
        if "user_code" in attributes:
            attributes.update(customer_attributes(find_customer(attributes["user_code"])))

        existing = self.resolve(record)
        if existing is not None:
            return self._merge(existing, attributes, origin, actor), False
        if not create:
            raise ObjectNotFoundError(f"Package not found for record {self._describe(record)}")

        missing = missing_fields(record, PACKAGE_REQUIRED)
        if missing:
            raise _required_error(missing)

        package = Package.receive(attributes, origin=origin, actor=actor)
        try:
            self.repository.add(package)
        except ValidationError as exc:
            if not is_duplicate_key(exc):
                raise
            # Created concurrently between resolve and add: merge into the winner
            existing = self.resolve(record)
            if existing is None:
                raise
            logger.warning(
                "Package created concurrently, merging into existing",
                tracking_number=attributes.get("tracking_number"),
            )
            return self._merge(existing, attributes, origin, actor), False
        return package, True

    def _merge(self, package, attributes: dict, origin: str, actor: str | None):
        attributes = {name: value for name, value in attributes.items() if name != "id"}
        package.apply_changes(attributes, origin=origin, actor=actor)
        self.repository.add(package)
        return package

    def _describe(self, record: dict) -> str:
        keys = {c.partner_field: c.value(record) for c in self.keys if c.value(record) is not None}
        return ", ".join(f"{name}={value}" for name, value in keys.items()) or "without identifying keys"

    def remove(self, record: dict, origin: str = Origin.PARTNER):
        """Delete the package identified by ``record``; returns its partner snapshot."""
        package = self.resolve(record)
        if package is None:
            raise ObjectNotFoundError(f"Package not found for record {self._describe(record)}")
        snapshot = package.to_partner()
        remove_package(package, origin=origin)
        return snapshot


class ManifestReconciliation(ReconciliationAdapter):
    def __init__(self):
        super().__init__(Manifest, MANIFEST_KEYS)

    def upsert(self, payload: dict, origin: str = Origin.PARTNER) -> dict:
        """Create or merge a manifest and associate its packages.

        ``payload`` is ``{APIToken, Manifest, CollectionCodes, PackageAWBs}``.
        Returns ``{"manifest", "created", "packages_updated", "associated_packages"}``.
        """
        token = (payload.get("APIToken") or "").strip() if isinstance(payload, dict) else ""
        if not token:
            raise ValidationError({"APIToken": ["is required"]})
        record = payload.get("Manifest")
        if not isinstance(record, dict):
            raise ValidationError({"Manifest": ["is required"]})
        missing = missing_fields(record, MANIFEST_REQUIRED)
        if missing:
            raise _required_error(missing)

        collection_codes = [str(c).strip() for c in payload.get("CollectionCodes") or [] if str(c).strip()]
        package_awbs = [str(a).strip() for a in payload.get("PackageAWBs") or [] if str(a).strip()]

        attributes = manifest_attributes(record)
        attributes["api_token"] = token

        manifest = self.resolve(record)
        created = manifest is None
        if created:
            manifest = Manifest.create(attributes, origin=origin, actor=attributes.get("staff_name"))
            try:
                self.repository.add(manifest)
            except ValidationError as exc:
                if not is_duplicate_key(exc):
                    raise
                manifest = self.resolve(record)
                if manifest is None:
                    raise
                created = False
        if not created:
            manifest.apply_changes(attributes, origin=origin, actor=attributes.get("staff_name"))

        associated = self._associate(manifest, collection_codes, package_awbs, origin)
        manifest.record_association(
            collection_codes,
            package_awbs,
            package_count=self._package_count(manifest, associated),
            origin=origin,
        )
        self.repository.add(manifest)

        logger.info(
            "Partner manifest synced",
            manifest_id=manifest.manifest_id,
            created=created,
            packages_updated=len(associated),
        )
        return {
            "manifest": manifest,
            "created": created,
            "packages_updated": len(associated),
            "associated_packages": [package.to_partner() for package in associated],
        }

    def _associate(self, manifest, collection_codes: list, package_awbs: list, origin: str) -> list:
        packages = current_domain.repository_for(Package)
        matched = {}
        for code in collection_codes:
            for package in packages._dao.query.filter(collection_id=code).limit(None).all().items:
                matched.setdefault(str(package.id), package)
        for awb in package_awbs:
            package = packages._dao.query.filter(control_number=awb).all().first
            if package is not None:
                matched.setdefault(str(package.id), package)

        for package in matched.values():
            package.assign_to_manifest(
                manifest.manifest_id,
                manifest.code,
                manifest.status,
                actor=manifest.staff_name,
                origin=origin,
            )
            packages.add(package)
        return list(matched.values())

    def _package_count(self, manifest, associated: list) -> int:
        existing = (
            current_domain.repository_for(Package)
            ._dao.query.filter(manifest_id=manifest.manifest_id)
            .limit(None)
            .all()
            .items
        )
        return len({str(p.id) for p in existing} | {str(p.id) for p in associated})
