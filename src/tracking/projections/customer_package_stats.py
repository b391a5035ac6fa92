"""CustomerPackageStats — per-customer package counters.

The snapshot is always rebuilt from the packages currently carrying the user
code; it is never adjusted incrementally, so replaying a recompute with no
intervening change yields the same figures.
"""

import json
from datetime import UTC, datetime

import structlog
from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, Integer, String
from protean.utils.globals import current_domain

from tracking.customer.customer import Customer, find_customer, normalize_user_code
from tracking.customer.events import CustomerRegistered
from tracking.domain import tracking
from tracking.package.events import (
    PackageDeleted,
    PackageReceived,
    PackageStatusChanged,
    PackageUpdated,
)
from tracking.package.package import Package
from tracking.shared.statuses import DELIVERED_STATUS

logger = structlog.get_logger(__name__)


@tracking.projection
class CustomerPackageStats:
    user_code: String(identifier=True, required=True, max_length=50)
    customer_id: String(max_length=50)
    total_packages: Integer(default=0)
    pending_packages: Integer(default=0)
    delivered_packages: Integer(default=0)
    total_weight: Float(default=0.0)
    last_package_date: DateTime()
    recomputed_at: DateTime()


def _figures(packages) -> dict:
    entry_dates = [p.entry_date for p in packages if p.entry_date is not None]
    return {
        "total_packages": len(packages),
        "pending_packages": sum(1 for p in packages if p.status < DELIVERED_STATUS),
        "delivered_packages": sum(1 for p in packages if p.status == DELIVERED_STATUS),
        "total_weight": round(sum(p.weight or 0.0 for p in packages), 3),
        "last_package_date": max(entry_dates) if entry_dates else None,
    }


def recompute_customer_stats(user_code: str):
    """Rebuild the snapshot for one customer; returns it, or None when no such customer."""
    code = normalize_user_code(user_code)
    customer = find_customer(code)
    if customer is None:
        logger.info("Customer stats recompute skipped, no customer", user_code=code)
        return None

    packages = current_domain.repository_for(Package)._dao.query.filter(user_code=code).limit(None).all().items
    figures = _figures(packages)

    repo = current_domain.repository_for(CustomerPackageStats)
    try:
        stats = repo.get(code)
    except ObjectNotFoundError:
        stats = CustomerPackageStats(user_code=code)

    stats.customer_id = str(customer.id)
    if not _same_figures(stats, figures):
        for name, value in figures.items():
            setattr(stats, name, value)
        stats.recomputed_at = datetime.now(UTC)
        repo.add(stats)

    logger.debug(
        "Customer stats recomputed",
        user_code=code,
        total_packages=figures["total_packages"],
        total_weight=figures["total_weight"],
    )
    return stats


def _same_figures(stats, figures: dict) -> bool:
    return stats.recomputed_at is not None and all(getattr(stats, name) == value for name, value in figures.items())


def recompute_all() -> int:
    """Rebuild every customer's snapshot; returns the number rebuilt."""
    customers = current_domain.repository_for(Customer)._dao.query.limit(None).all().items
    rebuilt = 0
    for customer in customers:
        try:
            recompute_customer_stats(customer.user_code)
            rebuilt += 1
        except Exception as exc:
            logger.error("Customer stats recompute failed", user_code=customer.user_code, error=str(exc))
    return rebuilt


def _soft_recompute(*user_codes) -> None:
    for code in {normalize_user_code(c) for c in user_codes if c}:
        try:
            recompute_customer_stats(code)
        except Exception as exc:
            logger.exception("Customer stats recompute failed", user_code=code, error=str(exc))


@tracking.projector(projector_for=CustomerPackageStats, aggregates=[Package, Customer])
class CustomerPackageStatsProjector:
    @on(PackageReceived)
    def on_package_received(self, event):
        _soft_recompute(event.user_code)

    @on(PackageUpdated)
    def on_package_updated(self, event):
        changed = json.loads(event.changed_fields or "[]")
        if not {"user_code", "weight", "entry_date"} & set(changed):
            return
        _soft_recompute(event.user_code, event.previous_user_code)

    @on(PackageStatusChanged)
    def on_package_status_changed(self, event):
        _soft_recompute(event.user_code)

    @on(PackageDeleted)
    def on_package_deleted(self, event):
        _soft_recompute(event.user_code)

    @on(CustomerRegistered)
    def on_customer_registered(self, event):
        _soft_recompute(event.user_code)


def get_customer_stats(user_code: str):
    """Stored snapshot for ``user_code``; raises ObjectNotFoundError."""
    return current_domain.repository_for(CustomerPackageStats).get(normalize_user_code(user_code))
