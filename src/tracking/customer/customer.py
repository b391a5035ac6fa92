"""Customer aggregate — the consignee a package is addressed to.

Packages reference their customer through ``user_code`` (always stored
upper-case). The reference is weak: a package may arrive before its customer
is registered, in which case it is flagged ``unknown``.
"""

import json
from datetime import UTC, datetime

from protean.fields import Boolean, DateTime, String, Text
from protean.utils.globals import current_domain

from tracking.customer.events import CustomerRegistered, CustomerUpdated
from tracking.domain import tracking
from tracking.partner.records import customer_to_partner, snapshot

_EDITABLE = (
    "first_name",
    "last_name",
    "email",
    "phone",
    "branch",
    "customer_service_type_id",
    "customer_level_instructions",
    "courier_service_type_id",
    "courier_level_instructions",
    "is_active",
)


def normalize_user_code(user_code: str | None) -> str:
    return (user_code or "").strip().upper()


@tracking.aggregate
class Customer:
    user_code: String(required=True, max_length=50, unique=True)
    first_name: String(required=True, max_length=100)
    last_name: String(required=True, max_length=100)
    email: String(max_length=254)
    phone: String(max_length=30)
    branch: String(max_length=100)
    customer_service_type_id: String(max_length=100)
    customer_level_instructions: Text()
    courier_service_type_id: String(max_length=100)
    courier_level_instructions: Text()
    is_active: Boolean(default=True)
    registered_at: DateTime()
    updated_at: DateTime()

    @classmethod
    def register(cls, user_code, first_name, last_name, **details):
        now = datetime.now(UTC)
        customer = cls(
            user_code=normalize_user_code(user_code),
            first_name=first_name,
            last_name=last_name,
            registered_at=now,
            updated_at=now,
            **{name: value for name, value in details.items() if name in _EDITABLE and value is not None},
        )
        customer.raise_(
            CustomerRegistered(
                customer_id=str(customer.id),
                user_code=customer.user_code,
                first_name=customer.first_name,
                last_name=customer.last_name,
                email=customer.email,
                branch=customer.branch,
                record=snapshot(customer.to_partner()),
                registered_at=now,
            )
        )
        return customer

    def update(self, **changes) -> list[str]:
        """Apply the non-None editable changes; returns the changed field names."""
        changed = []
        for name in _EDITABLE:
            value = changes.get(name)
            if value is None or getattr(self, name) == value:
                continue
            setattr(self, name, value)
            changed.append(name)

        if changed:
            now = datetime.now(UTC)
            self.updated_at = now
            self.raise_(
                CustomerUpdated(
                    customer_id=str(self.id),
                    user_code=self.user_code,
                    changed_fields=json.dumps(changed),
                    record=snapshot(self.to_partner()),
                    updated_at=now,
                )
            )
        return changed

    def to_partner(self) -> dict:
        return customer_to_partner(self)


def find_customer(user_code: str | None):
    """The customer registered under ``user_code``, or None."""
    code = normalize_user_code(user_code)
    if not code:
        return None
    return current_domain.repository_for(Customer)._dao.query.filter(user_code=code).all().first


def active_customers() -> list:
    return current_domain.repository_for(Customer)._dao.query.filter(is_active=True).limit(None).all().items
