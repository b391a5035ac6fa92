"""Domain events for the Customer aggregate."""

from protean.fields import DateTime, Identifier, String, Text

from tracking.domain import tracking


@tracking.event(part_of="Customer")
class CustomerRegistered:
    """A customer account was created for a user code."""

    __version__ = 1

    customer_id: Identifier(required=True)
    user_code: String(required=True)
    first_name: String(required=True)
    last_name: String(required=True)
    email: String()
    branch: String()
    record: Text(required=True)  # JSON partner-format snapshot
    registered_at: DateTime(required=True)


@tracking.event(part_of="Customer")
class CustomerUpdated:
    """Customer profile or service preferences changed."""

    __version__ = 1

    customer_id: Identifier(required=True)
    user_code: String(required=True)
    changed_fields: Text(required=True)  # JSON list
    record: Text(required=True)
    updated_at: DateTime(required=True)
