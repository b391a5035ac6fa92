"""Status history ledger shared by every tracked aggregate.

A ledger is bound to one aggregate type: the child entity class used for
history entries, the HasMany field holding them and the scalar field mirroring
the latest status. The aggregate owns the entries; the ledger is the only code
that appends to them.

Invariants:
    - ``status`` always equals the status of the last entry (by ``sequence``)
    - entries are never edited or removed
    - appending the current status again is a no-op

The ledger raises no domain events. Callers compare the status before and
after ``append`` and raise their own event, which lets a bulk operation append
many transitions before anything is dispatched.
"""

from datetime import UTC, datetime

from protean.exceptions import InvalidOperationError, ValidationError

from tracking.shared.statuses import ShipmentStatus, parse_status

DEFAULT_ACTOR = "System"


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class StatusLedger:
    def __init__(
        self,
        entry_cls,
        statuses=ShipmentStatus,
        status_field: str = "status",
        history_field: str = "status_history",
    ):
        self.entry_cls = entry_cls
        self.statuses = statuses
        self.status_field = status_field
        self.history_field = history_field

    def history(self, entity) -> list:
        """Entries in append order."""
        return sorted(getattr(entity, self.history_field) or [], key=lambda entry: entry.sequence)

    def current(self, entity) -> int | None:
        entries = self.history(entity)
        return entries[-1].status if entries else None

    def is_consistent(self, entity) -> bool:
        entries = self.history(entity)
        if not entries:
            return False
        sequences = [entry.sequence for entry in entries]
        return entries[-1].status == getattr(entity, self.status_field) and sequences == list(
            range(1, len(entries) + 1)
        )

    def validate(self, status) -> int:
        try:
            return self.statuses(parse_status(status)).value
        except ValueError:
            allowed = ", ".join(str(s.value) for s in self.statuses)
            raise ValidationError({"status": [f"Invalid status {status!r}; expected one of {allowed}"]})

    def bootstrap(self, entity, status, location: str = "", notes: str = "", actor: str = DEFAULT_ACTOR):
        """Write the first history entry of a freshly created entity."""
        value = self.validate(status)
        if getattr(entity, self.history_field):
            raise InvalidOperationError(f"{type(entity).__name__} already has a status history")
        self._write(entity, value, location, notes, actor, sequence=1)
        return entity

    def append(self, entity, new_status, location: str = "", notes: str = "", actor: str = DEFAULT_ACTOR):
        """Record a transition to ``new_status``; returns the entity.

        Nothing is touched when the status is invalid (ValidationError) or
        already current.
        """
        value = self.validate(new_status)
        entries = self.history(entity)
        if entries and getattr(entity, self.status_field) == value:
            return entity

        self._write(entity, value, location, notes, actor, sequence=len(entries) + 1)
        return entity

    def dwell_times(self, entity, now: datetime | None = None) -> list[tuple[int, float]]:
        """Seconds spent in each visited status, in visit order.

        The last entry is measured up to ``now``.
        """
        now = _aware(now or datetime.now(UTC))
        entries = self.history(entity)
        dwell = []
        for entry, following in zip(entries, entries[1:] + [None]):
            until = _aware(following.timestamp) if following is not None else now
            dwell.append((entry.status, max((until - _aware(entry.timestamp)).total_seconds(), 0.0)))
        return dwell

    def _write(self, entity, status: int, location: str, notes: str, actor: str, sequence: int) -> None:
        add_entry = getattr(entity, f"add_{self.history_field}")
        add_entry(
            self.entry_cls(
                sequence=sequence,
                status=status,
                timestamp=datetime.now(UTC),
                location=location or "",
                notes=notes or "",
                updated_by=actor or DEFAULT_ACTOR,
            )
        )
        setattr(entity, self.status_field, status)
