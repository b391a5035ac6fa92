"""Delivery transport port — abstract interface for sending one envelope.

Adapters never raise for delivery failures; network errors, timeouts and
non-2xx responses all come back as an unsuccessful ``DeliveryResult``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class DeliveryResult:
    success: bool
    status_code: int | None = None
    error: str | None = None
    response: dict = field(default_factory=dict)


class DeliveryTransport(ABC):
    """Abstract interface for delivery transports."""

    @abstractmethod
    def send(self, endpoint_url: str, kind: str, envelope: dict, timeout: float) -> DeliveryResult:
        """POST the envelope (webhook) or its partner record (partner) to ``endpoint_url``."""
        ...
