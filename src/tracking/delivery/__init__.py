"""Delivery transport registry and the running worker.

The transport is a process-wide singleton chosen by ``DELIVERY_TRANSPORT``
(``http`` or ``fake``). The worker registers itself here on start so that an
enqueue can wake it for an immediate drain.
"""

from protean.utils.globals import current_domain

_transport_instance = None
_worker = None


def get_transport():
    """Return the configured delivery transport (singleton)."""
    global _transport_instance
    if _transport_instance is None:
        custom = current_domain.config.get("custom", {})
        adapter = str(custom.get("DELIVERY_TRANSPORT", "http") or "http").lower()
        if adapter == "fake":
            from tracking.delivery.fake_transport import FakeTransport

            _transport_instance = FakeTransport()
        elif adapter == "http":
            from tracking.delivery.http_transport import HttpTransport

            _transport_instance = HttpTransport(partner_api_token=custom.get("PARTNER_API_TOKEN") or "")
        else:
            raise ValueError(f"Unknown delivery transport: {adapter}")
    return _transport_instance


def reset_transport():
    """Reset the transport singleton (useful for testing)."""
    global _transport_instance
    _transport_instance = None


def register_worker(worker) -> None:
    global _worker
    _worker = worker


def unregister_worker(worker) -> None:
    global _worker
    if _worker is worker:
        _worker = None


def current_worker():
    return _worker
