"""Realtime publisher registry."""

from protean.utils.globals import current_domain

_publisher_instance = None


def get_publisher():
    """Return the process-wide publisher, wiring the HTTP relay when configured."""
    global _publisher_instance
    if _publisher_instance is None:
        from tracking.realtime.publisher import ALL_CHANNELS, ExternalPublisher

        _publisher_instance = ExternalPublisher()
        relay_url = current_domain.config.get("custom", {}).get("REALTIME_RELAY_URL")
        if relay_url:
            from tracking.realtime.http_relay import HttpRelay

            _publisher_instance.subscribe(ALL_CHANNELS, HttpRelay(relay_url))
    return _publisher_instance


def reset_publisher():
    """Reset the publisher singleton (useful for testing)."""
    global _publisher_instance
    _publisher_instance = None
