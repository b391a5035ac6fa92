"""Generated identifiers for packages dropped off without partner numbers."""

import secrets
from datetime import UTC, datetime


def generate_tracking_number(now: datetime | None = None) -> str:
    """``DROPOFF-YYYYMMDD-HHMMSS-NNN``"""
    now = now or datetime.now(UTC)
    return f"DROPOFF-{now:%Y%m%d}-{now:%H%M%S}-{secrets.randbelow(1000):03d}"


def generate_control_number() -> str:
    """``EP`` followed by seven digits."""
    return f"EP{secrets.randbelow(10_000_000):07d}"
