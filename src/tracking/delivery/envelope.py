"""Signed event envelopes.

An envelope wraps one domain event for delivery:

    {"id", "type", "timestamp", "data", "metadata", "signature"}

The signature is an HMAC-SHA256 (hex) over the canonical JSON of every other
field: sorted keys, compact separators, UTF-8. Receivers recompute it over the
body they got and compare in constant time.
"""

import hashlib
import hmac
import json
from datetime import UTC, datetime
from uuid import uuid4

ENVELOPE_VERSION = "1.0"
SOURCE = "parcelsync"


def canonical_bytes(envelope: dict) -> bytes:
    unsigned = {key: value for key, value in envelope.items() if key != "signature"}
    return json.dumps(unsigned, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str).encode("utf-8")


def sign(envelope: dict, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), canonical_bytes(envelope), hashlib.sha256).hexdigest()


def verify(envelope: dict, signature, secret: str) -> bool:
    """True when ``signature`` matches the envelope; never raises."""
    if not signature or not isinstance(signature, str) or not isinstance(envelope, dict):
        return False
    try:
        expected = sign(envelope, secret)
    except (TypeError, ValueError):
        return False
    return hmac.compare_digest(expected, signature.strip().lower())


def build_envelope(event_type: str, data: dict, secret: str, metadata: dict | None = None) -> dict:
    envelope = {
        "id": str(uuid4()),
        "type": event_type,
        "timestamp": datetime.now(UTC).isoformat(),
        "data": data,
        "metadata": {"source": SOURCE, "version": ENVELOPE_VERSION, **(metadata or {})},
    }
    envelope["signature"] = sign(envelope, secret)
    return envelope
