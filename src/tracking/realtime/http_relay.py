"""HTTP relay subscriber — forwards realtime messages to a relay service."""

from datetime import UTC, datetime

import requests


class HttpRelay:
    def __init__(self, url: str, timeout: float = 5, session: requests.Session | None = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def __call__(self, channel: str, event_name: str, payload: dict) -> None:
        response = self.session.post(
            self.url,
            json={
                "channel": channel,
                "type": event_name,
                "data": payload,
                "timestamp": datetime.now(UTC).isoformat(),
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
