"""Fake transport — records deliveries in memory for testing."""

from tracking.delivery.transport import DeliveryResult, DeliveryTransport


class FakeTransport(DeliveryTransport):
    """Transport that records every send; outcomes are configurable per url."""

    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "HTTP 500: Internal Server Error"
        self._per_url: dict[str, tuple[bool, str]] = {}

    def configure(self, should_succeed: bool = True, failure_reason: str = "HTTP 500: Internal Server Error", url=None):
        """Set the outcome for every url, or only for ``url``."""
        if url is None:
            self.should_succeed = should_succeed
            self.failure_reason = failure_reason
        else:
            self._per_url[url] = (should_succeed, failure_reason)

    def send(self, endpoint_url: str, kind: str, envelope: dict, timeout: float) -> DeliveryResult:
        self.sent.append({"url": endpoint_url, "kind": kind, "envelope": envelope, "timeout": timeout})
        succeed, reason = self._per_url.get(endpoint_url, (self.should_succeed, self.failure_reason))
        if not succeed:
            return DeliveryResult(success=False, status_code=500, error=reason)
        return DeliveryResult(success=True, status_code=200, response={"status": 200, "body": "ok"})

    def sent_to(self, url: str) -> list[dict]:
        return [call for call in self.sent if call["url"] == url]

    def reset(self):
        self.sent.clear()
        self._per_url.clear()
        self.should_succeed = True
        self.failure_reason = "HTTP 500: Internal Server Error"
