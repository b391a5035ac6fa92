"""HTTP transport — delivers envelopes with ``requests``."""

import requests
import structlog

from tracking.delivery.transport import DeliveryResult, DeliveryTransport

logger = structlog.get_logger(__name__)

USER_AGENT = "ParcelSync-Webhook/1.0"

# Response bodies kept on the endpoint are truncated to this many characters
_MAX_BODY = 2000


def partner_body(envelope: dict, api_token: str = ""):
    """The partner-format body for an envelope's event type."""
    data = envelope.get("data") or {}
    if envelope.get("type", "").startswith("manifest."):
        return {
            "APIToken": api_token,
            "Manifest": data.get("manifest", {}),
            "CollectionCodes": data.get("collection_codes", []),
            "PackageAWBs": data.get("package_awbs", []),
        }
    return [data.get("package", {})]


class HttpTransport(DeliveryTransport):
    def __init__(self, partner_api_token: str = "", session: requests.Session | None = None):
        self.partner_api_token = partner_api_token
        self.session = session or requests.Session()

    def _request(self, kind: str, envelope: dict) -> tuple[dict, object]:
        if kind == "partner":
            headers = {
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.partner_api_token}",
                "User-Agent": USER_AGENT,
            }
            return headers, partner_body(envelope, self.partner_api_token)
        headers = {
            "Content-Type": "application/json",
            "X-Webhook-Signature": envelope["signature"],
            "X-Webhook-Event": envelope["type"],
            "X-Webhook-ID": envelope["id"],
            "X-Webhook-Timestamp": envelope["timestamp"],
            "User-Agent": USER_AGENT,
        }
        return headers, envelope

    def send(self, endpoint_url: str, kind: str, envelope: dict, timeout: float) -> DeliveryResult:
        headers, body = self._request(kind, envelope)
        try:
            response = self.session.post(endpoint_url, json=body, headers=headers, timeout=timeout)
        except requests.Timeout:
            return DeliveryResult(success=False, error=f"Delivery timeout after {timeout}s")
        except requests.RequestException as exc:
            return DeliveryResult(success=False, error=f"{type(exc).__name__}: {exc}")

        summary = {
            "status": response.status_code,
            "reason": response.reason,
            "body": response.text[:_MAX_BODY],
        }
        if not response.ok:
            return DeliveryResult(
                success=False,
                status_code=response.status_code,
                error=f"HTTP {response.status_code}: {response.reason}",
                response=summary,
            )
        return DeliveryResult(success=True, status_code=response.status_code, response=summary)
