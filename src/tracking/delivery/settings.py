"""Delivery settings, read from ``[tool.protean.custom]``."""

from dataclasses import dataclass, field

from protean.utils.globals import current_domain

from tracking.utils.logging import current_env


def _flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def _endpoints(value) -> tuple[str, ...]:
    if not value:
        return ()
    items = value.split(",") if isinstance(value, str) else list(value)
    return tuple(item.strip() for item in items if item and item.strip())


@dataclass(frozen=True)
class DeliverySettings:
    secret: str
    webhook_endpoints: tuple[str, ...] = ()
    max_attempts: int = 3
    backoff_seconds: tuple[float, ...] = (1, 5, 15)
    timeout_seconds: float = 30
    drain_interval_seconds: float = 5
    retention_hours: float = 24
    delay_drain: bool = False
    transport: str = "http"
    partner_base_url: str = ""
    partner_api_token: str = ""
    realtime_relay_url: str = ""
    environment: str = field(default_factory=current_env)

    def __post_init__(self):
        if not self.secret:
            raise ValueError("A webhook signing secret is required")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if len(self.backoff_seconds) < self.max_attempts - 1:
            raise ValueError(
                f"backoff_seconds needs at least {self.max_attempts - 1} entries for {self.max_attempts} attempts"
            )
        if any(later <= earlier for earlier, later in zip(self.backoff_seconds, self.backoff_seconds[1:])):
            raise ValueError("backoff_seconds must be strictly increasing")
        if any(delay <= 0 for delay in self.backoff_seconds):
            raise ValueError("backoff_seconds must be positive")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

    @classmethod
    def from_config(cls, config: dict | None = None) -> "DeliverySettings":
        custom = config if config is not None else current_domain.config.get("custom", {})
        return cls(
            secret=custom.get("WEBHOOK_SECRET", ""),
            webhook_endpoints=_endpoints(custom.get("WEBHOOK_ENDPOINTS")),
            max_attempts=int(custom.get("WEBHOOK_MAX_ATTEMPTS", 3)),
            backoff_seconds=tuple(float(s) for s in custom.get("WEBHOOK_BACKOFF_SECONDS", (1, 5, 15))),
            timeout_seconds=float(custom.get("WEBHOOK_TIMEOUT_SECONDS", 30)),
            drain_interval_seconds=float(custom.get("WEBHOOK_DRAIN_INTERVAL_SECONDS", 5)),
            retention_hours=float(custom.get("WEBHOOK_RETENTION_HOURS", 24)),
            delay_drain=_flag(custom.get("WEBHOOK_DELAY_DRAIN", False)),
            transport=str(custom.get("DELIVERY_TRANSPORT", "http") or "http").lower(),
            partner_base_url=str(custom.get("PARTNER_BASE_URL") or "").rstrip("/"),
            partner_api_token=str(custom.get("PARTNER_API_TOKEN") or ""),
            realtime_relay_url=str(custom.get("REALTIME_RELAY_URL") or ""),
        )

    def backoff_for(self, attempts: int) -> float:
        """Delay before the next try after ``attempts`` failed attempts."""
        return self.backoff_seconds[min(attempts, len(self.backoff_seconds)) - 1]

    def partner_endpoint(self, resource: str) -> str | None:
        if not self.partner_base_url:
            return None
        return f"{self.partner_base_url}/{resource}"
