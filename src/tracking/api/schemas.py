"""Pydantic request/response models for the tracking API.

API schemas are separate from Protean commands. Partner routes take raw
JSON bodies, since partner records are keyed by PascalCase names and are
reconciled field by field.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request Models
# ---------------------------------------------------------------------------
class ReceivePackageRequest(BaseModel):
    tracking_number: str | None = None
    control_number: str | None = None
    first_name: str
    last_name: str
    user_code: str
    weight: float = Field(..., ge=0)
    shipper: str
    description: str
    branch: str
    entry_staff: str | None = None
    courier_id: str | None = None
    collection_id: str | None = None
    original_house_number: str | None = None
    service_type_id: str | None = None
    hazmat_code_id: str | None = None
    hs_code: str | None = None
    pieces: int = Field(default=1, ge=0)
    length: float = 0.0
    width: float = 0.0
    height: float = 0.0
    cubes: float = 0.0


class UpdateStatusRequest(BaseModel):
    status: int = Field(..., examples=[2])
    location: str | None = None
    notes: str | None = None
    updated_by: str | None = None


class BulkStatusRequest(UpdateStatusRequest):
    package_ids: list[str] = Field(..., min_length=1)


class CreateManifestRequest(BaseModel):
    code: str
    manifest_id: str | None = None
    courier_id: str | None = None
    service_type_id: str | None = None
    status: int = 0
    flight_date: datetime | None = None
    weight: float = 0.0
    item_count: int = 0
    manifest_number: int | None = None
    staff_name: str | None = None
    awb_number: str | None = None


class RegisterCustomerRequest(BaseModel):
    user_code: str
    first_name: str
    last_name: str
    email: str | None = None
    phone: str | None = None
    branch: str | None = None
    customer_service_type_id: str | None = None
    customer_level_instructions: str | None = None
    courier_service_type_id: str | None = None
    courier_level_instructions: str | None = None


class UpdateCustomerRequest(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    branch: str | None = None
    customer_service_type_id: str | None = None
    customer_level_instructions: str | None = None
    courier_service_type_id: str | None = None
    courier_level_instructions: str | None = None
    is_active: bool | None = None


class RetryDeliveryRequest(BaseModel):
    url: str | None = None


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------
class IdResponse(BaseModel):
    id: str


class StatusResponse(BaseModel):
    status: str = "ok"


class StatusEntryResponse(BaseModel):
    sequence: int
    status: int
    status_name: str
    timestamp: datetime
    location: str | None = None
    notes: str | None = None
    updated_by: str | None = None


class DwellTimeResponse(BaseModel):
    status: int
    status_name: str
    seconds: float


class PackageTrackingResponse(BaseModel):
    package_id: str
    tracking_number: str
    control_number: str
    user_code: str
    status: int
    status_name: str
    manifest_id: str | None = None
    history: list[StatusEntryResponse]
    dwell_times: list[DwellTimeResponse]


class BulkStatusResponse(BaseModel):
    updated: list[str]
    unchanged: list[str]
    errors: list[dict]


class ManifestResponse(BaseModel):
    manifest_id: str
    code: str
    status: int
    status_name: str
    package_count: int
    record: dict
    history: list[StatusEntryResponse]


class CustomerStatsResponse(BaseModel):
    user_code: str
    customer_id: str | None = None
    total_packages: int
    pending_packages: int
    delivered_packages: int
    total_weight: float
    last_package_date: datetime | None = None
    recomputed_at: datetime | None = None


class DeliveryStatsResponse(BaseModel):
    total_queued: int
    by_status: dict[str, int]
    oldest_item: str | None = None
    newest_item: str | None = None


class RetryDeliveryResponse(BaseModel):
    delivery_id: str
    reset: list[str]


class DrainResponse(BaseModel):
    attempted: int
    succeeded: int
    retrying: int
    failed: int
    purged: int
    skipped: bool


class CleanResponse(BaseModel):
    cleaned: int


class PartnerBatchResponse(BaseModel):
    success: bool
    message: str
    packages: list[dict]
    errors: list[str] | None = None


class PartnerManifestResponse(BaseModel):
    success: bool
    message: str
    manifest: dict
    created: bool
    packages_updated: int
    associated_packages: list[dict]
