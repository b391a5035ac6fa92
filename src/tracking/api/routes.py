"""FastAPI routes for warehouse operations, customers and delivery admin.

Thin adapters that translate HTTP requests into domain commands. Domain
exceptions are mapped to HTTP status codes by the application's exception
handlers.
"""

import json

from fastapi import APIRouter, Query
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from tracking.api.schemas import (
    BulkStatusRequest,
    BulkStatusResponse,
    CleanResponse,
    CreateManifestRequest,
    CustomerStatsResponse,
    DeliveryStatsResponse,
    DrainResponse,
    IdResponse,
    ManifestResponse,
    PackageTrackingResponse,
    ReceivePackageRequest,
    RegisterCustomerRequest,
    RetryDeliveryRequest,
    RetryDeliveryResponse,
    StatusResponse,
    UpdateCustomerRequest,
    UpdateStatusRequest,
)
from tracking.customer.registration import RegisterCustomer, UpdateCustomer
from tracking.delivery import current_worker
from tracking.delivery.queue import DeliveryQueue
from tracking.delivery.worker import DeliveryWorker
from tracking.manifest.management import CreateManifest, UpdateManifestStatus, get_manifest
from tracking.package.intake import ReceivePackage
from tracking.package.package import Package
from tracking.package.removal import DeletePackage
from tracking.package.status import BulkUpdatePackageStatus, UpdatePackageStatus
from tracking.projections.customer_package_stats import get_customer_stats, recompute_customer_stats
from tracking.shared.statuses import status_name

package_router = APIRouter(prefix="/packages", tags=["packages"])
manifest_router = APIRouter(prefix="/manifests", tags=["manifests"])
customer_router = APIRouter(prefix="/customers", tags=["customers"])
delivery_router = APIRouter(prefix="/deliveries", tags=["deliveries"])


def _history(entries) -> list[dict]:
    return [
        {
            "sequence": entry.sequence,
            "status": entry.status,
            "status_name": status_name(entry.status),
            "timestamp": entry.timestamp,
            "location": entry.location,
            "notes": entry.notes,
            "updated_by": entry.updated_by,
        }
        for entry in entries
    ]


# ---------------------------------------------------------------------------
# Packages
# ---------------------------------------------------------------------------
@package_router.post("", status_code=201, response_model=IdResponse)
async def receive_package(body: ReceivePackageRequest) -> IdResponse:
    """Register a package at warehouse intake."""
    command = ReceivePackage(**body.model_dump(exclude_none=True))
    package_id = current_domain.process(command, asynchronous=False)
    return IdResponse(id=package_id)


@package_router.get("/tracking/{tracking_number}", response_model=PackageTrackingResponse)
async def track_package(tracking_number: str) -> PackageTrackingResponse:
    """Current status, full history and time spent per status."""
    repo = current_domain.repository_for(Package)
    package = repo._dao.query.filter(tracking_number=tracking_number).all().first
    if package is None:
        raise ObjectNotFoundError(f"Package with tracking number '{tracking_number}' does not exist")

    return PackageTrackingResponse(
        package_id=str(package.id),
        tracking_number=package.tracking_number,
        control_number=package.control_number,
        user_code=package.user_code,
        status=package.status,
        status_name=package.status_name,
        manifest_id=package.manifest_id,
        history=_history(package.history),
        dwell_times=[
            {"status": status, "status_name": status_name(status), "seconds": seconds}
            for status, seconds in package.dwell_times()
        ],
    )


@package_router.get("/{package_id}")
async def get_package(package_id: str) -> dict:
    """The package in partner record format."""
    return current_domain.repository_for(Package).get(package_id).to_partner()


@package_router.put("/{package_id}/status", response_model=StatusResponse)
async def update_package_status(package_id: str, body: UpdateStatusRequest) -> StatusResponse:
    command = UpdatePackageStatus(package_id=package_id, **body.model_dump(exclude_none=True))
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@package_router.post("/bulk/status", response_model=BulkStatusResponse)
async def bulk_update_package_status(body: BulkStatusRequest) -> BulkStatusResponse:
    values = body.model_dump(exclude_none=True)
    command = BulkUpdatePackageStatus(package_ids=json.dumps(values.pop("package_ids")), **values)
    result = current_domain.process(command, asynchronous=False)
    return BulkStatusResponse(**result)


@package_router.delete("/{package_id}", response_model=StatusResponse)
async def delete_package(package_id: str) -> StatusResponse:
    current_domain.process(DeletePackage(package_id=package_id), asynchronous=False)
    return StatusResponse(status="deleted")


# ---------------------------------------------------------------------------
# Manifests
# ---------------------------------------------------------------------------
def _manifest_response(manifest) -> ManifestResponse:
    return ManifestResponse(
        manifest_id=manifest.manifest_id,
        code=manifest.code,
        status=manifest.status,
        status_name=manifest.status_name,
        package_count=manifest.package_count or 0,
        record=manifest.to_partner(),
        history=_history(manifest.history),
    )


@manifest_router.post("", status_code=201, response_model=IdResponse)
async def create_manifest(body: CreateManifestRequest) -> IdResponse:
    manifest_id = current_domain.process(CreateManifest(**body.model_dump(exclude_none=True)), asynchronous=False)
    return IdResponse(id=manifest_id)


@manifest_router.get("/{manifest_id}", response_model=ManifestResponse)
async def get_manifest_detail(manifest_id: str) -> ManifestResponse:
    return _manifest_response(get_manifest(manifest_id))


@manifest_router.put("/{manifest_id}/status", response_model=StatusResponse)
async def update_manifest_status(manifest_id: str, body: UpdateStatusRequest) -> StatusResponse:
    command = UpdateManifestStatus(manifest_id=manifest_id, **body.model_dump(exclude_none=True))
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------
@customer_router.post("", status_code=201, response_model=IdResponse)
async def register_customer(body: RegisterCustomerRequest) -> IdResponse:
    customer_id = current_domain.process(RegisterCustomer(**body.model_dump(exclude_none=True)), asynchronous=False)
    return IdResponse(id=customer_id)


@customer_router.put("/{customer_id}", response_model=StatusResponse)
async def update_customer(customer_id: str, body: UpdateCustomerRequest) -> StatusResponse:
    command = UpdateCustomer(customer_id=customer_id, **body.model_dump(exclude_none=True))
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


def _stats_response(stats) -> CustomerStatsResponse:
    return CustomerStatsResponse(
        user_code=stats.user_code,
        customer_id=stats.customer_id,
        total_packages=stats.total_packages or 0,
        pending_packages=stats.pending_packages or 0,
        delivered_packages=stats.delivered_packages or 0,
        total_weight=stats.total_weight or 0.0,
        last_package_date=stats.last_package_date,
        recomputed_at=stats.recomputed_at,
    )


@customer_router.get("/{user_code}/stats", response_model=CustomerStatsResponse)
async def customer_stats(user_code: str) -> CustomerStatsResponse:
    return _stats_response(get_customer_stats(user_code))


@customer_router.post("/{user_code}/stats/recompute", response_model=CustomerStatsResponse)
async def recompute_stats(user_code: str) -> CustomerStatsResponse:
    stats = recompute_customer_stats(user_code)
    if stats is None:
        raise ObjectNotFoundError(f"Customer with user code '{user_code}' does not exist")
    return _stats_response(stats)


# ---------------------------------------------------------------------------
# Delivery admin
# ---------------------------------------------------------------------------
@delivery_router.get("/stats", response_model=DeliveryStatsResponse)
async def delivery_stats() -> DeliveryStatsResponse:
    return DeliveryStatsResponse(**DeliveryQueue().stats())


@delivery_router.get("")
async def list_deliveries(
    limit: int = Query(default=50, ge=1, le=500),
    status: str | None = None,
    event_type: str | None = None,
) -> list[dict]:
    return [d.summary() for d in DeliveryQueue().items(limit=limit, status=status, event_type=event_type)]


@delivery_router.post("/drain", response_model=DrainResponse)
def drain_deliveries() -> DrainResponse:
    """Run a delivery pass now, in the threadpool since sends block."""
    worker = current_worker() or DeliveryWorker(DeliveryQueue())
    return DrainResponse(**worker.drain())


@delivery_router.post("/clean", response_model=CleanResponse)
async def clean_deliveries(max_age_hours: float = Query(default=24, ge=0)) -> CleanResponse:
    return CleanResponse(cleaned=DeliveryQueue().clean_completed(max_age_hours))


@delivery_router.get("/{delivery_id}")
async def get_delivery(delivery_id: str) -> dict:
    return DeliveryQueue().get(delivery_id).summary()


@delivery_router.post("/{delivery_id}/retry", response_model=RetryDeliveryResponse)
async def retry_delivery(delivery_id: str, body: RetryDeliveryRequest | None = None) -> RetryDeliveryResponse:
    reset = DeliveryQueue().retry(delivery_id, url=body.url if body else None)
    return RetryDeliveryResponse(delivery_id=delivery_id, reset=reset)


@delivery_router.delete("/{delivery_id}", response_model=StatusResponse)
async def cancel_delivery(delivery_id: str) -> StatusResponse:
    DeliveryQueue().cancel(delivery_id)
    return StatusResponse(status="cancelled")
