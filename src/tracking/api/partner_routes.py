"""Inbound partner sync endpoints.

Partner bodies are PascalCase records reconciled field by field, so the
package routes read the raw JSON body rather than a Pydantic model. Batch
routes always answer 200 and report per-record failures in ``errors``.
"""

from fastapi import APIRouter, HTTPException, Request
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from tracking.api.schemas import PartnerBatchResponse, PartnerManifestResponse
from tracking.customer.customer import active_customers
from tracking.partner.sync import delete_packages, sync_manifest, sync_packages
from tracking.utils.logging import current_env

partner_router = APIRouter(prefix="/partner", tags=["partner"])


async def _json_body(request: Request):
    try:
        return await request.json()
    except ValueError:
        raise ValidationError({"body": ["Request body must be valid JSON"]})


@partner_router.post("/packages", response_model=PartnerBatchResponse)
async def add_or_update_packages(request: Request) -> PartnerBatchResponse:
    return PartnerBatchResponse(**sync_packages(await _json_body(request)))


@partner_router.post("/packages/update", response_model=PartnerBatchResponse)
async def update_packages(request: Request) -> PartnerBatchResponse:
    """Like ``/packages`` but never creates: unknown packages are reported."""
    return PartnerBatchResponse(**sync_packages(await _json_body(request), update_only=True))


@partner_router.post("/packages/delete", response_model=PartnerBatchResponse)
async def remove_packages(request: Request) -> PartnerBatchResponse:
    return PartnerBatchResponse(**delete_packages(await _json_body(request)))


@partner_router.post("/manifest", response_model=PartnerManifestResponse)
async def upsert_manifest(request: Request) -> PartnerManifestResponse:
    payload = await _json_body(request)
    if not isinstance(payload, dict):
        raise ValidationError({"body": ["Manifest payload must be an object"]})
    return PartnerManifestResponse(**sync_manifest(payload))


@partner_router.get("/customers")
async def list_customers(apiToken: str | None = None) -> list[dict]:  # noqa: N803
    """Active customers in partner record format."""
    if not apiToken:
        raise HTTPException(status_code=401, detail="API token is required")

    expected = current_domain.config.get("custom", {}).get("PARTNER_API_TOKEN") or ""
    if current_env() == "production" and apiToken != expected:
        raise HTTPException(status_code=401, detail="Invalid API token")

    return [customer.to_partner() for customer in active_customers()]
