"""Portfolio access endpoints.

Every PIN-checked route is rate limited per client under ``verify:<ip>`` to
slow PIN guessing. Routes that change a portfolio also require a CSRF token.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from folioguard.app.api.dependencies import (
    build_guardrail_request,
    get_client_ip,
    get_guardrail,
)
from folioguard.app.api.responses import rejection_response
from folioguard.app.middleware.csrf import require_csrf_token
from folioguard.app.services.guardrail import AdmissionResult, RequestGuardrail
from folioguard.app.services.portfolio_store import (
    MAX_EDITS,
    PortfolioStore,
    delete_portfolio,
    get_edit_info,
    get_portfolio_store,
    update_portfolio,
    verify_portfolio_pin,
    view_portfolio,
)
from folioguard.app.services.validation import FormModel, PortfolioInput

router = APIRouter()

MAX_GENERATED_CONTENT_CHARS = 20_000


class VerifyPinRequest(BaseModel):
    pin: str = Field(min_length=1, max_length=64)


class UpdatePortfolioRequest(FormModel):
    """New portfolio data, unlocked by the PIN."""

    pin: str = Field(min_length=1, max_length=64)
    data: PortfolioInput
    generated_content: Optional[str] = Field(
        default=None, max_length=MAX_GENERATED_CONTENT_CHARS
    )


async def _admit_pin_request(
    request: Request, guardrail: RequestGuardrail, schema: type[BaseModel]
) -> AdmissionResult:
    body = await request.body()
    return await guardrail.admit(
        build_guardrail_request(
            request, body=body, identifier=f"verify:{get_client_ip(request)}"
        ),
        schema=schema,
    )


@router.get("/api/portfolio/{slug}")
async def get_portfolio(
    slug: str,
    store: PortfolioStore = Depends(get_portfolio_store),
) -> dict[str, Any]:
    """Public view of a portfolio. Counts a view."""
    record = await view_portfolio(store, slug)
    return record.to_public_dict()


@router.post("/api/portfolio/{slug}/verify", response_model=None)
async def verify_portfolio(
    slug: str,
    request: Request,
    guardrail: RequestGuardrail = Depends(get_guardrail),
    store: PortfolioStore = Depends(get_portfolio_store),
) -> dict[str, Any] | JSONResponse:
    """Unlock a portfolio for editing with its PIN.

    The stored PIN hash is never returned.
    """
    admission = await _admit_pin_request(request, guardrail, VerifyPinRequest)
    if not admission.valid:
        return rejection_response(admission)

    record = await verify_portfolio_pin(store, slug, admission.data.pin)
    return record.to_public_dict()


@router.post("/api/portfolio/{slug}/edit-info", response_model=None)
async def portfolio_edit_info(
    slug: str,
    request: Request,
    guardrail: RequestGuardrail = Depends(get_guardrail),
    store: PortfolioStore = Depends(get_portfolio_store),
) -> dict[str, Any] | JSONResponse:
    """How many edits a portfolio has used and has left."""
    admission = await _admit_pin_request(request, guardrail, VerifyPinRequest)
    if not admission.valid:
        return rejection_response(admission)

    return await get_edit_info(store, slug, admission.data.pin)


@router.put(
    "/api/portfolio/{slug}",
    dependencies=[Depends(require_csrf_token)],
    response_model=None,
)
async def put_portfolio(
    slug: str,
    request: Request,
    guardrail: RequestGuardrail = Depends(get_guardrail),
    store: PortfolioStore = Depends(get_portfolio_store),
) -> dict[str, Any] | JSONResponse:
    """Replace a portfolio's data.

    The new data and any supplied content go through the same schema and
    injection screen as generation.
    """
    admission = await _admit_pin_request(request, guardrail, UpdatePortfolioRequest)
    if not admission.valid:
        return rejection_response(admission)

    update: UpdatePortfolioRequest = admission.data
    record = await update_portfolio(
        store,
        slug,
        update.pin,
        update.data.model_dump(by_alias=True),
        update.generated_content,
    )
    return {
        "success": True,
        "slug": record.slug,
        "editCount": record.edit_count,
        "remainingEdits": max(0, MAX_EDITS - record.edit_count),
    }


@router.delete(
    "/api/portfolio/{slug}",
    dependencies=[Depends(require_csrf_token)],
    response_model=None,
)
async def remove_portfolio(
    slug: str,
    request: Request,
    guardrail: RequestGuardrail = Depends(get_guardrail),
    store: PortfolioStore = Depends(get_portfolio_store),
) -> dict[str, Any] | JSONResponse:
    """Delete a portfolio."""
    admission = await _admit_pin_request(request, guardrail, VerifyPinRequest)
    if not admission.valid:
        return rejection_response(admission)

    await delete_portfolio(store, slug, admission.data.pin)
    return {"success": True}
