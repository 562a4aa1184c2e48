"""Portfolio generation endpoint."""

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from folioguard.app.api.dependencies import build_guardrail_request, get_guardrail
from folioguard.app.api.responses import rejection_response
from folioguard.app.core.config import settings
from folioguard.app.core.logging import get_logger
from folioguard.app.core.security import generate_pin
from folioguard.app.exceptions import UnsafeGenerationError
from folioguard.app.middleware.csrf import require_csrf_token
from folioguard.app.middleware.request_id import get_request_id
from folioguard.app.providers import BaseProvider, get_provider
from folioguard.app.services.guardrail import RequestGuardrail
from folioguard.app.services.portfolio_store import (
    PortfolioStore,
    create_portfolio,
    get_portfolio_store,
)
from folioguard.app.services.prompts import PORTFOLIO_SYSTEM_PROMPT, create_secure_prompt
from folioguard.app.services.validation import PortfolioInput

router = APIRouter()
logger = get_logger(__name__)


@router.post(
    "/api/generate",
    dependencies=[Depends(require_csrf_token)],
    response_model=None,
)
async def generate_portfolio(
    request: Request,
    guardrail: RequestGuardrail = Depends(get_guardrail),
    provider: BaseProvider = Depends(get_provider),
    store: PortfolioStore = Depends(get_portfolio_store),
) -> dict[str, Any] | JSONResponse:
    """Generate portfolio content from career data.

    1. Admits the request (rate limit, shape, schema, injection screen)
    2. Builds the secure prompt and calls the provider
    3. Re-screens the generated text
    4. Stores the portfolio under a new slug with a hashed PIN

    The PIN is returned once and never stored in clear.
    """
    body = await request.body()
    admission = await guardrail.admit(
        build_guardrail_request(request, body=body), schema=PortfolioInput
    )
    if not admission.valid:
        return rejection_response(admission)

    data: PortfolioInput = admission.data
    content = await provider.generate(
        PORTFOLIO_SYSTEM_PROMPT,
        create_secure_prompt(data),
        model=settings.openrouter_model,
        temperature=0.7,
    )

    if not guardrail.screen_generated_output(content).valid:
        raise UnsafeGenerationError()

    pin = generate_pin()
    record = await create_portfolio(
        store,
        data.model_dump(by_alias=True),
        pin,
        content,
        guardrail.config.pin_hash_algorithm,
    )

    logger.info(
        "Portfolio generated",
        extra={"request_id": get_request_id(request), "slug": record.slug},
    )
    return {
        "success": True,
        "content": content,
        "url": f"{settings.site_url.rstrip('/')}/p/{record.slug}",
        "slug": record.slug,
        "pin": pin,
    }
