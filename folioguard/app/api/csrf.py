"""CSRF token endpoint."""

from fastapi import APIRouter, Request, Response

from folioguard.app.middleware.csrf import get_request_signer, issue_csrf_token

router = APIRouter()


@router.get("/api/csrf-token")
async def get_csrf_token(request: Request, response: Response) -> dict[str, str]:
    """Issue a CSRF token and set its signed cookie."""
    response.headers["Cache-Control"] = "no-store"
    return {"csrfToken": issue_csrf_token(response, get_request_signer(request))}
