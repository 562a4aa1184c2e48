"""Resume upload and parsing endpoint."""

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from folioguard.app.api.dependencies import (
    build_guardrail_request,
    get_client_ip,
    get_guardrail,
)
from folioguard.app.api.responses import rejection_response
from folioguard.app.core.config import settings
from folioguard.app.core.logging import get_logger
from folioguard.app.exceptions import ProviderError, UnsafeGenerationError
from folioguard.app.middleware.csrf import require_csrf_token
from folioguard.app.providers import BaseProvider, get_provider
from folioguard.app.services.guardrail import RequestGuardrail
from folioguard.app.services.prompts import RESUME_SYSTEM_PROMPT, create_resume_parse_prompt
from folioguard.app.services.resume import (
    LOW_CONFIDENCE_THRESHOLD,
    calculate_confidence,
    empty_resume_data,
    parse_extraction,
    sanitize_extracted_data,
)
from folioguard.app.services.security_events import SecurityEvent, SecurityEventKind
from folioguard.app.services.uploads import (
    decode_text,
    has_valid_file_signature,
    is_plain_text,
    validate_file_upload,
)

router = APIRouter()
logger = get_logger(__name__)

UPLOAD_FIELD = "resume"
# Multipart boundaries and headers on top of the file itself
MULTIPART_OVERHEAD_BYTES = 64 * 1024

RESUME_STOP_SEQUENCES = ["<script", "<?php", "Human:", "Assistant:"]

CORRUPT_FILE_MESSAGE = "File appears to be corrupted or invalid"
UNSUPPORTED_FORMAT_MESSAGE = "PDF/DOC parsing coming soon. Please use a TXT file for now."


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


def _empty_result(message: str) -> dict[str, Any]:
    return {
        "success": False,
        "error": message,
        "extractedData": empty_resume_data(),
        "confidence": 0,
    }


def _reject_file(
    guardrail: RequestGuardrail, identifier: str, upload: UploadFile, size: int, reason: str
) -> None:
    guardrail.log_security_event(SecurityEvent(
        kind=SecurityEventKind.FILE_REJECTED,
        identifier=identifier,
        details={
            "file_name": upload.filename,
            "file_size": size,
            "file_type": upload.content_type,
            "reason": reason,
        },
    ))


@router.post(
    "/api/parse-resume",
    dependencies=[Depends(require_csrf_token)],
    response_model=None,
)
async def parse_resume(
    request: Request,
    guardrail: RequestGuardrail = Depends(get_guardrail),
    provider: BaseProvider = Depends(get_provider),
) -> dict[str, Any] | JSONResponse:
    """Extract form fields from an uploaded resume.

    Uploads have their own, lower rate limit keyed by ``upload:<ip>``. Only
    plain-text resumes are parsed; PDF and Word files are validated and then
    answered with a "coming soon" payload.
    """
    ip = get_client_ip(request)
    config = guardrail.config

    admission = await guardrail.admit(
        build_guardrail_request(request, identifier=f"upload:{ip}"),
        max_requests=config.upload_max_requests,
        max_payload_bytes=config.max_file_size_bytes + MULTIPART_OVERHEAD_BYTES,
    )
    if not admission.valid:
        return rejection_response(admission)

    form = await request.form(max_files=1, max_fields=10)
    try:
        upload = form.get(UPLOAD_FIELD)
        if not isinstance(upload, UploadFile):
            return _error(400, "malformed", "No file provided")

        data = await upload.read()
        filename = upload.filename or ""

        validation = validate_file_upload(
            filename, upload.content_type, len(data), config.max_file_size_bytes
        )
        if not validation.valid:
            _reject_file(guardrail, ip, upload, len(data), validation.error)
            return _error(400, "file_rejected", validation.error)

        if not has_valid_file_signature(data, filename):
            _reject_file(guardrail, ip, upload, len(data), "Invalid file signature")
            return _error(400, "file_rejected", CORRUPT_FILE_MESSAGE)

        if not is_plain_text(filename, upload.content_type):
            return _empty_result(UNSUPPORTED_FORMAT_MESSAGE)

        text = decode_text(data)
        if text is None:
            _reject_file(guardrail, ip, upload, len(data), "Not valid UTF-8 text")
            return _error(400, "file_rejected", CORRUPT_FILE_MESSAGE)
    finally:
        await form.close()

    screened = guardrail.screen_document(text, identifier=ip)
    if not screened.valid:
        if screened.reason == "sensitive_info":
            return _empty_result(screened.error)
        return _error(400, screened.category.value, screened.error)

    content = await provider.generate(
        RESUME_SYSTEM_PROMPT,
        create_resume_parse_prompt(screened.text),
        model=settings.openrouter_model,
        temperature=0.3,
        stop=RESUME_STOP_SEQUENCES,
    )

    if not guardrail.screen_generated_output(content).valid:
        raise UnsafeGenerationError()

    extracted = parse_extraction(content)
    if extracted is None:
        raise ProviderError("AI returned invalid format", provider=provider.name)

    sanitized = sanitize_extracted_data(extracted)
    confidence = calculate_confidence(sanitized)
    return {
        "success": True,
        "extractedData": sanitized,
        "confidence": confidence,
        "message": (
            "Some information couldn't be extracted. Please review and complete."
            if confidence < LOW_CONFIDENCE_THRESHOLD
            else "Resume parsed successfully!"
        ),
    }
