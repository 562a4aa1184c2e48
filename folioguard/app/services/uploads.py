"""Resume upload validation."""

from typing import Optional

from folioguard.app.services.results import ValidationResult

ALLOWED_CONTENT_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
})
ALLOWED_EXTENSIONS = (".pdf", ".doc", ".docx", ".txt")

# Leading bytes per extension; text files have no signature
FILE_SIGNATURES: dict[str, tuple[bytes, ...]] = {
    "pdf": (b"%PDF",),
    "doc": (b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1",),
    "docx": (b"PK\x03\x04",),
    "txt": (),
}


def _extension(filename: str) -> str:
    name = (filename or "").lower()
    return name.rsplit(".", 1)[-1] if "." in name else ""


def validate_file_upload(
    filename: str,
    content_type: Optional[str],
    size: int,
    max_size_bytes: int = 10 * 1024 * 1024,
) -> ValidationResult:
    """Check an upload's size, declared type and extension."""
    if size > max_size_bytes:
        limit_mb = max_size_bytes // (1024 * 1024)
        return ValidationResult.fail(f"File size exceeds {limit_mb}MB limit")

    declared = (content_type or "").split(";", 1)[0].strip().lower()
    if declared not in ALLOWED_CONTENT_TYPES:
        return ValidationResult.fail(
            "Invalid file type. Only PDF, DOC, DOCX, and TXT allowed"
        )

    if not (filename or "").lower().endswith(ALLOWED_EXTENSIONS):
        return ValidationResult.fail("Invalid file extension")

    return ValidationResult.ok()


def has_valid_file_signature(data: bytes, filename: str) -> bool:
    """Check that the file content starts with the magic number for its extension."""
    ext = _extension(filename)
    if ext not in FILE_SIGNATURES:
        return False
    signatures = FILE_SIGNATURES[ext]
    if not signatures:
        return True
    return any(data.startswith(signature) for signature in signatures)


def is_plain_text(filename: str, content_type: Optional[str]) -> bool:
    declared = (content_type or "").split(";", 1)[0].strip().lower()
    return declared == "text/plain" and _extension(filename) == "txt"


def decode_text(data: bytes) -> Optional[str]:
    """Decode an uploaded text file, or None if it is not UTF-8."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return None
