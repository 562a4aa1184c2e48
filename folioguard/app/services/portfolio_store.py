"""Portfolio persistence.

Generated portfolios are stored under a URL slug together with the hash of
their access PIN. The store is an injected collaborator; the in-memory
implementation serves single-process deployments and tests.
"""

import asyncio
import re
import secrets
import string
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from folioguard.app.core.logging import get_logger
from folioguard.app.core.security import hash_pin, verify_pin
from folioguard.app.exceptions import (
    EditLimitReachedError,
    GuardrailInternalError,
    InvalidPinError,
    PortfolioNotFoundError,
)

logger = get_logger(__name__)

SLUG_BASE_MAX_LENGTH = 50
SLUG_SUFFIX_LENGTH = 6
_SLUG_ALPHABET = string.ascii_lowercase + string.digits
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

MAX_SLUG_ATTEMPTS = 5
MAX_EDITS = 5


def generate_slug(name: str) -> str:
    """URL-safe slug: lower-cased name, dashes for other characters, random suffix."""
    base = _NON_ALNUM_RE.sub("-", (name or "").lower()).strip("-")[:SLUG_BASE_MAX_LENGTH]
    suffix = "".join(secrets.choice(_SLUG_ALPHABET) for _ in range(SLUG_SUFFIX_LENGTH))
    return f"{base}-{suffix}" if base else suffix


@dataclass
class PortfolioRecord:
    """A stored portfolio."""
    slug: str
    name: str
    email: str
    pin_hash: str
    portfolio_data: Dict[str, Any] = field(default_factory=dict)
    generated_content: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None
    view_count: int = 0
    edit_count: int = 0

    def to_public_dict(self) -> Dict[str, Any]:
        """Everything except the PIN hash."""
        return {
            "slug": self.slug,
            "name": self.name,
            "email": self.email,
            "portfolio_data": self.portfolio_data,
            "generated_content": self.generated_content,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "view_count": self.view_count,
            "edit_count": self.edit_count,
        }


class PortfolioStore(ABC):
    """Abstract base class for portfolio storage."""

    @abstractmethod
    async def add(self, record: PortfolioRecord) -> bool:
        """Insert a record. Returns False if the slug is taken."""

    @abstractmethod
    async def get(self, slug: str) -> Optional[PortfolioRecord]:
        """Fetch a record by slug, or None. No side effects."""

    @abstractmethod
    async def record_view(self, slug: str) -> Optional[PortfolioRecord]:
        """Count a public view and return the record, or None."""

    @abstractmethod
    async def update(
        self,
        slug: str,
        portfolio_data: Dict[str, Any],
        generated_content: Optional[str] = None,
    ) -> Optional[PortfolioRecord]:
        """Replace the data (and content, if given) and count an edit.

        Returns None if the slug is unknown.
        """

    @abstractmethod
    async def delete(self, slug: str) -> bool:
        """Remove a record. Returns False if the slug is unknown."""


class InMemoryPortfolioStore(PortfolioStore):
    """Process-local portfolio store."""

    def __init__(self):
        self._records: Dict[str, PortfolioRecord] = {}
        self._lock = asyncio.Lock()

    async def add(self, record: PortfolioRecord) -> bool:
        async with self._lock:
            if record.slug in self._records:
                return False
            self._records[record.slug] = record
            return True

    async def get(self, slug: str) -> Optional[PortfolioRecord]:
        async with self._lock:
            return self._records.get(slug)

    async def record_view(self, slug: str) -> Optional[PortfolioRecord]:
        async with self._lock:
            record = self._records.get(slug)
            if record is not None:
                record.view_count += 1
            return record

    async def update(
        self,
        slug: str,
        portfolio_data: Dict[str, Any],
        generated_content: Optional[str] = None,
    ) -> Optional[PortfolioRecord]:
        async with self._lock:
            record = self._records.get(slug)
            if record is None:
                return None
            record.portfolio_data = portfolio_data
            if generated_content is not None:
                record.generated_content = generated_content
            record.edit_count += 1
            record.updated_at = datetime.now(timezone.utc)
            return record

    async def delete(self, slug: str) -> bool:
        async with self._lock:
            return self._records.pop(slug, None) is not None


async def create_portfolio(
    store: PortfolioStore,
    data: Dict[str, Any],
    pin: str,
    generated_content: str,
    pin_hash_algorithm: Optional[str] = None,
) -> PortfolioRecord:
    """Hash the PIN and store a new portfolio under a fresh slug.

    Raises:
        GuardrailInternalError: If no free slug is found or hashing fails
    """
    pin_hash = hash_pin(pin, pin_hash_algorithm)
    name = str(data.get("name", ""))

    for _ in range(MAX_SLUG_ATTEMPTS):
        record = PortfolioRecord(
            slug=generate_slug(name),
            name=name,
            email=str(data.get("email", "")),
            pin_hash=pin_hash,
            portfolio_data=data,
            generated_content=generated_content,
        )
        if await store.add(record):
            logger.info("Portfolio created", extra={"slug": record.slug})
            return record

    raise GuardrailInternalError("Could not allocate a unique portfolio slug")


async def verify_portfolio_pin(store: PortfolioStore, slug: str, pin: str) -> PortfolioRecord:
    """Return the portfolio if ``pin`` opens it.

    Raises:
        PortfolioNotFoundError: Unknown slug
        InvalidPinError: Wrong PIN
    """
    record = await store.get(slug)
    if record is None:
        raise PortfolioNotFoundError(slug)
    if not verify_pin(pin, record.pin_hash):
        raise InvalidPinError()
    return record


async def view_portfolio(store: PortfolioStore, slug: str) -> PortfolioRecord:
    """Return a portfolio for public display, counting the view.

    Raises:
        PortfolioNotFoundError: Unknown slug
    """
    record = await store.record_view(slug)
    if record is None:
        raise PortfolioNotFoundError(slug)
    return record


async def update_portfolio(
    store: PortfolioStore,
    slug: str,
    pin: str,
    data: Dict[str, Any],
    generated_content: Optional[str] = None,
) -> PortfolioRecord:
    """Replace a portfolio's data after checking its PIN.

    Each portfolio can be edited at most MAX_EDITS times.

    Raises:
        PortfolioNotFoundError: Unknown slug
        InvalidPinError: Wrong PIN
        EditLimitReachedError: No edits left
    """
    record = await verify_portfolio_pin(store, slug, pin)
    if record.edit_count >= MAX_EDITS:
        raise EditLimitReachedError(MAX_EDITS)

    updated = await store.update(slug, data, generated_content)
    if updated is None:
        raise PortfolioNotFoundError(slug)
    logger.info("Portfolio updated", extra={"slug": slug, "edit_count": updated.edit_count})
    return updated


async def delete_portfolio(store: PortfolioStore, slug: str, pin: str) -> None:
    """Delete a portfolio after checking its PIN.

    Raises:
        PortfolioNotFoundError: Unknown slug
        InvalidPinError: Wrong PIN
    """
    await verify_portfolio_pin(store, slug, pin)
    if not await store.delete(slug):
        raise PortfolioNotFoundError(slug)
    logger.info("Portfolio deleted", extra={"slug": slug})


async def get_edit_info(store: PortfolioStore, slug: str, pin: str) -> Dict[str, Any]:
    """Edit allowance of a portfolio, after checking its PIN."""
    record = await verify_portfolio_pin(store, slug, pin)
    return {
        "name": record.name,
        "email": record.email,
        "editCount": record.edit_count,
        "remainingEdits": max(0, MAX_EDITS - record.edit_count),
        "maxEdits": MAX_EDITS,
    }


_portfolio_store: Optional[PortfolioStore] = None


def get_portfolio_store() -> PortfolioStore:
    """Get the process-wide portfolio store (created on first use)."""
    global _portfolio_store
    if _portfolio_store is None:
        _portfolio_store = InMemoryPortfolioStore()
    return _portfolio_store


def reset_portfolio_store(store: Optional[PortfolioStore] = None) -> None:
    """Replace the process-wide portfolio store (for testing)."""
    global _portfolio_store
    _portfolio_store = store
