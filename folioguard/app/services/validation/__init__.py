"""Schema validation package.

- schemas.py: Request schemas
- validator.py: validate() and error formatting
"""

from folioguard.app.services.validation.schemas import (
    EMAIL_PATTERN,
    URL_PATTERN,
    ExperienceInput,
    FormModel,
    PortfolioInput,
    ProjectInput,
)
from folioguard.app.services.validation.validator import (
    REQUIRED_MESSAGE,
    SchemaValidationResult,
    collect_errors,
    format_path,
    friendly_message,
    validate,
)

__all__ = [
    "EMAIL_PATTERN",
    "URL_PATTERN",
    "ExperienceInput",
    "FormModel",
    "PortfolioInput",
    "ProjectInput",
    "REQUIRED_MESSAGE",
    "SchemaValidationResult",
    "collect_errors",
    "format_path",
    "friendly_message",
    "validate",
]
