"""Request schemas.

Fields use snake_case names and accept the camelCase keys sent by the web
form. Error locations are reported by field name (``loc_by_alias=False``).
``error_messages`` overrides the generic message for a top-level field and
error type.
"""

import re
from typing import Annotated, ClassVar, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

from folioguard.app.services.screening import contains_inappropriate_content

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
URL_PATTERN = re.compile(
    r"^https?://(www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b"
    r"([-a-zA-Z0-9()@:%_+.~#?&/=]*)$"
)

INAPPROPRIATE_MESSAGE = "Content contains inappropriate language"

YearsExperience = Literal["0-2", "3-5", "6-10", "10+"]

Achievement = Annotated[str, StringConstraints(min_length=10, max_length=300)]
Technology = Annotated[str, StringConstraints(max_length=50)]
Skill = Annotated[str, StringConstraints(min_length=2, max_length=50)]
TargetRole = Annotated[str, StringConstraints(min_length=2, max_length=100)]


class FormModel(BaseModel):
    """Base for schemas fed by the web form."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        loc_by_alias=False,
        extra="ignore",
    )

    error_messages: ClassVar[dict[str, dict[str, str]]] = {}


class ExperienceInput(FormModel):
    company: str = Field(min_length=2, max_length=100)
    role: str = Field(min_length=2, max_length=100)
    duration: str = Field(min_length=3, max_length=50)
    achievements: list[Achievement] = Field(default_factory=list, max_length=5)


class ProjectInput(FormModel):
    name: str = Field(min_length=2, max_length=100)
    description: str = Field(min_length=10, max_length=500)
    technologies: list[Technology] = Field(default_factory=list, max_length=10)
    impact: str = Field(min_length=10, max_length=300)
    link: Optional[str] = None

    @field_validator("link")
    @classmethod
    def validate_link(cls, v: Optional[str]) -> Optional[str]:
        if v and not URL_PATTERN.match(v):
            raise ValueError("Invalid URL")
        return v


class PortfolioInput(FormModel):
    """Career data submitted for portfolio generation."""

    name: str = Field(min_length=2, max_length=100, pattern=r"^[a-zA-Z\s'-]+$")
    title: str = Field(min_length=2, max_length=150, pattern=r"^[a-zA-Z0-9\s&,.-]+$")
    email: str = Field(max_length=255)
    location: str = Field(min_length=2, max_length=100, pattern=r"^[a-zA-Z\s,.-]+$")

    current_role: str = Field(min_length=10, max_length=1000)
    years_experience: YearsExperience
    key_achievement: str = Field(min_length=10, max_length=500)

    experiences: list[ExperienceInput] = Field(min_length=1, max_length=10)
    projects: list[ProjectInput] = Field(default_factory=list, max_length=10)

    technical_skills: list[Skill] = Field(min_length=3, max_length=20)
    target_roles: list[TargetRole] = Field(min_length=1, max_length=5)
    unique_value: str = Field(min_length=20, max_length=500)

    error_messages: ClassVar[dict[str, dict[str, str]]] = {
        "name": {
            "string_too_short": "Name must be at least 2 characters",
            "string_too_long": "Name must be less than 100 characters",
            "string_pattern_mismatch": (
                "Name can only contain letters, spaces, hyphens, and apostrophes"
            ),
        },
        "title": {
            "string_too_short": "Title must be at least 2 characters",
            "string_too_long": "Title must be less than 150 characters",
            "string_pattern_mismatch": "Title contains invalid characters",
        },
        "email": {
            "string_too_long": "Email is too long",
        },
        "location": {
            "string_too_short": "Location must be at least 2 characters",
            "string_too_long": "Location must be less than 100 characters",
            "string_pattern_mismatch": "Location contains invalid characters",
        },
        "current_role": {
            "string_too_short": "Please provide more detail about your role",
            "string_too_long": "Description is too long",
        },
        "key_achievement": {
            "string_too_short": "Please provide more detail",
            "string_too_long": "Achievement description is too long",
        },
    }

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email format")
        return v

    @field_validator("current_role", "key_achievement")
    @classmethod
    def reject_inappropriate_content(cls, v: str) -> str:
        if contains_inappropriate_content(v):
            raise ValueError(INAPPROPRIATE_MESSAGE)
        return v

    @field_validator("projects", mode="before")
    @classmethod
    def default_projects(cls, v):
        return [] if v is None else v
