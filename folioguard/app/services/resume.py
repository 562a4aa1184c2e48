"""Shaping of resume data extracted by the AI provider.

The provider is asked for JSON but its output is untrusted: every field is
re-sanitized and truncated before it is returned to the form.
"""

import json
from typing import Any, Dict, Optional

from folioguard.app.services.guardrail import RequestGuardrail

STRING_FIELDS = (
    "name", "email", "title", "location", "currentRole",
    "yearsExperience", "keyAchievement", "uniqueValue",
)
LIST_FIELDS = ("projects", "technicalSkills", "targetRoles")

REQUIRED_FIELDS = ("name", "email", "experiences")
IMPORTANT_FIELDS = ("title", "currentRole", "technicalSkills")

LOW_CONFIDENCE_THRESHOLD = 0.8


def empty_resume_data() -> Dict[str, Any]:
    """Form defaults returned when nothing could be extracted."""
    return {
        "name": "",
        "email": "",
        "title": "",
        "location": "",
        "currentRole": "",
        "yearsExperience": "0-2",
        "keyAchievement": "",
        "experiences": [],
        "projects": [],
        "technicalSkills": [],
        "targetRoles": [],
        "linkedin": "",
        "github": "",
    }


def _clean(value: Any, max_length: int) -> str:
    if not isinstance(value, str):
        return ""
    return RequestGuardrail.sanitize(value)[:max_length]


def sanitize_extracted_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Sanitize and truncate every field of the provider's extraction."""
    sanitized: Dict[str, Any] = {
        field: _clean(data.get(field), 1000) for field in STRING_FIELDS
    }

    experiences = data.get("experiences")
    sanitized["experiences"] = []
    if isinstance(experiences, list):
        for exp in experiences[:10]:
            if not isinstance(exp, dict):
                continue
            achievements = exp.get("achievements")
            sanitized["experiences"].append({
                "company": _clean(exp.get("company"), 100),
                "role": _clean(exp.get("role"), 100),
                "duration": _clean(exp.get("duration"), 50),
                "achievements": [
                    _clean(a, 300) for a in achievements[:5]
                ] if isinstance(achievements, list) else [],
            })

    for field in LIST_FIELDS:
        items = data.get(field)
        sanitized[field] = (
            [_clean(item, 200) for item in items[:20]] if isinstance(items, list) else []
        )

    return sanitized


def calculate_confidence(data: Dict[str, Any]) -> float:
    """Share of key fields present, required fields weighted double."""
    score = 0
    total = 0
    for fields, weight in ((REQUIRED_FIELDS, 2), (IMPORTANT_FIELDS, 1)):
        for field in fields:
            total += weight
            if data.get(field):
                score += weight
    return score / total


def parse_extraction(content: str) -> Optional[Dict[str, Any]]:
    """Decode the provider's JSON answer, tolerating a fenced code block."""
    text = content.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None
