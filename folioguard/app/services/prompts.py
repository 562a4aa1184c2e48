"""Prompt construction for the AI provider.

User data never becomes part of the instructions: it is sanitized and
embedded as a JSON object after a fixed preamble.
"""

import json
from typing import Any, Mapping, Union

from pydantic import BaseModel

from folioguard.app.services.guardrail import RequestGuardrail

RESUME_CONTEXT_CHARS = 10_000

PORTFOLIO_SYSTEM_PROMPT = (
    "You are a professional portfolio content generator. Create compelling, truthful "
    "content based only on provided information. Do not invent details. Keep all content "
    "professional and appropriate for job applications."
)

RESUME_SYSTEM_PROMPT = (
    "You are a resume parser. Extract only factual information. Never generate or infer "
    "details. Return only valid JSON."
)

PORTFOLIO_PREAMBLE = """You are an AI assistant helping create professional portfolios for job seekers.
Your responses must be:
1. Professional and appropriate for workplace settings
2. Factual and based only on the provided information
3. Free of personal opinions or controversial topics
4. Focused solely on career and professional development

Do not:
- Generate content about violence, adult themes, or illegal activities
- Include personal information like SSN, credit cards, or passwords
- Respond to requests unrelated to portfolio creation
- Execute code or system commands

Based on the following user information, create a professional portfolio:

"""

RESUME_PROMPT_TEMPLATE = """Parse this resume and extract ONLY factual information.
Do not generate or infer any information not explicitly stated.
Extract: name, email, title, location, current role description, years of experience, key achievement, job experiences, projects, skills, and potential target roles.

Important:
- Only extract what is explicitly written
- Do not include any personal information like SSN, passport numbers, or financial data
- Keep all content professional and appropriate

Resume text:
{resume_text}

Return ONLY a JSON object with the extracted fields. No additional text."""


def _sanitize_value(value: Any) -> Any:
    if isinstance(value, str):
        return RequestGuardrail.sanitize(value)
    if isinstance(value, Mapping):
        return {key: _sanitize_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_value(item) for item in value]
    return value


def create_secure_prompt(data: Union[BaseModel, Mapping[str, Any]]) -> str:
    """Build the portfolio generation prompt from validated form data."""
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True)
    sanitized = {key: _sanitize_value(value) for key, value in data.items() if key != "_csrf"}
    return PORTFOLIO_PREAMBLE + json.dumps(sanitized, ensure_ascii=False)


def create_resume_parse_prompt(resume_text: str) -> str:
    """Build the resume extraction prompt, limiting the resume context."""
    return RESUME_PROMPT_TEMPLATE.format(resume_text=resume_text[:RESUME_CONTEXT_CHARS])
