"""Prompt sanitization applied at the boundary before any adapter sees a prompt."""

import re
from typing import Optional

MAX_PROMPT_LENGTH = 500

_EMAIL = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_PHONE = re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b")
_CARD = re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b")


def sanitize_prompt(prompt: str) -> str:
    """Mask emails, phone numbers and card numbers; cap length at 500 chars."""
    sanitized = prompt.strip()
    sanitized = _EMAIL.sub("[EMAIL]", sanitized)
    sanitized = _PHONE.sub("[PHONE]", sanitized)
    sanitized = _CARD.sub("[CARD]", sanitized)
    if len(sanitized) > MAX_PROMPT_LENGTH:
        sanitized = sanitized[:MAX_PROMPT_LENGTH] + "..."
    return sanitized


def sanitize_optional(prompt: Optional[str]) -> Optional[str]:
    return sanitize_prompt(prompt) if prompt else None
