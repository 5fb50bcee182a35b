"""Mask bot tokens, webhook URLs, passwords and invitation codes before they reach a log line."""

from __future__ import annotations

import hashlib
import re
from typing import Any

__all__ = ["mask_secret", "sanitize_text"]

# Whole-match secrets: the entire match is replaced.
_WHOLE_PATTERNS = (
    re.compile(r"https://(?:ptb\.|canary\.)?discord(?:app)?\.com/api/webhooks/\d+/\S+", re.I),
    re.compile(r"[A-Za-z0-9_-]{24}\.[A-Za-z0-9_-]{6}\.[A-Za-z0-9_-]{27,}"),
)

# ``key=value`` / ``key: value`` pairs: only the value is replaced.
_FIELD_PATTERN = re.compile(
    r"(?P<key>\b\w*(?:token|secret|password|code)\s*[=:]\s*)(?P<value>[^\s,;]+)",
    re.IGNORECASE,
)


def mask_secret(text: str) -> str:
    """Return ``***`` plus a short stable digest so equal secrets stay correlatable."""

    digest = hashlib.sha1(str(text).encode("utf-8", "ignore")).hexdigest()
    return f"***{digest[:4]}"


def sanitize_text(value: Any) -> Any:
    if not value:
        return value
    text = str(value)
    for pattern in _WHOLE_PATTERNS:
        text = pattern.sub(lambda match: mask_secret(match.group(0)), text)
    return _FIELD_PATTERN.sub(
        lambda match: match.group("key") + mask_secret(match.group("value")), text
    )
