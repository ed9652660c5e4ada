"""Redaction module to mask secrets in outputs and logs."""
import re
from typing import Any, Dict

REDACTED = "[REDACTED]"

SECRET_KEYS = (
    "authorization",
    "api_key",
    "apikey",
    "scraper_api_key",
    "supabase_service_role",
    "service_role",
    "access_token",
    "refresh_token",
    "token",
)

_PATTERNS = [
    (r"(Bearer\s+)[A-Za-z0-9._~+/=-]+", r"\1" + REDACTED),
    (r"(SCRAPER_API_KEY\s*[:=]\s*)\S+", r"\1" + REDACTED),
    (r"(SUPABASE_SERVICE_ROLE\s*[:=]\s*)\S+", r"\1" + REDACTED),
    (r"(apikey[\"']?\s*[:=]\s*[\"']?)[^\"'\s,&]+", r"\1" + REDACTED),
    # Supabase keys are JWTs
    (r"eyJ[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_-]+", REDACTED),
]


def redact_string(text: str) -> str:
    """Redact secrets from a string."""
    if not text:
        return text

    result = text
    for pattern, replacement in _PATTERNS:
        result = re.sub(pattern, replacement, result, flags=re.IGNORECASE)
    return result


def redact_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively redact secrets from a dictionary."""
    if not isinstance(data, dict):
        return data

    redacted = {}
    for key, value in data.items():
        if isinstance(key, str) and key.lower() in SECRET_KEYS:
            redacted[key] = REDACTED
        else:
            redacted[key] = redact_json(value)
    return redacted


def redact_json(data: Any) -> Any:
    """Redact secrets from JSON-serializable data."""
    if isinstance(data, dict):
        return redact_dict(data)
    elif isinstance(data, (list, tuple)):
        return [redact_json(item) for item in data]
    elif isinstance(data, str):
        return redact_string(data)
    else:
        return data
