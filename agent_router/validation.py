"""Validators for routing identifiers and model strings.

Agent and workflow ids are UUID v4 strings. Model strings have the shape
``provider,modelName`` and must never carry something that looks like a
credential; they are checked when configuration is written, not when it is
read back during routing.
"""

import re
from typing import Any, List, Pattern

# Canonical 8-4-4-4-12 grouping, version nibble 4, RFC 4122 variant
UUID_V4_PATTERN = r"[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}"
UUID_V4_REGEX: Pattern[str] = re.compile(rf"^{UUID_V4_PATTERN}$", re.IGNORECASE)

# "openai,gpt-4o", "openrouter,meta-llama/llama-3-70b", ...
MODEL_STRING_REGEX: Pattern[str] = re.compile(r"^[a-z0-9_-]+,[a-z0-9_./-]+$", re.IGNORECASE)

API_KEY_PATTERNS: List[Pattern[str]] = [
    re.compile(r"^sk-[-a-z0-9]+$", re.IGNORECASE),  # OpenAI
    re.compile(r"^sk-proj-[-a-z0-9]+$", re.IGNORECASE),  # OpenAI project keys
    re.compile(r"^pk-[-a-z0-9]+$", re.IGNORECASE),  # Stripe
    re.compile(r"^xox[baprs]-[-a-z0-9]+$", re.IGNORECASE),  # Slack
    re.compile(r"^gh[pousr]_[a-z0-9]{36}$", re.IGNORECASE),  # GitHub tokens
    re.compile(r"^AKIA[0-9A-Z]{16}$", re.IGNORECASE),  # AWS access keys
]

MIN_PART_LENGTH = 2
MAX_PROVIDER_LENGTH = 50
MAX_MODEL_NAME_LENGTH = 100


def is_valid_uuid_v4(value: Any) -> bool:
    """Return True if ``value`` is a UUID v4 string (any hex case)."""
    return isinstance(value, str) and UUID_V4_REGEX.match(value) is not None


# Agents and workflows share the same id format
is_valid_agent_id = is_valid_uuid_v4
is_valid_workflow_id = is_valid_uuid_v4


def looks_like_api_key(value: str) -> bool:
    """Check a single token against known credential formats."""
    return any(pattern.match(value) for pattern in API_KEY_PATTERNS)


def is_valid_model_string(model: Any) -> bool:
    """Validate a ``provider,modelName`` string.

    Rejects anything that does not match the expected shape, parts that are
    too short or too long, and values that resemble secrets.
    """
    if not isinstance(model, str):
        return False

    if not MODEL_STRING_REGEX.match(model):
        return False

    parts = model.split(",")
    if len(parts) != 2:
        return False

    provider, model_name = parts
    if looks_like_api_key(provider) or looks_like_api_key(model_name):
        return False

    lowered = model.lower()
    if "key" in lowered or "secret" in lowered:
        return False

    if not MIN_PART_LENGTH <= len(provider) <= MAX_PROVIDER_LENGTH:
        return False
    if not MIN_PART_LENGTH <= len(model_name) <= MAX_MODEL_NAME_LENGTH:
        return False

    return True


def split_model_string(model: str) -> tuple:
    """Split ``provider,modelName`` into its two parts."""
    provider, _, model_name = model.partition(",")
    return provider, model_name
