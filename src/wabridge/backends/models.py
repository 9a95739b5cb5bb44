"""Model shorthand resolution."""

from __future__ import annotations

from typing import Dict, Optional

DEFAULT_MODEL = "claude-sonnet-4-20250514"

MODEL_SHORTHANDS: Dict[str, str] = {
    "opus": "claude-opus-4-5-20251101",
    "sonnet": "claude-sonnet-4-5-20250929",
    "haiku": "claude-haiku-4-5-20251001",
    "opus-4.5": "claude-opus-4-5-20251101",
    "opus-4.1": "claude-opus-4-1-20250805",
    "opus-4": "claude-opus-4-20250514",
    "sonnet-4.5": "claude-sonnet-4-5-20250929",
    "sonnet-4": "claude-sonnet-4-20250514",
    "haiku-4.5": "claude-haiku-4-5-20251001",
    "haiku-3.5": "claude-3-5-haiku-20241022",
}


def resolve_model_shorthand(value: str) -> Optional[str]:
    """Return a full model id for *value*, or None if it is not recognized."""
    key = value.strip().lower()
    if key in MODEL_SHORTHANDS:
        return MODEL_SHORTHANDS[key]
    if key.startswith("claude-"):
        return value.strip()
    return None
