from __future__ import annotations
"""Reusable validation helpers for request payloads and hand-off input."""
from typing import Any, Iterable
from flask import abort
from relayfix.config.handoff import CODE_ALPHABET, CODE_LENGTH


def normalize_code(raw: Any) -> str:
    """Canonical (upper-case, trimmed) form of a typed hand-off code.

    Returns '' when the input cannot be a code; callers treat that as a code
    that does not exist.
    """
    if not isinstance(raw, str):
        return ''
    code = raw.strip().upper()
    if len(code) != CODE_LENGTH or any(c not in CODE_ALPHABET for c in code):
        return ''
    return code


def require_fields(data: dict, fields: Iterable[str]) -> dict:
    """Abort 400 unless every field is present and non-empty."""
    missing = [f for f in fields if data.get(f) in (None, '')]
    if missing:
        abort(400, description=f"{', '.join(missing)} required")
    return data


def optional_int(data: dict, field: str):
    value = data.get(field)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        abort(400, description=f"{field} must be int")

__all__ = ['normalize_code', 'require_fields', 'optional_int']
