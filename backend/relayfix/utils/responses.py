from __future__ import annotations
"""Structured rejection bodies, same shape as the app-wide error handler."""
from typing import Optional

# Expected, user-facing outcomes -> HTTP status
REJECTION_HTTP_STATUS = {
    'MALFORMED_TOKEN': 400,
    'RELAY_MISMATCH': 403,
    'NOT_FOUND': 404,
    'EXPIRED': 410,
    'ALREADY_USED': 409,
    'ILLEGAL_TRANSITION': 409,
}


def rejection_response(code: str, detail: Optional[str], **extra):
    status = REJECTION_HTTP_STATUS.get(code, 400)
    body = {'error': {'status': status, 'title': code, 'detail': detail}}
    body.update(extra)
    return body, status

__all__ = ['REJECTION_HTTP_STATUS', 'rejection_response']
