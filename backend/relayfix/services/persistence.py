from __future__ import annotations
"""Session helpers that translate store faults into PersistenceError.

Services accept an optional session (tests pass their own); without one they
use the request-scoped session from get_db().
"""
from contextlib import contextmanager
from sqlalchemy.exc import SQLAlchemyError
from relayfix.errors import PersistenceError


def resolve_session(session=None):
    if session is not None:
        return session
    from relayfix import get_db
    return get_db()


@contextmanager
def store_call(session, action: str):
    """Wrap a block of store access; roll back and raise PersistenceError on failure."""
    try:
        yield session
    except SQLAlchemyError as e:
        try:
            session.rollback()
        except SQLAlchemyError:
            pass  # connection already gone; the original fault is what matters
        raise PersistenceError(f"{action} failed: {e.__class__.__name__}") from e

__all__ = ['resolve_session', 'store_call']
