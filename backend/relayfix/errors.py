from __future__ import annotations
"""Exception types shared by the hand-off services.

Only PersistenceError is meant to escape a service call. MalformedToken and
IllegalTransition are raised internally and turned into outcome values at the
validator / state machine boundary.
"""


class PersistenceError(Exception):
    """Store unreachable, timed out or otherwise failing."""


class MalformedToken(Exception):
    """Token could not be decrypted or does not carry a valid payload."""


class IllegalTransition(Exception):
    def __init__(self, current: str, target: str):
        super().__init__(f"Invalid status transition {current} -> {target}")
        self.current = current
        self.target = target


__all__ = ['PersistenceError', 'MalformedToken', 'IllegalTransition']
