"""Optimistic concurrency guard for task mutations."""

import hmac
from enum import Enum

from taskmaster.engine.errors import ConcurrencyConflict


class GuardResult(str, Enum):
    PASS = "pass"
    CONFLICT = "conflict"


def check_version(supplied: bytes | None, current: bytes | None) -> GuardResult:
    """
    Compare a caller's version token with the stored one.

    No token means the caller opted out of the check (last write wins).
    Otherwise only an exact byte-for-byte match passes. The guard never
    issues or alters tokens.
    """
    if supplied is None:
        return GuardResult.PASS
    if hmac.compare_digest(bytes(supplied), bytes(current or b"")):
        return GuardResult.PASS
    return GuardResult.CONFLICT


def ensure_version(task_id: str, supplied: bytes | None, current: bytes | None) -> None:
    """Raise ConcurrencyConflict unless the guard passes."""
    if check_version(supplied, current) is GuardResult.CONFLICT:
        raise ConcurrencyConflict(task_id)
