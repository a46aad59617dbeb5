"""Version token issuers for optimistic concurrency."""

import itertools
import secrets
from functools import lru_cache
from threading import Lock
from typing import Protocol

from taskmaster.config import VersionTokenScheme, settings


class VersionTokenIssuer(Protocol):
    """Produces a fresh token for every successful task write."""

    def issue_new_token(self) -> bytes:
        ...


class RandomTokenIssuer:
    """Random bytes; collisions are negligible at 16 bytes and above."""

    def __init__(self, size: int = 16):
        if size < 1:
            raise ValueError("Token size must be positive")
        self.size = size

    def issue_new_token(self) -> bytes:
        return secrets.token_bytes(self.size)


class CounterTokenIssuer:
    """
    Monotonic 8-byte big-endian counter.

    Only unique within one process lifetime; meant for tests and single-node
    development where readable tokens help.
    """

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)
        self._lock = Lock()

    def issue_new_token(self) -> bytes:
        with self._lock:
            value = next(self._counter)
        return value.to_bytes(8, "big")


def get_token_issuer() -> VersionTokenIssuer:
    """Return the process-wide issuer selected in settings."""
    return _issuer_for(settings.version_token_scheme, settings.version_token_bytes)


@lru_cache(maxsize=None)
def _issuer_for(scheme: VersionTokenScheme, size: int) -> VersionTokenIssuer:
    if scheme == VersionTokenScheme.COUNTER:
        return CounterTokenIssuer()
    return RandomTokenIssuer(size)
