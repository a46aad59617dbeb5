"""Authentication context helpers."""

from dataclasses import dataclass
from typing import Literal, Optional


@dataclass(frozen=True)
class CurrentUser:
    """Identity for the current request, as supplied by the identity provider."""

    is_authenticated: bool
    owner_id: Optional[str]
    auth_type: Literal["api_key", "insecure_dev", "anonymous"] = "api_key"

    @classmethod
    def anonymous(cls) -> "CurrentUser":
        return cls(is_authenticated=False, owner_id=None, auth_type="anonymous")

    @classmethod
    def for_owner(cls, owner_id: str) -> "CurrentUser":
        return cls(is_authenticated=True, owner_id=owner_id)
