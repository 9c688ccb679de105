from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .enums import Role
from .exceptions import AuthorizationError


@dataclass(frozen=True)
class AuthContext:
    """Verified actor handed in by the authentication layer.

    The core never parses credentials; it only checks the role it is given.
    """

    user_id: int
    role: Role

    def require(self, allowed: Iterable[Role]) -> None:
        if self.role not in frozenset(allowed):
            raise AuthorizationError("Insufficient permissions")
