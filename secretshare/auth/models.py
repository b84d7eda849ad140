from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AuthUser:
    """Identity held in a session (local or federated login)."""

    id: str
    provider: str  # local|google|facebook
    username: Optional[str] = None  # For local auth
    picture: Optional[str] = None
