from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Protocol, Tuple

# Columns a federated login may be resolved by.
FEDERATED_ID_FIELDS = ("google_id", "facebook_id")


def new_user_id() -> str:
    return uuid.uuid4().hex


@dataclass
class User:
    """A user record: local credentials and/or federated identifiers, plus an optional secret."""

    id: str
    username: Optional[str] = None
    password_hash: Optional[str] = None
    salt: Optional[str] = None
    google_id: Optional[str] = None
    facebook_id: Optional[str] = None
    secret: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class UserStore(Protocol):
    """
    Persistence interface for user records.

    Implementations raise PersistenceError for backend failures and
    DuplicateUsername from create_local_user.
    """

    def open(self) -> None:
        """Acquire backend resources (called at application startup)."""

    def close(self) -> None:
        """Release backend resources (called at application shutdown)."""

    def create_local_user(self, username: str, password_hash: str, salt: str) -> User:
        """Insert a local account; raise DuplicateUsername if the username is taken."""

    def get_by_id(self, user_id: str) -> Optional[User]: ...

    def get_by_username(self, username: str) -> Optional[User]: ...

    def find_or_create(self, id_field: str, value: str) -> Tuple[User, bool]:
        """
        Atomically return the user whose `id_field` equals `value`, creating one if absent.

        Returns (user, created). On creation only `id_field` is populated.
        """

    def set_secret(self, user_id: str, secret: str) -> bool:
        """Overwrite the user's secret. Returns False if the user does not exist."""

    def list_with_secrets(self) -> List[User]:
        """All users whose secret is not null, oldest first."""


def check_federated_field(id_field: str) -> str:
    if id_field not in FEDERATED_ID_FIELDS:
        raise ValueError(f"Unsupported federated id field: {id_field}")
    return id_field
