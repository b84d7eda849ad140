"""In-process user store for development and tests (fallback when Postgres is not configured)."""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from secretshare.errors import DuplicateUsername
from secretshare.store.base import User, check_federated_field, new_user_id


class MemoryUserStore:
    """Dict-backed store compatible with PostgresUserStore. One lock serializes all access."""

    def __init__(self) -> None:
        self._users: Dict[str, User] = {}
        self._lock = threading.Lock()

    def open(self) -> None:
        return None

    def close(self) -> None:
        return None

    def create_local_user(self, username: str, password_hash: str, salt: str) -> User:
        with self._lock:
            if any(u.username == username for u in self._users.values()):
                raise DuplicateUsername(username)
            user = User(id=new_user_id(), username=username, password_hash=password_hash, salt=salt)
            self._users[user.id] = user
            return replace(user)

    def get_by_id(self, user_id: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return replace(user) if user else None

    def get_by_username(self, username: str) -> Optional[User]:
        with self._lock:
            for user in self._users.values():
                if user.username == username:
                    return replace(user)
            return None

    def find_or_create(self, id_field: str, value: str) -> Tuple[User, bool]:
        check_federated_field(id_field)
        with self._lock:
            for user in self._users.values():
                if getattr(user, id_field) == value:
                    return replace(user), False
            user = User(id=new_user_id(), **{id_field: value})
            self._users[user.id] = user
            return replace(user), True

    def set_secret(self, user_id: str, secret: str) -> bool:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return False
            user.secret = secret
            return True

    def list_with_secrets(self) -> List[User]:
        with self._lock:
            found = [replace(u) for u in self._users.values() if u.secret is not None]
        return sorted(found, key=lambda u: u.created_at)
