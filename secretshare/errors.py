from __future__ import annotations


class SecretShareError(Exception):
    """Base class for application errors."""


class AuthError(SecretShareError):
    """Authentication failed; callers redirect back to the matching form."""


class DuplicateUsername(AuthError):
    def __init__(self, username: str) -> None:
        super().__init__(f"Username already registered: {username}")
        self.username = username


class InvalidCredentials(AuthError):
    """Unknown username or wrong password (deliberately indistinguishable)."""


class AuthorizationFailed(AuthError):
    """Provider denied the request, or the code exchange / profile fetch failed."""

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(f"{provider} authorization failed: {reason}")
        self.provider = provider
        self.reason = reason


class PersistenceError(SecretShareError):
    """The user store is unreachable or a write failed."""


class SessionDecodeError(SecretShareError):
    """Session cookie is malformed, tampered with, or expired."""
