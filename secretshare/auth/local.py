from __future__ import annotations

import base64
import hashlib
import logging

import bcrypt

from secretshare.errors import InvalidCredentials
from secretshare.store.base import User, UserStore

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12


def generate_salt() -> str:
    return bcrypt.gensalt(rounds=BCRYPT_ROUNDS).decode("utf-8")


def _bcrypt_input(password: str) -> bytes:
    # bcrypt only takes 72 bytes; a base64 sha256 digest is 44.
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())


def hash_password(password: str, salt: str) -> str:
    """
    Hash password with bcrypt using the given salt.

    The password is pre-hashed with SHA-256, so passwords of any length are
    accepted and every byte counts.

    Args:
        password: Plain text password
        salt: Salt produced by generate_salt()

    Returns:
        Bcrypt hash string
    """
    return bcrypt.hashpw(_bcrypt_input(password), salt.encode("utf-8")).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash with constant-time comparison.

    Args:
        password: Plain text password
        password_hash: Bcrypt hash

    Returns:
        True if password matches, False otherwise
    """
    try:
        return bcrypt.checkpw(_bcrypt_input(password), password_hash.encode("utf-8"))
    except ValueError:
        # Invalid hash format
        return False


def register(store: UserStore, username: str, password: str) -> User:
    """
    Create a local account.

    Raises:
        DuplicateUsername: If the username is already registered (existing record is untouched)
        PersistenceError: If the store fails
    """
    salt = generate_salt()
    user = store.create_local_user(username, hash_password(password, salt), salt)
    logger.info("Registered local user id=%s", user.id)
    return user


def login(store: UserStore, username: str, password: str) -> User:
    """
    Authenticate a local user with username/password.

    Unknown usernames and wrong passwords raise the same InvalidCredentials;
    only the log tells them apart.
    """
    user = store.get_by_username(username)
    if user is None or not user.password_hash:
        logger.info("Local login failed: unknown username")
        raise InvalidCredentials()

    if not verify_password(password, user.password_hash):
        logger.info("Local login failed: password mismatch for user id=%s", user.id)
        raise InvalidCredentials()

    return user
