from __future__ import annotations

import logging

from secretshare.config import AppConfig
from secretshare.store.base import User, UserStore

logger = logging.getLogger(__name__)


def build_store(cfg: AppConfig) -> UserStore:
    """
    Build the user store selected by configuration.

    Postgres is used when STORE_BACKEND=postgres (or a DSN is configured and no
    backend was chosen explicitly); otherwise an in-process memory store.
    """
    if cfg.store_backend == "postgres":
        from secretshare.store.postgres_store import PostgresUserStore

        if not cfg.postgres_dsn:
            raise ValueError("STORE_BACKEND=postgres requires POSTGRES_DSN or POSTGRES_* settings")
        return PostgresUserStore(dsn=cfg.postgres_dsn)

    from secretshare.store.memory_store import MemoryUserStore

    logger.info("Using in-memory user store (data is lost on restart)")
    return MemoryUserStore()


__all__ = ["User", "UserStore", "build_store"]
