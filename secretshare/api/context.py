from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from secretshare.auth.session import SessionManager
from secretshare.config import AppConfig, load_app_config
from secretshare.store import UserStore, build_store

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything a request handler needs: config, user store and session manager."""

    config: AppConfig
    store: UserStore
    sessions: SessionManager

    @classmethod
    def from_config(cls, cfg: Optional[AppConfig] = None, *, store: Optional[UserStore] = None) -> "AppContext":
        cfg = cfg or load_app_config()
        return cls(
            config=cfg,
            store=store if store is not None else build_store(cfg),
            sessions=SessionManager(cfg),
        )

    def open(self) -> None:
        self.store.open()
        if not self.sessions.enabled:
            logger.warning("SESSION_SECRET is not set: logins will fail until it is configured")
        logger.info(
            "App context opened: store=%s google=%s facebook=%s base_url=%s",
            type(self.store).__name__,
            self.config.google.enabled,
            self.config.facebook.enabled,
            self.config.public_base_url,
        )

    def close(self) -> None:
        self.sessions.clear()
        self.store.close()
        logger.info("App context closed")


def get_context(request: Request) -> AppContext:
    return request.app.state.context
