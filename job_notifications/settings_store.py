"""Persisted per-notification enablement flags."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import Boolean, Column, DateTime, String, create_engine, select
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

LOGGER = logging.getLogger(__name__)

Base = declarative_base()


class NotificationSettingModel(Base):
    __tablename__ = "notification_settings"
    key = Column(String(120), primary_key=True)
    enabled = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


def make_session_factory(database_url: str) -> sessionmaker:
    engine_kwargs: Dict[str, Any] = {"future": True}
    if database_url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in {"sqlite://", "sqlite:///:memory:"}:
            engine_kwargs["poolclass"] = StaticPool
        pool_pre_ping = False
    else:
        pool_pre_ping = True
    engine = create_engine(database_url, pool_pre_ping=pool_pre_ping, **engine_kwargs)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)


class SettingsEnablement:
    """Enablement resolver backed by the ``notification_settings`` table.

    A stored row overrides the registered default; without one the
    default applies.
    """

    def __init__(self, database_url: Optional[str] = None, session_factory: Optional[sessionmaker] = None) -> None:
        if session_factory is None:
            session_factory = make_session_factory(database_url or "sqlite://")
        self.SessionLocal = session_factory

    def is_enabled(self, key: str, default: bool = True) -> bool:
        with self.SessionLocal() as db:
            row = db.get(NotificationSettingModel, key)
            return bool(default) if row is None else bool(row.enabled)

    def set_enabled(self, key: str, enabled: bool) -> None:
        with self.SessionLocal() as db:
            row = db.get(NotificationSettingModel, key)
            if row is None:
                row = NotificationSettingModel(key=key)
                db.add(row)
            row.enabled = bool(enabled)
            db.commit()
        LOGGER.info("Notification %s %s", key, "enabled" if enabled else "disabled")

    def clear(self, key: str) -> bool:
        with self.SessionLocal() as db:
            row = db.get(NotificationSettingModel, key)
            if row is None:
                return False
            db.delete(row)
            db.commit()
        return True

    def overrides(self) -> Dict[str, bool]:
        with self.SessionLocal() as db:
            rows = db.execute(select(NotificationSettingModel)).scalars().all()
            return {row.key: bool(row.enabled) for row in rows}
