"""
Relational store wiring: engine, session factory and schema creation.
"""
import math
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ..models import Base


def make_engine(database_url: str, timeout_seconds: Optional[float] = None) -> Engine:
    """
    Create an engine.

    In-memory SQLite shares one connection across threads. On PostgreSQL a
    timeout bounds both connecting and every statement, so a stalled server
    surfaces as an error instead of a hung request.
    """
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    connect_args = {}
    if timeout_seconds and database_url.startswith("postgresql"):
        connect_args = {
            "connect_timeout": max(1, math.ceil(timeout_seconds)),
            "options": f"-c statement_timeout={int(timeout_seconds * 1000)}",
        }
    return create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create relational tables if they do not exist (idempotent)."""
    Base.metadata.create_all(bind=engine)
