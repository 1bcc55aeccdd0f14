"""Database wiring for both storage backends.

SQL: SQLAlchemy engine with a session-per-request pattern.
Mongo: one pymongo client per app, database handle in ``app.extensions``.
"""

from __future__ import annotations

import logging

from flask import Flask, current_app, g
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.database import Database
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.models.base import Base

logger = logging.getLogger(__name__)


def create_app_engine(database_url: str) -> Engine:
    url = make_url(database_url)

    # In-memory SQLite must share one connection or every session sees an empty DB.
    if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            future=True,
        )

    return create_engine(database_url, pool_pre_ping=True, future=True)


def create_mongo_client(uri: str, timeout_ms: int) -> MongoClient:
    return MongoClient(
        uri,
        serverSelectionTimeoutMS=timeout_ms,
        socketTimeoutMS=timeout_ms,
        tz_aware=False,
    )


def ensure_mongo_indexes(db: Database) -> None:
    """Create indexes the repositories rely on. Idempotent."""

    db["posts"].create_index([("post_id", ASCENDING)], unique=True, name="uq_posts_post_id")
    db["posts"].create_index([("user_id", ASCENDING)], name="ix_posts_user_id")
    db["users"].create_index([("phone_number", ASCENDING)], unique=True, name="uq_users_phone_number")
    db["users"].create_index(
        [("email", ASCENDING)],
        unique=True,
        name="uq_users_email",
        partialFilterExpression={"email": {"$type": "string"}},
    )
    db["lottery_rounds"].create_index(
        [("is_active", ASCENDING), ("draw_date", DESCENDING)],
        name="ix_lottery_rounds_active_draw_date",
    )


def init_db(app: Flask) -> None:
    """Initialize the configured backend and per-request sessions."""

    backend = str(app.config.get("DB_BACKEND", "sql"))
    app.extensions["db_backend"] = backend

    if backend == "mongo":
        client = create_mongo_client(
            str(app.config["MONGODB_URI"]),
            int(app.config.get("MONGODB_TIMEOUT_MS", 5000)),
        )
        db = client[str(app.config["MONGODB_DB"])]
        app.extensions["mongo_client"] = client
        app.extensions["mongo_db"] = db
        ensure_mongo_indexes(db)
        logger.info("Using mongo backend db=%s", app.config["MONGODB_DB"])
        return

    engine = create_app_engine(str(app.config["DATABASE_URL"]))
    session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    # Create tables on startup (production would use migrations).
    from app import models  # noqa: F401

    Base.metadata.create_all(bind=engine)

    app.extensions["engine"] = engine
    app.extensions["session_factory"] = session_factory

    @app.before_request
    def _open_session() -> None:
        g.db = session_factory()  # type: ignore[attr-defined]

    @app.teardown_request
    def _close_session(exc: BaseException | None) -> None:
        session: Session | None = getattr(g, "db", None)
        if session is None:
            return

        try:
            if exc is None:
                session.commit()
            else:
                session.rollback()
        finally:
            session.close()


def get_db_backend() -> str:
    return str(current_app.extensions.get("db_backend", "sql"))


def get_mongo_db() -> Database:
    db: Database | None = current_app.extensions.get("mongo_db")
    if db is None:
        raise RuntimeError("Mongo database not initialized")
    return db


def next_sequence(db: Database, name: str) -> int:
    """Issue the next integer id for ``name`` from the counters collection."""

    doc = db["counters"].find_one_and_update(
        {"_id": name},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return int((doc or {}).get("seq") or 1)


def get_session() -> Session:
    """Get the current request's SQLAlchemy session."""

    session: Session | None = getattr(g, "db", None)
    if session is None:
        raise RuntimeError("Database session not initialized")
    return session


def get_optional_session() -> Session | None:
    """Session for the sql backend, ``None`` for mongo."""

    if get_db_backend() == "mongo":
        return None
    return get_session()


def rollback_request_session() -> None:
    """Discard pending work when a request ends in a handled error."""

    session: Session | None = getattr(g, "db", None)
    if session is not None:
        session.rollback()
