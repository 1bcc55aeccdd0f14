"""Shared fixtures: an app on in-memory SQLite and direct repository access."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from flask import Flask
from sqlalchemy.orm import Session

from app import create_app
from app.config import TestingConfig
from app.repositories.post_repository import PostRepository
from app.repositories.records import PostRecord, UserRecord
from app.repositories.user_repository import UserRepository


@pytest.fixture
def app() -> Iterator[Flask]:
    application = create_app(TestingConfig)
    yield application
    application.extensions["engine"].dispose()


@pytest.fixture
def client(app: Flask):
    return app.test_client()


@pytest.fixture
def db_session(app: Flask) -> Iterator[Session]:
    """Session bound to the app's engine, inside an app context."""

    with app.app_context():
        session = app.extensions["session_factory"]()
        try:
            yield session
        finally:
            session.rollback()
            session.close()


class Seeder:
    """Insert users and posts with chosen identifiers."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self.users = UserRepository()
        self.posts = PostRepository()

    def user(self, name: str, phone_number: str, email: str | None = None) -> UserRecord:
        return self.users.create(self.session, name=name, phone_number=phone_number, email=email)

    def post(self, owner: UserRecord, post_id: str, title: str = "A story") -> PostRecord:
        return self.posts.insert_post(
            self.session,
            post_id=post_id,
            user_id=owner.id,
            title=title,
            description=f"Description of {post_id}",
        )


@pytest.fixture
def seed(db_session: Session) -> Seeder:
    return Seeder(db_session)
