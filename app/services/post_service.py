"""Service layer for post business logic."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

from flask import current_app
from sqlalchemy.orm import Session

from app.errors import NotFoundError
from app.repositories.post_repository import PostRepository
from app.repositories.records import PostWithOwner, UserRecord
from app.repositories.user_repository import UserRepository
from app.services.post_id_generator import DEFAULT_MAX_ATTEMPTS, DEFAULT_TAG, PostIdGenerator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PostPage:
    posts: list[PostWithOwner]
    current_page: int
    total_pages: int
    total_posts: int


class PostService:
    """Post use-cases."""

    def __init__(
        self,
        post_repository: PostRepository | None = None,
        user_repository: UserRepository | None = None,
        generator: PostIdGenerator | None = None,
    ) -> None:
        self._posts = post_repository or PostRepository()
        self._users = user_repository or UserRepository()
        self._generator = generator

    def _id_generator(self) -> PostIdGenerator:
        if self._generator is not None:
            return self._generator
        return PostIdGenerator(
            self._posts,
            max_attempts=int(current_app.config.get("POST_ID_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS)),
            tag=str(current_app.config.get("POST_ID_TAG", DEFAULT_TAG)),
        )

    def resolve_author(self, session: Session | None, name: str, phone_number: str, email: str | None) -> UserRecord:
        """Existing user by phone or email, otherwise register a new one."""

        user = self._users.find_by_phone_or_email(session, phone_number, email)
        if user is not None:
            return user
        user = self._users.create(session, name=name, phone_number=phone_number, email=email)
        logger.info("Registered user %s on first post", user.id)
        return user

    def create_post(
        self,
        session: Session | None,
        *,
        title: str,
        description: str,
        name: str,
        phone_number: str,
        email: str | None = None,
        images: list[dict[str, Any]] | None = None,
    ) -> PostWithOwner:
        owner = self.resolve_author(session, name, phone_number, email)

        # IdentifierExhaustionError propagates: the creation fails, no retry here.
        post_id = self._id_generator().generate(session)
        post = self._posts.insert_post(
            session,
            post_id=post_id,
            user_id=owner.id,
            title=title,
            description=description,
            images=images,
        )
        logger.info("Created post %s for user %s", post.post_id, owner.id)
        return PostWithOwner(post=post, owner=owner)

    def get_post(self, session: Session | None, post_id: str) -> PostWithOwner:
        found = self._posts.find_by_post_id(session, post_id)
        if found is None:
            raise NotFoundError(message=f"Post {post_id} not found")
        return found

    def list_posts(
        self,
        session: Session | None,
        *,
        search: str | None = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10,
    ) -> PostPage:
        page = max(int(page), 1)
        limit = max(int(limit), 1)

        posts, total = self._posts.list_posts(
            session,
            search=(search or "").strip() or None,
            sort_by=sort_by,
            descending=str(sort_order).lower() != "asc",
            offset=(page - 1) * limit,
            limit=limit,
        )
        return PostPage(
            posts=posts,
            current_page=page,
            total_pages=math.ceil(total / limit) if total else 0,
            total_posts=total,
        )
