"""Repository layer for Post persistence.

The ``post_id`` column carries a unique index on both backends; it is the
final guard against two concurrent creations picking the same identifier.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db import get_db_backend, get_mongo_db, next_sequence
from app.errors import DuplicatePostIdError
from app.models.post import Post
from app.models.user import User
from app.repositories.records import PostRecord, PostWithOwner, UserRecord
from app.repositories.storage import storage_errors
from app.repositories.user_repository import user_from_doc, user_from_row

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = ("created_at", "likes", "shares", "comments_count")


def post_from_doc(doc: dict[str, Any]) -> PostRecord:
    return PostRecord(
        id=int(doc["_id"]),
        post_id=str(doc["post_id"]),
        user_id=int(doc["user_id"]),
        title=str(doc.get("title") or ""),
        description=str(doc.get("description") or ""),
        images=list(doc.get("images") or []),
        likes=int(doc.get("likes") or 0),
        shares=int(doc.get("shares") or 0),
        comments_count=int(doc.get("comments_count") or 0),
        is_featured=bool(doc.get("is_featured")),
        is_hidden=bool(doc.get("is_hidden")),
        created_at=doc.get("created_at"),
    )


def post_from_row(row: Post) -> PostRecord:
    return PostRecord(
        id=row.id,
        post_id=row.post_id,
        user_id=row.user_id,
        title=row.title,
        description=row.description,
        images=list(row.images or []),
        likes=row.likes,
        shares=row.shares,
        comments_count=row.comments_count,
        is_featured=row.is_featured,
        is_hidden=row.is_hidden,
        created_at=row.created_at,
    )


def _is_post_id_violation(exc: Exception) -> bool:
    if isinstance(exc, DuplicateKeyError):
        key_pattern = (exc.details or {}).get("keyPattern") or {}
        return "post_id" in key_pattern or "post_id" in str(exc)
    return "post_id" in str(getattr(exc, "orig", exc))


def trailing_digits_pattern(suffixes: Iterable[str]) -> str:
    """Regex matching identifiers that end in any of ``suffixes``."""

    alternatives = "|".join(re.escape(s) for s in sorted(set(suffixes)))
    return f"({alternatives})$"


class PostRepository:
    """Post storage for both backends."""

    def _mongo_with_owners(self, docs: Sequence[dict[str, Any]]) -> list[PostWithOwner]:
        db = get_mongo_db()
        user_ids = sorted({int(d["user_id"]) for d in docs})
        owners: dict[int, UserRecord] = {}
        if user_ids:
            owners = {int(u["_id"]): user_from_doc(u) for u in db["users"].find({"_id": {"$in": user_ids}})}

        out: list[PostWithOwner] = []
        for doc in docs:
            post = post_from_doc(doc)
            owner = owners.get(post.user_id)
            if owner is None:
                logger.warning("Post %s references missing user %s", post.post_id, post.user_id)
            out.append(PostWithOwner(post=post, owner=owner))
        return out

    @staticmethod
    def _sql_with_owner(row: Post) -> PostWithOwner:
        return PostWithOwner(post=post_from_row(row), owner=user_from_row(row.user))

    def exists_post_with_identifier(self, session: Session | None, post_id: str) -> bool:
        with storage_errors("post identifier lookup"):
            if get_db_backend() == "mongo":
                return get_mongo_db()["posts"].count_documents({"post_id": post_id}, limit=1) > 0

            if session is None:
                raise RuntimeError("SQLAlchemy session required for sql backend")
            found = session.scalar(select(Post.id).where(Post.post_id == post_id).limit(1))
            return found is not None

    def insert_post(
        self,
        session: Session | None,
        *,
        post_id: str,
        user_id: int,
        title: str,
        description: str,
        images: list[dict[str, Any]] | None = None,
    ) -> PostRecord:
        """Persist a new post. Raises ``DuplicatePostIdError`` if the identifier is taken."""

        with storage_errors("insert post"):
            try:
                if get_db_backend() == "mongo":
                    db = get_mongo_db()
                    doc: dict[str, Any] = {
                        "_id": next_sequence(db, "posts"),
                        "post_id": post_id,
                        "user_id": int(user_id),
                        "title": title,
                        "description": description,
                        "images": list(images or []),
                        "likes": 0,
                        "shares": 0,
                        "comments_count": 0,
                        "is_featured": False,
                        "is_hidden": False,
                        "created_at": datetime.now(),
                    }
                    db["posts"].insert_one(doc)
                    return post_from_doc(doc)

                if session is None:
                    raise RuntimeError("SQLAlchemy session required for sql backend")
                post = Post(
                    post_id=post_id,
                    user_id=int(user_id),
                    title=title,
                    description=description,
                    images=list(images or []),
                    likes=0,
                    shares=0,
                    comments_count=0,
                    is_featured=False,
                    is_hidden=False,
                )
                session.add(post)
                session.flush()
                session.refresh(post)
                return post_from_row(post)
            except (IntegrityError, DuplicateKeyError) as exc:
                if _is_post_id_violation(exc):
                    raise DuplicatePostIdError(post_id) from exc
                raise

    def find_by_post_id(self, session: Session | None, post_id: str) -> PostWithOwner | None:
        with storage_errors("find post"):
            if get_db_backend() == "mongo":
                doc = get_mongo_db()["posts"].find_one({"post_id": post_id})
                return self._mongo_with_owners([doc])[0] if doc else None

            if session is None:
                raise RuntimeError("SQLAlchemy session required for sql backend")
            row = session.scalars(select(Post).where(Post.post_id == post_id)).first()
            return self._sql_with_owner(row) if row else None

    def find_by_refs(self, session: Session | None, refs: Iterable[int]) -> dict[int, PostRecord]:
        ids = sorted({int(r) for r in refs})
        if not ids:
            return {}

        with storage_errors("find posts"):
            if get_db_backend() == "mongo":
                cur = get_mongo_db()["posts"].find({"_id": {"$in": ids}})
                return {int(d["_id"]): post_from_doc(d) for d in cur}

            if session is None:
                raise RuntimeError("SQLAlchemy session required for sql backend")
            rows = session.scalars(select(Post).where(Post.id.in_(ids))).all()
            return {row.id: post_from_row(row) for row in rows}

    def find_posts_matching_trailing_digits(
        self, session: Session | None, suffixes: Iterable[str]
    ) -> list[PostWithOwner]:
        """All posts whose identifier ends with any suffix, each listed once."""

        wanted = sorted(set(suffixes))
        if not wanted:
            return []

        with storage_errors("match post identifiers"):
            if get_db_backend() == "mongo":
                cur = (
                    get_mongo_db()["posts"]
                    .find({"post_id": {"$regex": trailing_digits_pattern(wanted)}})
                    .sort("_id", ASCENDING)
                )
                return self._mongo_with_owners(list(cur))

            if session is None:
                raise RuntimeError("SQLAlchemy session required for sql backend")
            stmt = (
                select(Post)
                .where(or_(*(Post.post_id.endswith(s, autoescape=True) for s in wanted)))
                .order_by(Post.id.asc())
            )
            return [self._sql_with_owner(row) for row in session.scalars(stmt).unique().all()]

    def list_posts(
        self,
        session: Session | None,
        *,
        search: str | None = None,
        sort_by: str = "created_at",
        descending: bool = True,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[PostWithOwner], int]:
        """Visible posts, optionally filtered by owner name or phone."""

        if sort_by not in SORTABLE_FIELDS:
            sort_by = "created_at"

        with storage_errors("list posts"):
            if get_db_backend() == "mongo":
                db = get_mongo_db()
                query: dict[str, Any] = {"is_hidden": {"$ne": True}}
                if search:
                    pattern = {"$regex": re.escape(search), "$options": "i"}
                    owner_ids = [
                        int(u["_id"])
                        for u in db["users"].find({"$or": [{"name": pattern}, {"phone_number": pattern}]}, {"_id": 1})
                    ]
                    query["user_id"] = {"$in": owner_ids}

                direction = DESCENDING if descending else ASCENDING
                total = db["posts"].count_documents(query)
                cur = db["posts"].find(query).sort([(sort_by, direction), ("_id", direction)]).skip(offset).limit(limit)
                return self._mongo_with_owners(list(cur)), int(total)

            if session is None:
                raise RuntimeError("SQLAlchemy session required for sql backend")
            conditions = [Post.is_hidden.is_(False)]
            if search:
                owner_ids = select(User.id).where(
                    or_(
                        User.name.icontains(search, autoescape=True),
                        User.phone_number.icontains(search, autoescape=True),
                    )
                )
                conditions.append(Post.user_id.in_(owner_ids))

            column = getattr(Post, sort_by)
            order = (column.desc(), Post.id.desc()) if descending else (column.asc(), Post.id.asc())

            total = session.scalar(select(func.count(Post.id)).where(*conditions)) or 0
            rows = session.scalars(select(Post).where(*conditions).order_by(*order).offset(offset).limit(limit)).unique().all()
            return [self._sql_with_owner(row) for row in rows], int(total)
