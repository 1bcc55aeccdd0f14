"""Repository layer for User persistence."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from pymongo.errors import DuplicateKeyError
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db import get_db_backend, get_mongo_db, next_sequence
from app.errors import ConflictError
from app.models.user import User
from app.repositories.records import UserRecord
from app.repositories.storage import storage_errors


def user_from_doc(doc: dict[str, Any]) -> UserRecord:
    return UserRecord(
        id=int(doc["_id"]),
        name=str(doc.get("name") or ""),
        phone_number=str(doc.get("phone_number") or ""),
        email=doc.get("email"),
    )


def user_from_row(row: User) -> UserRecord:
    return UserRecord(id=row.id, name=row.name, phone_number=row.phone_number, email=row.email)


class UserRepository:
    """Lookup and implicit registration of post authors."""

    def find_by_phone_or_email(
        self, session: Session | None, phone_number: str, email: str | None = None
    ) -> UserRecord | None:
        with storage_errors("find user"):
            if get_db_backend() == "mongo":
                conditions: list[dict[str, Any]] = [{"phone_number": phone_number}]
                if email:
                    conditions.append({"email": email})
                doc = get_mongo_db()["users"].find_one({"$or": conditions})
                return user_from_doc(doc) if doc else None

            if session is None:
                raise RuntimeError("SQLAlchemy session required for sql backend")
            clauses = [User.phone_number == phone_number]
            if email:
                clauses.append(User.email == email)
            row = session.scalars(select(User).where(or_(*clauses)).order_by(User.id).limit(1)).first()
            return user_from_row(row) if row else None

    def create(self, session: Session | None, name: str, phone_number: str, email: str | None = None) -> UserRecord:
        with storage_errors("create user"):
            try:
                if get_db_backend() == "mongo":
                    db = get_mongo_db()
                    doc: dict[str, Any] = {
                        "_id": next_sequence(db, "users"),
                        "name": name,
                        "phone_number": phone_number,
                        "created_at": datetime.now(),
                    }
                    # Omit rather than store null so the partial unique index ignores it.
                    if email:
                        doc["email"] = email
                    db["users"].insert_one(doc)
                    return user_from_doc(doc)

                if session is None:
                    raise RuntimeError("SQLAlchemy session required for sql backend")
                user = User(name=name, phone_number=phone_number, email=email or None)
                session.add(user)
                session.flush()
                return user_from_row(user)
            except (IntegrityError, DuplicateKeyError) as exc:
                raise ConflictError(
                    message="User with this phone number or email already exists",
                    details={"phone_number": phone_number},
                ) from exc

    def find_by_ids(self, session: Session | None, user_ids: Iterable[int]) -> dict[int, UserRecord]:
        ids = sorted({int(i) for i in user_ids})
        if not ids:
            return {}

        with storage_errors("find users"):
            if get_db_backend() == "mongo":
                cur = get_mongo_db()["users"].find({"_id": {"$in": ids}})
                return {int(d["_id"]): user_from_doc(d) for d in cur}

            if session is None:
                raise RuntimeError("SQLAlchemy session required for sql backend")
            rows = session.scalars(select(User).where(User.id.in_(ids))).all()
            return {row.id: user_from_row(row) for row in rows}
