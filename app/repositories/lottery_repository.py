"""Repository layer for lottery rounds.

Mongo embeds the winner snapshot in the round document; SQL keeps it in
``lottery_winners`` and writes it in the same transaction as the round update.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, time
from typing import Any

from pymongo import DESCENDING
from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from app.db import get_db_backend, get_mongo_db, next_sequence
from app.models.lottery import LotteryRound, LotteryWinner
from app.repositories.records import LotteryRoundRecord, WinnerRef
from app.repositories.storage import storage_errors


def _as_date(value: Any) -> date:
    # BSON has no date type; draw dates are stored as midnight datetimes.
    if isinstance(value, datetime):
        return value.date()
    return value


def round_from_doc(doc: dict[str, Any]) -> LotteryRoundRecord:
    return LotteryRoundRecord(
        id=int(doc["_id"]),
        draw_date=_as_date(doc["draw_date"]),
        winning_numbers=[str(n) for n in doc.get("winning_numbers") or []],
        is_active=bool(doc.get("is_active", True)),
        winners=[WinnerRef(user_id=int(w["user_id"]), post_ref=int(w["post_ref"])) for w in doc.get("winners") or []],
        created_at=doc.get("created_at"),
        drawn_at=doc.get("drawn_at"),
    )


def round_from_row(row: LotteryRound) -> LotteryRoundRecord:
    return LotteryRoundRecord(
        id=row.id,
        draw_date=row.draw_date,
        winning_numbers=[str(n) for n in row.winning_numbers or []],
        is_active=row.is_active,
        winners=[WinnerRef(user_id=w.user_id, post_ref=w.post_ref) for w in row.winners],
        created_at=row.created_at,
        drawn_at=row.drawn_at,
    )


class LotteryRepository:
    """Rounds and their winner snapshots."""

    def create_round(self, session: Session | None, draw_date: date, winning_numbers: Sequence[str]) -> LotteryRoundRecord:
        with storage_errors("create lottery round"):
            if get_db_backend() == "mongo":
                db = get_mongo_db()
                doc: dict[str, Any] = {
                    "_id": next_sequence(db, "lottery_rounds"),
                    "draw_date": datetime.combine(draw_date, time.min),
                    "winning_numbers": [str(n) for n in winning_numbers],
                    "is_active": True,
                    "winners": [],
                    "created_at": datetime.now(),
                    "drawn_at": None,
                }
                db["lottery_rounds"].insert_one(doc)
                return round_from_doc(doc)

            if session is None:
                raise RuntimeError("SQLAlchemy session required for sql backend")
            row = LotteryRound(
                draw_date=draw_date,
                winning_numbers=[str(n) for n in winning_numbers],
                is_active=True,
            )
            session.add(row)
            session.flush()
            session.refresh(row)
            return round_from_row(row)

    def find_round_by_id(self, session: Session | None, round_id: int) -> LotteryRoundRecord | None:
        with storage_errors("find lottery round"):
            if get_db_backend() == "mongo":
                doc = get_mongo_db()["lottery_rounds"].find_one({"_id": int(round_id)})
                return round_from_doc(doc) if doc else None

            if session is None:
                raise RuntimeError("SQLAlchemy session required for sql backend")
            stmt = (
                select(LotteryRound)
                .where(LotteryRound.id == int(round_id))
                .options(selectinload(LotteryRound.winners))
                .execution_options(populate_existing=True)
            )
            row = session.scalars(stmt).first()
            return round_from_row(row) if row else None

    def list_rounds(self, session: Session | None, *, only_drawn: bool = False) -> list[LotteryRoundRecord]:
        """Rounds newest draw date first."""

        with storage_errors("list lottery rounds"):
            if get_db_backend() == "mongo":
                query: dict[str, Any] = {"is_active": False} if only_drawn else {}
                cur = get_mongo_db()["lottery_rounds"].find(query).sort([("draw_date", DESCENDING), ("_id", DESCENDING)])
                return [round_from_doc(d) for d in cur]

            if session is None:
                raise RuntimeError("SQLAlchemy session required for sql backend")
            stmt = (
                select(LotteryRound)
                .options(selectinload(LotteryRound.winners))
                .execution_options(populate_existing=True)
            )
            if only_drawn:
                stmt = stmt.where(LotteryRound.is_active.is_(False))
            stmt = stmt.order_by(LotteryRound.draw_date.desc(), LotteryRound.id.desc())
            return [round_from_row(row) for row in session.scalars(stmt).all()]

    def update_round(
        self,
        session: Session | None,
        round_id: int,
        *,
        winners: Sequence[WinnerRef],
        drawn_at: datetime,
    ) -> bool:
        """Store ``winners`` and deactivate the round in one write.

        Only applies while the round is still active. Returns ``False`` when
        another draw got there first; nothing is written in that case.
        """

        snapshot = [{"user_id": int(w.user_id), "post_ref": int(w.post_ref)} for w in winners]

        with storage_errors("commit lottery draw"):
            if get_db_backend() == "mongo":
                doc = get_mongo_db()["lottery_rounds"].find_one_and_update(
                    {"_id": int(round_id), "is_active": True},
                    {"$set": {"winners": snapshot, "is_active": False, "drawn_at": drawn_at}},
                )
                return doc is not None

            if session is None:
                raise RuntimeError("SQLAlchemy session required for sql backend")
            try:
                result = session.execute(
                    update(LotteryRound)
                    .where(LotteryRound.id == int(round_id), LotteryRound.is_active.is_(True))
                    .values(is_active=False, drawn_at=drawn_at)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    return False

                session.add_all(LotteryWinner(round_id=int(round_id), **entry) for entry in snapshot)
                # Commit here so a failure surfaces to the caller instead of in request teardown.
                session.commit()
            except Exception:
                # A failed flush leaves the session unusable until rolled back.
                session.rollback()
                raise
            return True
