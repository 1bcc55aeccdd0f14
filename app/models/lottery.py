"""Lottery round and its frozen winner snapshot."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Integer, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base


class LotteryRound(Base):
    """One draw configuration. Active until drawn, then read-only history."""

    __tablename__ = "lottery_rounds"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    draw_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    winning_numbers: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())
    drawn_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    winners: Mapped[list["LotteryWinner"]] = relationship(
        back_populates="round",
        order_by="LotteryWinner.id",
        cascade="all, delete-orphan",
    )


class LotteryWinner(Base):
    """(user, post) pair recorded by a draw."""

    __tablename__ = "lottery_winners"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    round_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("lottery_rounds.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    post_ref: Mapped[int] = mapped_column(Integer, ForeignKey("posts.id"), nullable=False)

    round: Mapped[LotteryRound] = relationship(back_populates="winners")
