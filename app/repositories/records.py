"""Backend-neutral records returned by the repositories."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any


@dataclass(frozen=True)
class UserRecord:
    id: int
    name: str
    phone_number: str
    email: str | None = None


@dataclass(frozen=True)
class PostRecord:
    id: int
    post_id: str
    user_id: int
    title: str
    description: str
    images: list[dict[str, Any]] = field(default_factory=list)
    likes: int = 0
    shares: int = 0
    comments_count: int = 0
    is_featured: bool = False
    is_hidden: bool = False
    created_at: datetime | None = None


@dataclass(frozen=True)
class PostWithOwner:
    post: PostRecord
    # None when the owning user document is gone (Mongo has no foreign keys).
    owner: UserRecord | None


@dataclass(frozen=True)
class WinnerRef:
    """Stored half of a winner entry: who won, with which post."""

    user_id: int
    post_ref: int


@dataclass(frozen=True)
class LotteryRoundRecord:
    id: int
    draw_date: date
    winning_numbers: list[str]
    is_active: bool
    winners: list[WinnerRef] = field(default_factory=list)
    created_at: datetime | None = None
    drawn_at: datetime | None = None
