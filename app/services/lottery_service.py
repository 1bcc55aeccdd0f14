"""Lottery rounds and the one-time draw.

A draw matches the round's winning numbers against the last three digits of
every stored post identifier. Matching is a union: a post wins if its suffix
equals any winning number, and it is listed once. Winners are not deduplicated
by user, so an author with two matching posts gets two entries.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy.orm import Session

from app.errors import AlreadyDrawnError, NotFoundError, ValidationError
from app.repositories.lottery_repository import LotteryRepository
from app.repositories.post_repository import PostRepository
from app.repositories.records import LotteryRoundRecord, PostRecord, UserRecord, WinnerRef
from app.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

SUFFIX_LENGTH = 3
_WINNING_NUMBER_RE = re.compile(r"[0-9]{1,3}")


def normalize_winning_number(value: object) -> str:
    """Left-pad a 1-3 digit winning number to exactly three digits."""

    raw = str(value).strip()
    if not _WINNING_NUMBER_RE.fullmatch(raw):
        raise ValidationError(
            message="Invalid winning number",
            details={"winning_numbers": [f"{raw!r} must be 1 to 3 digits"]},
        )
    return raw.zfill(SUFFIX_LENGTH)


def normalize_winning_numbers(values: Iterable[object]) -> list[str]:
    return [normalize_winning_number(v) for v in values]


@dataclass(frozen=True)
class WinnerEntry:
    """Winner with the display fields of its user and post resolved."""

    user_id: int
    post_ref: int
    user: UserRecord | None
    post: PostRecord | None


@dataclass(frozen=True)
class DrawResult:
    round_id: int
    winning_numbers: list[str]
    winners: list[WinnerEntry]
    drawn_at: datetime


@dataclass(frozen=True)
class RoundWithWinners:
    round: LotteryRoundRecord
    winners: list[WinnerEntry]


class LotteryService:
    """Lottery round use-cases."""

    def __init__(
        self,
        lottery_repository: LotteryRepository | None = None,
        post_repository: PostRepository | None = None,
        user_repository: UserRepository | None = None,
    ) -> None:
        self._rounds = lottery_repository or LotteryRepository()
        self._posts = post_repository or PostRepository()
        self._users = user_repository or UserRepository()

    def create_round(self, session: Session | None, draw_date: date, winning_numbers: Sequence[object]) -> LotteryRoundRecord:
        if not winning_numbers:
            raise ValidationError(
                message="At least one winning number is required",
                details={"winning_numbers": ["Must not be empty"]},
            )
        # Validate now, store as supplied; padding happens at draw time.
        normalize_winning_numbers(winning_numbers)
        supplied = [str(n).strip() for n in winning_numbers]

        record = self._rounds.create_round(session, draw_date=draw_date, winning_numbers=supplied)
        logger.info("Created lottery round %s for %s with %d numbers", record.id, draw_date, len(supplied))
        return record

    def list_rounds(self, session: Session | None) -> list[LotteryRoundRecord]:
        return self._rounds.list_rounds(session)

    def draw_round(self, session: Session | None, round_id: int) -> DrawResult:
        """Run the one-time draw for an active round.

        Raises:
            NotFoundError: no such round.
            AlreadyDrawnError: the round was drawn before, or concurrently.
            StorageError: the commit failed; the round stays active.
        """

        lottery = self._rounds.find_round_by_id(session, round_id)
        if lottery is None:
            raise NotFoundError(message=f"Lottery round {round_id} not found")
        if not lottery.is_active:
            raise AlreadyDrawnError(message=f"Lottery round {round_id} has already been drawn")

        numbers = normalize_winning_numbers(lottery.winning_numbers)
        matches = self._posts.find_posts_matching_trailing_digits(session, set(numbers))

        winners = [
            WinnerEntry(user_id=m.post.user_id, post_ref=m.post.id, user=m.owner, post=m.post)
            for m in matches
        ]
        drawn_at = datetime.now()

        committed = self._rounds.update_round(
            session,
            lottery.id,
            winners=[WinnerRef(user_id=w.user_id, post_ref=w.post_ref) for w in winners],
            drawn_at=drawn_at,
        )
        if not committed:
            logger.warning("Lottery round %s was drawn concurrently; discarding this draw", lottery.id)
            raise AlreadyDrawnError(message=f"Lottery round {round_id} has already been drawn")

        logger.info("Drew lottery round %s: numbers=%s winners=%d", lottery.id, numbers, len(winners))
        return DrawResult(round_id=lottery.id, winning_numbers=numbers, winners=winners, drawn_at=drawn_at)

    def resolve_winners(self, session: Session | None, refs: Sequence[WinnerRef]) -> list[WinnerEntry]:
        users = self._users.find_by_ids(session, (r.user_id for r in refs))
        posts = self._posts.find_by_refs(session, (r.post_ref for r in refs))
        return [
            WinnerEntry(user_id=r.user_id, post_ref=r.post_ref, user=users.get(r.user_id), post=posts.get(r.post_ref))
            for r in refs
        ]

    def list_winner_history(self, session: Session | None) -> list[RoundWithWinners]:
        """Drawn rounds, most recent draw date first."""

        return [
            RoundWithWinners(round=r, winners=self.resolve_winners(session, r.winners))
            for r in self._rounds.list_rounds(session, only_drawn=True)
        ]
