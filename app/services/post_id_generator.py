"""Post identifier generation.

Identifiers look like ``2024_05_01_13_HEMUNG_042``: creation hour, a fixed
tag, and a random three digit suffix. The suffix is what lottery draws match
against.

Generation only checks for an existing post before returning; two concurrent
callers can still pick the same free suffix. The unique index on
``posts.post_id`` rejects the second insert.
"""

from __future__ import annotations

import logging
import random
import re
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.orm import Session

from app.errors import IdentifierExhaustionError
from app.repositories.post_repository import PostRepository

logger = logging.getLogger(__name__)

SUFFIX_SPACE = 1000
DEFAULT_MAX_ATTEMPTS = 10_000
DEFAULT_TAG = "HEMUNG"


def identifier_prefix(now: datetime, tag: str = DEFAULT_TAG) -> str:
    return f"{now:%Y_%m_%d_%H}_{tag}_"


def identifier_pattern(tag: str = DEFAULT_TAG) -> re.Pattern[str]:
    return re.compile(rf"^\d{{4}}_\d{{2}}_\d{{2}}_\d{{2}}_{re.escape(tag)}_\d{{3}}$")


class PostIdGenerator:
    """Allocate a post identifier not yet used by any stored post."""

    def __init__(
        self,
        repository: PostRepository | None = None,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        tag: str = DEFAULT_TAG,
        clock: Callable[[], datetime] = datetime.now,
        rng: random.Random | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._repo = repository or PostRepository()
        self._max_attempts = max_attempts
        self._tag = tag
        self._clock = clock
        self._rng = rng or random.SystemRandom()

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def generate(self, session: Session | None) -> str:
        """Return a free identifier for the current hour.

        Raises:
            IdentifierExhaustionError: every attempt hit an existing post.
        """

        prefix = identifier_prefix(self._clock(), self._tag)

        for attempt in range(1, self._max_attempts + 1):
            candidate = f"{prefix}{self._rng.randrange(SUFFIX_SPACE):03d}"
            if not self._repo.exists_post_with_identifier(session, candidate):
                return candidate
            logger.debug("Post identifier %s taken (attempt %d)", candidate, attempt)

        logger.error("No free post identifier for %s after %d attempts", prefix, self._max_attempts)
        raise IdentifierExhaustionError(
            message=f"No free post identifier after {self._max_attempts} attempts",
            details={"prefix": prefix, "attempts": self._max_attempts},
        )
