"""Post identifier generation against stubbed storage."""

from __future__ import annotations

import random
from datetime import datetime

import pytest

from app.errors import IdentifierExhaustionError
from app.services.post_id_generator import (
    DEFAULT_MAX_ATTEMPTS,
    PostIdGenerator,
    identifier_pattern,
    identifier_prefix,
)

FIXED_NOW = datetime(2024, 5, 1, 13, 47, 12)
PREFIX = "2024_05_01_13_HEMUNG_"


class StubPostRepository:
    """Answers existence checks from an in-memory set and counts them."""

    def __init__(self, existing: set[str] | None = None, always_exists: bool = False) -> None:
        self.existing = existing or set()
        self.always_exists = always_exists
        self.checked: list[str] = []

    def exists_post_with_identifier(self, session, post_id: str) -> bool:  # type: ignore[no-untyped-def]
        self.checked.append(post_id)
        return self.always_exists or post_id in self.existing


class ScriptedRandom:
    def __init__(self, values: list[int]) -> None:
        self.values = list(values)

    def randrange(self, stop: int) -> int:
        value = self.values.pop(0)
        assert 0 <= value < stop
        return value


def _generator(repo: StubPostRepository, **kwargs) -> PostIdGenerator:  # type: ignore[no-untyped-def]
    kwargs.setdefault("clock", lambda: FIXED_NOW)
    kwargs.setdefault("rng", random.Random(1234))
    return PostIdGenerator(repo, **kwargs)  # type: ignore[arg-type]


def test_prefix_is_truncated_to_the_hour():
    assert identifier_prefix(FIXED_NOW) == PREFIX
    assert identifier_prefix(datetime(2031, 12, 9, 4, 0)) == "2031_12_09_04_HEMUNG_"


def test_generated_identifier_has_expected_format():
    pattern = identifier_pattern()
    gen = _generator(StubPostRepository())

    for _ in range(50):
        post_id = gen.generate(None)
        assert pattern.match(post_id), post_id
        assert post_id.startswith(PREFIX)


def test_format_with_real_clock():
    post_id = PostIdGenerator(StubPostRepository()).generate(None)  # type: ignore[arg-type]
    assert identifier_pattern().match(post_id)


def test_never_returns_an_existing_identifier():
    taken = {f"{PREFIX}{n:03d}" for n in range(900)}
    repo = StubPostRepository(existing=taken)
    gen = _generator(repo)

    for _ in range(20):
        post_id = gen.generate(None)
        assert post_id not in taken
        assert int(post_id[-3:]) >= 900


def test_retries_past_taken_suffixes_with_zero_padding():
    repo = StubPostRepository(existing={f"{PREFIX}005", f"{PREFIX}017"})
    gen = _generator(repo, rng=ScriptedRandom([5, 17, 42]))

    assert gen.generate(None) == f"{PREFIX}042"
    assert repo.checked == [f"{PREFIX}005", f"{PREFIX}017", f"{PREFIX}042"]


def test_same_suffix_in_another_hour_is_free():
    repo = StubPostRepository(existing={"2024_05_01_12_HEMUNG_123"})
    gen = _generator(repo, rng=ScriptedRandom([123]))

    assert gen.generate(None) == f"{PREFIX}123"


def test_exhaustion_after_exactly_the_default_bound():
    repo = StubPostRepository(always_exists=True)
    gen = _generator(repo)

    with pytest.raises(IdentifierExhaustionError) as excinfo:
        gen.generate(None)

    assert DEFAULT_MAX_ATTEMPTS == 10_000
    assert len(repo.checked) == DEFAULT_MAX_ATTEMPTS
    assert excinfo.value.status_code == 503
    assert excinfo.value.details == {"prefix": PREFIX, "attempts": DEFAULT_MAX_ATTEMPTS}


def test_exhaustion_honours_configured_bound():
    repo = StubPostRepository(always_exists=True)
    gen = _generator(repo, max_attempts=25)

    with pytest.raises(IdentifierExhaustionError):
        gen.generate(None)

    assert len(repo.checked) == 25


def test_custom_tag():
    gen = _generator(StubPostRepository(), tag="BOARD")
    post_id = gen.generate(None)

    assert post_id.startswith("2024_05_01_13_BOARD_")
    assert identifier_pattern("BOARD").match(post_id)
    assert not identifier_pattern().match(post_id)


def test_rejects_non_positive_bound():
    with pytest.raises(ValueError):
        PostIdGenerator(StubPostRepository(), max_attempts=0)  # type: ignore[arg-type]
