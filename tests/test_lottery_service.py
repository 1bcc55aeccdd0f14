"""Lottery draw behaviour against an in-memory SQLite database."""

from __future__ import annotations

import sqlite3
from dataclasses import replace
from datetime import date

import pytest
from sqlalchemy import event, update

from app.errors import AlreadyDrawnError, NotFoundError, StorageError, ValidationError
from app.models.post import Post
from app.repositories.lottery_repository import LotteryRepository
from app.repositories.post_repository import PostRepository
from app.services.lottery_service import LotteryService, normalize_winning_number

DRAW_DATE = date(2024, 6, 1)


@pytest.fixture
def service() -> LotteryService:
    return LotteryService()


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("5", "005"), ("45", "045"), ("123", "123"), (" 7 ", "007"), ("000", "000"), (9, "009")],
)
def test_normalize_winning_number(raw, expected):
    assert normalize_winning_number(raw) == expected


@pytest.mark.parametrize("raw", ["", "1234", "a1", "4 5", "-1", "٣"])
def test_normalize_rejects_non_digit_or_long_values(raw):
    with pytest.raises(ValidationError):
        normalize_winning_number(raw)


def test_create_round_starts_active_and_empty(db_session, service):
    record = service.create_round(db_session, DRAW_DATE, ["123", "5"])

    assert record.is_active is True
    assert record.winners == []
    assert record.winning_numbers == ["123", "5"]
    assert record.draw_date == DRAW_DATE


def test_create_round_requires_numbers(db_session, service):
    with pytest.raises(ValidationError):
        service.create_round(db_session, DRAW_DATE, [])
    with pytest.raises(ValidationError):
        service.create_round(db_session, DRAW_DATE, ["12a"])


def test_union_match_over_trailing_digits(db_session, seed, service):
    alice = seed.user("Alice", "010-0000-0001")
    bob = seed.user("Bob", "010-0000-0002")
    carol = seed.user("Carol", "010-0000-0003")

    p123 = seed.post(alice, "2024_05_01_10_HEMUNG_123")
    p045a = seed.post(alice, "2024_05_01_11_HEMUNG_045")
    p045b = seed.post(bob, "2024_05_02_09_HEMUNG_045")
    seed.post(carol, "2024_05_02_09_HEMUNG_999")

    lottery = service.create_round(db_session, DRAW_DATE, ["123", "045"])
    result = service.draw_round(db_session, lottery.id)

    assert len(result.winners) == 3
    assert sorted(w.post_ref for w in result.winners) == sorted([p123.id, p045a.id, p045b.id])

    suffix_045_owners = {w.user_id for w in result.winners if w.post.post_id.endswith("045")}
    assert suffix_045_owners == {alice.id, bob.id}
    assert all(not w.post.post_id.endswith("999") for w in result.winners)

    stored = LotteryRepository().find_round_by_id(db_session, lottery.id)
    assert stored.is_active is False
    assert stored.drawn_at is not None
    assert len(stored.winners) == 3


def test_winner_entries_carry_user_display_fields(db_session, seed, service):
    dana = seed.user("Dana", "010-1111-2222", email="dana@example.com")
    seed.post(dana, "2024_05_01_10_HEMUNG_321", title="Sunrise")

    lottery = service.create_round(db_session, DRAW_DATE, ["321"])
    [winner] = service.draw_round(db_session, lottery.id).winners

    assert winner.user.name == "Dana"
    assert winner.user.phone_number == "010-1111-2222"
    assert winner.user.email == "dana@example.com"
    assert winner.post.title == "Sunrise"


def test_user_with_two_winning_posts_gets_two_entries(db_session, seed, service):
    erin = seed.user("Erin", "010-2222-3333")
    seed.post(erin, "2024_05_01_10_HEMUNG_777")
    seed.post(erin, "2024_05_03_22_HEMUNG_888")

    lottery = service.create_round(db_session, DRAW_DATE, ["777", "888"])
    result = service.draw_round(db_session, lottery.id)

    assert [w.user_id for w in result.winners] == [erin.id, erin.id]


def test_repeated_winning_numbers_list_each_post_once(db_session, seed, service):
    frank = seed.user("Frank", "010-3333-4444")
    seed.post(frank, "2024_05_01_10_HEMUNG_045")

    lottery = service.create_round(db_session, DRAW_DATE, ["045", "45", "045"])
    result = service.draw_round(db_session, lottery.id)

    assert len(result.winners) == 1
    assert result.winning_numbers == ["045", "045", "045"]


def test_zero_winners_still_closes_the_round(db_session, seed, service):
    gina = seed.user("Gina", "010-4444-5555")
    seed.post(gina, "2024_05_01_10_HEMUNG_776")
    seed.post(gina, "2024_05_01_11_HEMUNG_778")

    lottery = service.create_round(db_session, DRAW_DATE, ["777"])
    result = service.draw_round(db_session, lottery.id)

    assert result.winners == []
    stored = LotteryRepository().find_round_by_id(db_session, lottery.id)
    assert stored.is_active is False
    assert stored.winners == []


def test_short_winning_number_is_left_padded(db_session, seed, service):
    hal = seed.user("Hal", "010-5555-6666")
    p005 = seed.post(hal, "2024_05_01_10_HEMUNG_005")
    seed.post(hal, "2024_05_01_11_HEMUNG_050")
    seed.post(hal, "2024_05_01_12_HEMUNG_500")

    padded = service.create_round(db_session, DRAW_DATE, ["005"])
    short = service.create_round(db_session, DRAW_DATE, ["5"])

    padded_refs = [w.post_ref for w in service.draw_round(db_session, padded.id).winners]
    short_refs = [w.post_ref for w in service.draw_round(db_session, short.id).winners]

    assert padded_refs == short_refs == [p005.id]


def test_second_draw_is_rejected_and_keeps_first_winners(db_session, seed, service):
    ivy = seed.user("Ivy", "010-6666-7777")
    seed.post(ivy, "2024_05_01_10_HEMUNG_314")

    lottery = service.create_round(db_session, DRAW_DATE, ["314"])
    first = service.draw_round(db_session, lottery.id)

    # A post created after the draw must not change the recorded result.
    seed.post(ivy, "2024_05_04_08_HEMUNG_314")

    with pytest.raises(AlreadyDrawnError) as excinfo:
        service.draw_round(db_session, lottery.id)
    assert excinfo.value.status_code == 400

    stored = LotteryRepository().find_round_by_id(db_session, lottery.id)
    assert [w.post_ref for w in stored.winners] == [w.post_ref for w in first.winners]


def test_draw_unknown_round_is_not_found(db_session, service):
    with pytest.raises(NotFoundError):
        service.draw_round(db_session, 4242)


class StaleLotteryRepository(LotteryRepository):
    """Reports the round as still active, as a concurrent reader would have seen it."""

    def find_round_by_id(self, session, round_id):  # type: ignore[no-untyped-def]
        record = super().find_round_by_id(session, round_id)
        return replace(record, is_active=True, winners=[]) if record else None


def test_concurrent_draw_loses_compare_and_swap(db_session, seed, service):
    jay = seed.user("Jay", "010-7777-8888")
    seed.post(jay, "2024_05_01_10_HEMUNG_271")

    lottery = service.create_round(db_session, DRAW_DATE, ["271"])
    service.draw_round(db_session, lottery.id)

    late = LotteryService(lottery_repository=StaleLotteryRepository())
    with pytest.raises(AlreadyDrawnError):
        late.draw_round(db_session, lottery.id)

    stored = LotteryRepository().find_round_by_id(db_session, lottery.id)
    assert len(stored.winners) == 1


def _fail_winner_inserts(conn, cursor, statement, parameters, context, executemany):  # type: ignore[no-untyped-def]
    if statement.lstrip().upper().startswith("INSERT INTO LOTTERY_WINNERS"):
        raise sqlite3.OperationalError("disk I/O error")


def test_failed_commit_leaves_round_active(app, db_session, seed, service):
    kim = seed.user("Kim", "010-8888-9999")
    seed.post(kim, "2024_05_01_10_HEMUNG_161")
    lottery = service.create_round(db_session, DRAW_DATE, ["161"])
    db_session.commit()

    engine = app.extensions["engine"]
    event.listen(engine, "before_cursor_execute", _fail_winner_inserts)
    try:
        with pytest.raises(StorageError):
            service.draw_round(db_session, lottery.id)
    finally:
        event.remove(engine, "before_cursor_execute", _fail_winner_inserts)

    fresh = app.extensions["session_factory"]()
    try:
        stored = LotteryRepository().find_round_by_id(fresh, lottery.id)
        assert stored.is_active is True
        assert stored.drawn_at is None
        assert stored.winners == []
    finally:
        fresh.close()

    # The same session stays usable, so a retry succeeds.
    assert len(service.draw_round(db_session, lottery.id).winners) == 1
    assert LotteryRepository().find_round_by_id(db_session, lottery.id).is_active is False


def test_hidden_posts_are_unlisted_but_still_win(db_session, seed, service):
    mo = seed.user("Mo", "010-1212-3434")
    shown = seed.post(mo, "2024_05_01_10_HEMUNG_404")
    hidden = seed.post(mo, "2024_05_01_11_HEMUNG_505")
    db_session.execute(update(Post).where(Post.id == hidden.id).values(is_hidden=True))

    listed, total = PostRepository().list_posts(db_session)
    assert [p.post.id for p in listed] == [shown.id]
    assert total == 1

    lottery = service.create_round(db_session, DRAW_DATE, ["505"])
    [winner] = service.draw_round(db_session, lottery.id).winners
    assert winner.post_ref == hidden.id
    assert winner.post.is_hidden is True


def test_winner_history_lists_only_drawn_rounds_newest_first(db_session, seed, service):
    lee = seed.user("Lee", "010-9999-0000")
    seed.post(lee, "2024_05_01_10_HEMUNG_101", title="First")

    older = service.create_round(db_session, date(2024, 5, 1), ["101"])
    newer = service.create_round(db_session, date(2024, 7, 1), ["202"])
    service.create_round(db_session, date(2024, 8, 1), ["303"])

    service.draw_round(db_session, older.id)
    service.draw_round(db_session, newer.id)

    history = service.list_winner_history(db_session)

    assert [h.round.id for h in history] == [newer.id, older.id]
    assert history[0].winners == []
    [entry] = history[1].winners
    assert entry.user.name == "Lee"
    assert entry.post.title == "First"
