"""Lottery routes (controllers). No business logic here."""

from __future__ import annotations

from flask import Blueprint, request

from app.db import get_optional_session
from app.schemas.lottery import (
    DrawResultSchema,
    LotteryRoundCreateSchema,
    LotteryRoundSchema,
    RoundWithWinnersSchema,
)
from app.services.lottery_service import LotteryService
from app.utils.auth import require_admin
from app.utils.responses import ok

admin_lottery_bp = Blueprint("admin_lottery", __name__)
lottery_bp = Blueprint("lottery", __name__)

_create_schema = LotteryRoundCreateSchema()
_round_schema = LotteryRoundSchema()
_rounds_schema = LotteryRoundSchema(many=True)
_draw_schema = DrawResultSchema()
_history_schema = RoundWithWinnersSchema(many=True)
_service = LotteryService()


@admin_lottery_bp.post("/lottery")
@require_admin
def create_round():
    """Create an active round with its winning numbers."""

    payload = request.get_json(silent=True) or {}
    data = _create_schema.load(payload)

    session = get_optional_session()
    record = _service.create_round(session, draw_date=data["draw_date"], winning_numbers=data["winning_numbers"])
    return ok(_round_schema.dump(record), status_code=201)


@admin_lottery_bp.get("/lottery")
@require_admin
def list_rounds():
    session = get_optional_session()
    return ok(_rounds_schema.dump(_service.list_rounds(session)))


@admin_lottery_bp.post("/lottery/<int:round_id>/draw")
@require_admin
def draw_round(round_id: int):
    """Run the draw. 404 unknown round, 400 already drawn."""

    session = get_optional_session()
    result = _service.draw_round(session, round_id)
    return ok(_draw_schema.dump(result))


@lottery_bp.get("/lottery/winners")
def winner_history():
    session = get_optional_session()
    return ok(_history_schema.dump(_service.list_winner_history(session)))
