"""Schemas for lottery rounds and draws."""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates

WINNING_NUMBER_RE = r"^[0-9]{1,3}$"


class LotteryRoundCreateSchema(Schema):
    draw_date = fields.Date(required=True)

    winning_numbers = fields.List(
        fields.String(
            validate=validate.Regexp(WINNING_NUMBER_RE, error="Winning numbers must be 1 to 3 digits"),
        ),
        required=True,
        validate=validate.Length(min=1, max=1000),
    )

    @validates("winning_numbers")
    def _validate_not_blank(self, value, **kwargs):  # type: ignore[no-untyped-def]
        if any(not str(v).strip() for v in value):
            raise ValidationError("Winning numbers must not be blank")


class WinnerRefSchema(Schema):
    user_id = fields.Int()
    post_ref = fields.Int()


class WinnerSchema(Schema):
    """A winner with its user and post display fields."""

    user_id = fields.Int()
    post_ref = fields.Int()

    name = fields.Str(attribute="user.name")
    phone_number = fields.Str(attribute="user.phone_number")
    email = fields.Str(attribute="user.email", allow_none=True)

    post_id = fields.Str(attribute="post.post_id")
    title = fields.Str(attribute="post.title")
    description = fields.Str(attribute="post.description")
    images = fields.List(fields.Dict(), attribute="post.images")


class LotteryRoundSchema(Schema):
    id = fields.Int()
    draw_date = fields.Date()
    winning_numbers = fields.List(fields.Str())
    is_active = fields.Bool()
    winners = fields.List(fields.Nested(WinnerRefSchema))
    created_at = fields.DateTime(allow_none=True)
    drawn_at = fields.DateTime(allow_none=True)


class DrawResultSchema(Schema):
    round_id = fields.Int()
    winning_numbers = fields.List(fields.Str())
    drawn_at = fields.DateTime()
    winners = fields.List(fields.Nested(WinnerSchema))
    winner_count = fields.Method("_winner_count")

    def _winner_count(self, obj) -> int:  # type: ignore[no-untyped-def]
        return len(obj.winners)


class RoundWithWinnersSchema(Schema):
    id = fields.Int(attribute="round.id")
    draw_date = fields.Date(attribute="round.draw_date")
    winning_numbers = fields.List(fields.Str(), attribute="round.winning_numbers")
    drawn_at = fields.DateTime(attribute="round.drawn_at", allow_none=True)
    winners = fields.List(fields.Nested(WinnerSchema))
