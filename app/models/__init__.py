"""ORM models."""

from app.models.lottery import LotteryRound, LotteryWinner
from app.models.post import Post
from app.models.user import User

__all__ = ["LotteryRound", "LotteryWinner", "Post", "User"]
