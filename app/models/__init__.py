"""
Database models for Talkpulse.

Import all models here so Alembic can detect them for migrations.
"""

from app.database import Base
from app.models.user import User
from app.models.session import Session
from app.models.registered_item import RegisteredItem, ITEM_KINDS, RATING_MODES
from app.models.feedback_response import FeedbackResponse

__all__ = [
    "Base",
    "User",
    "Session",
    "RegisteredItem",
    "ITEM_KINDS",
    "RATING_MODES",
    "FeedbackResponse",
]
