"""FeedbackResponse model for anonymous ratings against a registered item."""
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, Text, DateTime, Index
from sqlalchemy.orm import relationship

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FeedbackResponse(Base):
    """One anonymous, append-only rating (+ optional comment) for an item."""

    __tablename__ = "feedback_responses"

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(
        Integer, ForeignKey("registered_items.id", ondelete="CASCADE"), nullable=False
    )

    # Single-mode items use `rating`; detailed-mode items use the three sub-ratings
    rating = Column(Integer, nullable=True)  # 1-5 stars
    originality_rating = Column(Integer, nullable=True)
    usefulness_rating = Column(Integer, nullable=True)
    engagement_rating = Column(Integer, nullable=True)

    comment = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    # Relationships
    item = relationship("RegisteredItem", back_populates="responses")

    __table_args__ = (
        Index("idx_feedback_responses_item", "item_id"),
        Index("idx_feedback_responses_created_at", "created_at"),
    )

    @property
    def sub_ratings(self) -> tuple:
        return (self.originality_rating, self.usefulness_rating, self.engagement_rating)

    @property
    def score(self) -> float:
        """Overall score: the rating, or the mean of the three sub-ratings."""
        if self.rating is not None:
            return float(self.rating)
        values = [r for r in self.sub_ratings if r is not None]
        return sum(values) / len(values) if values else 0.0

    def __repr__(self):
        return f"<FeedbackResponse(id={self.id}, item={self.item_id}, score={self.score})>"
