"""RegisteredItem model: a speaker talk or a deck that collects feedback."""
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship

from app.database import Base


ITEM_KINDS = ("speaker", "deck")
RATING_MODES = ("single", "detailed")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RegisteredItem(Base):
    """
    Owned item that attendees rate through its public slug.

    Both historical variants share this table:
    - speaker: title = talk title, label = speaker name, category = event name
    - deck: title = deck name, label = author, category = industry
    """

    __tablename__ = "registered_items"

    id = Column(Integer, primary_key=True)
    user_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    kind = Column(String(20), nullable=False, default="speaker")  # 'speaker' or 'deck'
    title = Column(String(255), nullable=False)
    label = Column(String(255), nullable=False)
    category = Column(String(255), nullable=False)
    slug = Column(String(300), nullable=False, unique=True)  # immutable once created
    rating_mode = Column(
        String(20), nullable=False, default="single"
    )  # 'single' or 'detailed'
    code_image_url = Column(String(1024), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    @property
    def storage_path(self) -> str:
        """Object storage key for this item's code image."""
        return f"{self.user_id}/{self.id}.png"

    @property
    def is_detailed(self) -> bool:
        return self.rating_mode == "detailed"

    # Relationships
    owner = relationship("User", back_populates="items")
    responses = relationship(
        "FeedbackResponse",
        back_populates="item",
        order_by="FeedbackResponse.created_at.desc()",
    )

    __table_args__ = (
        Index("idx_registered_items_user_id", "user_id"),
        Index("idx_registered_items_created_at", "created_at"),
    )

    def __repr__(self):
        return f"<RegisteredItem(id={self.id}, kind={self.kind}, slug={self.slug})>"
