"""Business logic for registered items (speakers and decks)."""

from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.config import settings
from app.models.registered_item import RegisteredItem, ITEM_KINDS, RATING_MODES
from app.services.errors import ValidationError
from app.services.slug_service import slugify

# Matches the String(255) columns on RegisteredItem
MAX_FIELD_LENGTH = 255

# Suggested categories for decks
INDUSTRIES = [
    "Technology",
    "Marketing",
    "Finance",
    "Healthcare",
    "Education",
    "Consulting",
    "Other",
]

# Form labels per kind: (title, label, category)
FIELD_LABELS = {
    "speaker": ("Talk title", "Speaker name", "Event name"),
    "deck": ("Deck name", "Author", "Industry"),
}


def feedback_url_for(slug: str, base_url: Optional[str] = None) -> str:
    """Public feedback form URL for a slug."""
    base = (settings.public_site_url or base_url or "").rstrip("/")
    return f"{base}/f/{slug}"


def results_url_for(slug: str, base_url: Optional[str] = None) -> str:
    base = (settings.public_site_url or base_url or "").rstrip("/")
    return f"{base}/feedback/{slug}"


class ItemService:
    """Service for registered item operations."""

    @staticmethod
    def create_item(
        db: Session,
        user_id: UUID,
        title: str,
        label: str,
        category: str,
        kind: str = "speaker",
        rating_mode: str = "single",
    ) -> RegisteredItem:
        """
        Validate and insert a new item with a freshly generated slug.

        Raises:
            ValidationError: If a required field is blank or too long, or kind/mode
                is unknown
        """
        title = (title or "").strip()
        label = (label or "").strip()
        category = (category or "").strip()

        if not title or not label or not category:
            raise ValidationError("Please fill all required fields.")
        if max(len(title), len(label), len(category)) > MAX_FIELD_LENGTH:
            raise ValidationError(
                f"Fields must be at most {MAX_FIELD_LENGTH} characters."
            )
        if kind not in ITEM_KINDS:
            raise ValidationError(f"Invalid kind. Must be one of: {list(ITEM_KINDS)}")
        if rating_mode not in RATING_MODES:
            raise ValidationError(
                f"Invalid rating mode. Must be one of: {list(RATING_MODES)}"
            )

        item = RegisteredItem(
            user_id=user_id,
            kind=kind,
            title=title,
            label=label,
            category=category,
            rating_mode=rating_mode,
            slug=slugify(title),
        )
        db.add(item)
        db.commit()
        db.refresh(item)
        return item

    @staticmethod
    def get_by_slug(db: Session, slug: str) -> Optional[RegisteredItem]:
        return db.query(RegisteredItem).filter(RegisteredItem.slug == slug).first()

    @staticmethod
    def get_owned_item(
        db: Session, item_id: int, user_id: UUID
    ) -> Optional[RegisteredItem]:
        """Get an item only if it belongs to the given owner."""
        return (
            db.query(RegisteredItem)
            .filter(RegisteredItem.id == item_id, RegisteredItem.user_id == user_id)
            .first()
        )

    @staticmethod
    def list_for_owner(db: Session, user_id: UUID) -> List[RegisteredItem]:
        """Owner's items, newest first."""
        return (
            db.query(RegisteredItem)
            .filter(RegisteredItem.user_id == user_id)
            .order_by(RegisteredItem.created_at.desc(), RegisteredItem.id.desc())
            .all()
        )
