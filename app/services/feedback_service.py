"""Business logic for anonymous feedback submission."""

from typing import List, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.models.feedback_response import FeedbackResponse
from app.models.registered_item import RegisteredItem
from app.services.errors import ValidationError

MIN_RATING = 1
MAX_RATING = 5


def _check_rating(value: Optional[int], name: str) -> int:
    if value is None:
        raise ValidationError(f"{name} is required. Please select 1-5 stars.")
    if not MIN_RATING <= value <= MAX_RATING:
        raise ValidationError(
            f"{name} must be between {MIN_RATING} and {MAX_RATING}"
        )
    return value


def clean_comment(comment: Optional[str]) -> Optional[str]:
    """Trim the comment; blank becomes None. Rejects overlong comments."""
    if comment is None:
        return None
    comment = comment.strip()
    if not comment:
        return None
    if len(comment) > settings.comment_max_length:
        raise ValidationError(
            f"Comment must be at most {settings.comment_max_length} characters"
        )
    return comment


class FeedbackService:
    """Service for feedback responses."""

    @staticmethod
    def submit(
        db: Session,
        item: RegisteredItem,
        rating: Optional[int] = None,
        comment: Optional[str] = None,
        originality_rating: Optional[int] = None,
        usefulness_rating: Optional[int] = None,
        engagement_rating: Optional[int] = None,
    ) -> FeedbackResponse:
        """
        Validate and append one feedback response for an item.

        Single-mode items require `rating`; detailed-mode items require all
        three sub-ratings. Every rating must be within 1-5. Validation happens
        before anything is added to the session.

        Raises:
            ValidationError: If a rating is missing/out of range or the
                comment is too long
        """
        if item.is_detailed:
            values = {
                "originality_rating": _check_rating(originality_rating, "Originality rating"),
                "usefulness_rating": _check_rating(usefulness_rating, "Usefulness rating"),
                "engagement_rating": _check_rating(engagement_rating, "Engagement rating"),
            }
        else:
            values = {"rating": _check_rating(rating, "Rating")}

        response = FeedbackResponse(
            item_id=item.id,
            comment=clean_comment(comment),
            **values,
        )
        db.add(response)
        db.commit()
        db.refresh(response)
        return response

    @staticmethod
    def list_for_item(db: Session, item_id: int) -> List[FeedbackResponse]:
        """All responses for an item, newest first."""
        return (
            db.query(FeedbackResponse)
            .filter(FeedbackResponse.item_id == item_id)
            .order_by(FeedbackResponse.created_at.desc(), FeedbackResponse.id.desc())
            .all()
        )
