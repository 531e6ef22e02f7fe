"""
Read-side aggregation of feedback responses.

Nothing here is persisted: metrics are folded from the response rows on every
request, so they always reflect the current item set and responses.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from app.config import settings
from app.models.feedback_response import FeedbackResponse
from app.models.registered_item import RegisteredItem
from app.services.feedback_service import FeedbackService
from app.services.item_service import ItemService

DISTRIBUTION_BINS = 5


@dataclass
class ItemMetrics:
    count: int = 0
    avg: float = 0.0
    comment_count: int = 0
    last_responses: List[FeedbackResponse] = field(default_factory=list)

    @property
    def last_comments(self) -> List[Optional[str]]:
        return [r.comment for r in self.last_responses]


@dataclass
class DetailedMetrics:
    count: int = 0
    avg_originality: float = 0.0
    avg_usefulness: float = 0.0
    avg_engagement: float = 0.0
    comment_count: int = 0
    distribution: List[int] = field(default_factory=lambda: [0] * DISTRIBUTION_BINS)

    @property
    def max_bin(self) -> int:
        return max(self.distribution) if self.distribution else 0


@dataclass
class DashboardEntry:
    item: RegisteredItem
    metrics: ItemMetrics


def stars(value: float) -> int:
    """Round half up, for star displays."""
    return int(value + 0.5) if value > 0 else 0


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _newest_first_key(response: FeedbackResponse):
    created = response.created_at or datetime.min
    # SQLite hands back naive datetimes; compare everything as UTC
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return (created, response.id or 0)


def _has_comment(response: FeedbackResponse) -> bool:
    return bool(response.comment and response.comment.strip())


def summarize(
    responses: Sequence[FeedbackResponse], recent_limit: Optional[int] = None
) -> ItemMetrics:
    """
    Count, mean score and the most recent responses for one item.

    The mean is 0.0 for an empty set. The recent window holds at most
    `recent_limit` responses ordered newest first.
    """
    if recent_limit is None:
        recent_limit = settings.recent_comments_limit

    ordered = sorted(responses, key=_newest_first_key, reverse=True)
    return ItemMetrics(
        count=len(ordered),
        avg=_mean([r.score for r in ordered]),
        comment_count=sum(1 for r in ordered if _has_comment(r)),
        last_responses=ordered[:recent_limit],
    )


def summarize_detailed(responses: Sequence[FeedbackResponse]) -> DetailedMetrics:
    """
    Independent means of the three sub-ratings plus a 5-bin histogram.

    Each response lands in the bin of the rounded average of its three
    sub-ratings; responses without a full set of sub-ratings are counted but
    not binned.
    """
    complete = [r for r in responses if None not in r.sub_ratings]

    distribution = [0] * DISTRIBUTION_BINS
    for r in complete:
        bucket = stars(_mean(r.sub_ratings))
        if 1 <= bucket <= DISTRIBUTION_BINS:
            distribution[bucket - 1] += 1

    return DetailedMetrics(
        count=len(responses),
        avg_originality=_mean([r.originality_rating for r in complete]),
        avg_usefulness=_mean([r.usefulness_rating for r in complete]),
        avg_engagement=_mean([r.engagement_rating for r in complete]),
        comment_count=sum(1 for r in responses if _has_comment(r)),
        distribution=distribution,
    )


def build_dashboard(db: Session, user_id: UUID) -> List[DashboardEntry]:
    """Owner's items, newest first, each with freshly computed metrics."""
    return [
        DashboardEntry(item=item, metrics=summarize(FeedbackService.list_for_item(db, item.id)))
        for item in ItemService.list_for_owner(db, user_id)
    ]
