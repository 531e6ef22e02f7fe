"""Public, slug-addressed feedback endpoints (no account required)."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, Response
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.services import code_image_service
from app.services.aggregation_service import stars, summarize, summarize_detailed
from app.services.errors import ValidationError
from app.services.feedback_service import FeedbackService
from app.services.item_service import ItemService, feedback_url_for

logger = logging.getLogger(__name__)

router = APIRouter(tags=["feedback"])
templates = Jinja2Templates(directory="app/templates")
templates.env.globals["stars"] = stars


def _get_item_or_404(db: Session, slug: str):
    item = ItemService.get_by_slug(db, slug)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


def _form_context(item, **extra) -> dict:
    context = {
        "item": item,
        "submitted": False,
        "error": None,
        "comment": "",
        "comment_max_length": settings.comment_max_length,
    }
    context.update(extra)
    return context


@router.get("/f/{slug}", response_class=HTMLResponse)
async def feedback_form(request: Request, slug: str, db: Session = Depends(get_db)):
    """Anonymous feedback form for one item."""
    item = _get_item_or_404(db, slug)
    return templates.TemplateResponse(request, "feedback_form.html", _form_context(item))


@router.post("/f/{slug}", response_class=HTMLResponse)
async def submit_feedback(
    request: Request,
    slug: str,
    rating: Optional[int] = Form(None),
    originality_rating: Optional[int] = Form(None),
    usefulness_rating: Optional[int] = Form(None),
    engagement_rating: Optional[int] = Form(None),
    comment: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    """
    Store one anonymous response.

    Invalid ratings re-render the form with a 400 status; nothing is written.
    """
    item = _get_item_or_404(db, slug)

    try:
        FeedbackService.submit(
            db,
            item,
            rating=rating,
            comment=comment,
            originality_rating=originality_rating,
            usefulness_rating=usefulness_rating,
            engagement_rating=engagement_rating,
        )
    except ValidationError as e:
        return templates.TemplateResponse(
            request,
            "feedback_form.html",
            _form_context(item, error=str(e), comment=comment or ""),
            status_code=400,
        )

    logger.info("Feedback received for item %s", item.id)
    return templates.TemplateResponse(
        request, "feedback_form.html", _form_context(item, submitted=True)
    )


@router.get("/f/{slug}/qr.svg")
async def feedback_qr_svg(
    request: Request,
    slug: str,
    size: int = Query(settings.qr_display_size),
    db: Session = Depends(get_db),
):
    """Vector QR code for the item's feedback URL, for on-screen display."""
    item = _get_item_or_404(db, slug)

    try:
        svg = code_image_service.render_svg(
            feedback_url_for(item.slug, str(request.base_url)), size=size
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return Response(content=svg, media_type="image/svg+xml")


@router.get("/feedback/{slug}", response_class=HTMLResponse)
async def public_results(request: Request, slug: str, db: Session = Depends(get_db)):
    """Read-only summary and itemized responses for one item."""
    item = _get_item_or_404(db, slug)
    responses = FeedbackService.list_for_item(db, item.id)

    return templates.TemplateResponse(
        request,
        "public_feedback.html",
        {
            "item": item,
            "responses": responses,
            "metrics": summarize(responses),
            "detailed": summarize_detailed(responses) if item.is_detailed else None,
        },
    )
