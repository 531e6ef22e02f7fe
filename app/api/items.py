"""Owner dashboard and registered item routes."""
import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.user import User
from app.services import code_image_service
from app.services.aggregation_service import build_dashboard, stars, summarize
from app.services.auth.dependencies import get_current_user
from app.services.errors import (
    ReadinessTimeoutError,
    RelayError,
    StorageError,
    ValidationError,
)
from app.services.feedback_service import FeedbackService
from app.services.item_service import (
    FIELD_LABELS,
    INDUSTRIES,
    MAX_FIELD_LENGTH,
    ItemService,
    feedback_url_for,
    results_url_for,
)
from app.services.share_service import share_item
from app.services.storage_service import ObjectStorage, get_storage
from app.services.webhook_relay import WebhookRelay, get_webhook_relay

logger = logging.getLogger(__name__)

router = APIRouter(tags=["items"])
templates = Jinja2Templates(directory="app/templates")
templates.env.globals["stars"] = stars

NOTICES = {
    "created": "Item registered. QR code generated and saved.",
    "qr_saved": "QR code uploaded to storage and linked to the item.",
    "shared": "QR code shared.",
}

ERRORS = {
    "missing_fields": "Please fill all required fields.",
    "invalid_kind": "Unknown item type.",
    "too_long": (
        f"Title, name and category must be at most {MAX_FIELD_LENGTH} characters."
    ),
    "qr_upload_failed": "Item registered, but the QR code could not be saved. Try again.",
    "qr_not_ready": "QR image not found yet. Try again in a moment.",
    "share_failed": "Could not share the QR code.",
}


def _base_url(request: Request) -> str:
    return str(request.base_url).rstrip("/")


def _get_owned_or_404(db: Session, item_id: int, user: User):
    item = ItemService.get_owned_item(db, item_id, user.id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard(
    request: Request,
    created: Optional[int] = Query(None),
    notice: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    kind: str = Query("speaker"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Owner's items with response metrics, plus the registration form."""
    entries = build_dashboard(db, user.id)
    base_url = _base_url(request)

    created_item = ItemService.get_owned_item(db, created, user.id) if created else None

    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "user": user,
            "entries": entries,
            "created_item": created_item,
            "created_url": (
                feedback_url_for(created_item.slug, base_url) if created_item else None
            ),
            "feedback_url": lambda slug: feedback_url_for(slug, base_url),
            "kind": kind if kind in FIELD_LABELS else "speaker",
            "field_labels": FIELD_LABELS,
            "industries": INDUSTRIES,
            "notice": NOTICES.get(notice or ""),
            "error": ERRORS.get(error or ""),
        },
    )


@router.post("/items")
async def create_item(
    request: Request,
    title: str = Form(""),
    label: str = Form(""),
    category: str = Form(""),
    kind: str = Form("speaker"),
    rating_mode: str = Form("single"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    """
    Register an item, then publish its code image exactly once.

    The publish step only starts after the insert committed, since the
    storage key needs the item id.
    """
    try:
        item = ItemService.create_item(
            db,
            user.id,
            title=title,
            label=label,
            category=category,
            kind=kind,
            rating_mode=rating_mode,
        )
    except ValidationError as e:
        logger.info("Rejected item registration for %s: %s", user.id, e)
        if kind not in FIELD_LABELS:
            error = "invalid_kind"
        elif max(len(v.strip()) for v in (title, label, category)) > MAX_FIELD_LENGTH:
            error = "too_long"
        else:
            error = "missing_fields"
        query = urlencode(
            {"kind": kind if kind in FIELD_LABELS else "speaker", "error": error}
        )
        return RedirectResponse(url=f"/dashboard?{query}", status_code=303)

    result = code_image_service.publish(
        db, item, feedback_url_for(item.slug, _base_url(request)), storage
    )

    url = f"/dashboard?created={item.id}&kind={item.kind}"
    url += "&notice=created" if result.ok else "&error=qr_upload_failed"
    return RedirectResponse(url=url, status_code=303)


@router.get("/items/{item_id}/responses", response_class=HTMLResponse)
async def item_responses(
    request: Request,
    item_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """All responses for one owned item, newest first."""
    item = _get_owned_or_404(db, item_id, user)
    responses = FeedbackService.list_for_item(db, item.id)

    return templates.TemplateResponse(
        request,
        "item_responses.html",
        {
            "user": user,
            "item": item,
            "responses": responses,
            "metrics": summarize(responses),
            "results_url": results_url_for(item.slug, _base_url(request)),
        },
    )


@router.get("/items/{item_id}/qr")
async def download_code_image(
    request: Request,
    item_id: int,
    format: str = Query("png"),
    size: int = Query(settings.qr_export_size),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Download the item's QR code as PNG or JPEG. Nothing is stored."""
    item = _get_owned_or_404(db, item_id, user)

    try:
        image = code_image_service.export(
            feedback_url_for(item.slug, _base_url(request)), size=size, fmt=format
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return Response(
        content=image.data,
        media_type=image.content_type,
        headers={
            "Content-Disposition": f'attachment; filename="{image.filename(item.slug)}"'
        },
    )


@router.post("/items/{item_id}/code-image")
async def republish_code_image(
    request: Request,
    item_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    """Re-run the publish pipeline, e.g. after a failed upload."""
    item = _get_owned_or_404(db, item_id, user)

    result = code_image_service.publish(
        db, item, feedback_url_for(item.slug, _base_url(request)), storage
    )
    suffix = "notice=qr_saved" if result.ok else "error=qr_upload_failed"
    return RedirectResponse(url=f"/dashboard?created={item.id}&{suffix}", status_code=303)


@router.post("/items/{item_id}/share")
async def share_code_image(
    request: Request,
    item_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    relay: WebhookRelay = Depends(get_webhook_relay),
):
    """Push the item's stored QR image to the configured webhook."""
    item = _get_owned_or_404(db, item_id, user)

    try:
        await share_item(item, storage, relay, base_url=_base_url(request))
    except ReadinessTimeoutError as e:
        logger.warning("Share of item %s aborted: %s", item.id, e)
        return RedirectResponse(url="/dashboard?error=qr_not_ready", status_code=303)
    except (StorageError, RelayError) as e:
        logger.error("Share of item %s failed: %s", item.id, e)
        return RedirectResponse(url="/dashboard?error=share_failed", status_code=303)

    return RedirectResponse(url="/dashboard?notice=shared", status_code=303)
