"""
Function-style JSON endpoints called cross-origin.

- /functions/forward-webhook: pass-through relay to the configured webhook
- /functions/generate-qr: publish an item's QR image for a bearer-token caller

Both answer CORS preflights permissively and are exempt from the CSRF origin
check.
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.services import code_image_service
from app.services.auth.dependencies import get_bearer_user
from app.services.item_service import ItemService
from app.services.storage_service import ObjectStorage, get_storage
from app.services.webhook_relay import WebhookRelay, get_webhook_relay

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions", tags=["functions"])

BASE_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Vary": "Origin, Access-Control-Request-Headers",
}
DEFAULT_ALLOW_HEADERS = "authorization, x-client-info, apikey, content-type, prefer"
MAX_FEEDBACK_URL_LENGTH = 2048


def _preflight(request: Request) -> Response:
    allow_headers = request.headers.get(
        "access-control-request-headers", DEFAULT_ALLOW_HEADERS
    )
    return Response(
        status_code=204,
        headers={**BASE_CORS_HEADERS, "Access-Control-Allow-Headers": allow_headers},
    )


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"error": message}, headers=BASE_CORS_HEADERS
    )


# =============================================================================
# Webhook relay
# =============================================================================


@router.options("/forward-webhook")
async def forward_webhook_preflight(request: Request):
    return _preflight(request)


@router.post("/forward-webhook")
async def forward_webhook(
    request: Request,
    relay: WebhookRelay = Depends(get_webhook_relay),
):
    """
    Relay the JSON body to the webhook and return its response text.

    Returns "ok" when the webhook answers with an empty body, and a 500
    {"error": ...} for malformed JSON or any forwarding failure.
    """
    try:
        body = await request.body()
        text = await relay.forward_raw(body)
    except Exception as e:
        logger.error("forward-webhook failed: %s", e)
        return _error(500, str(e))

    return PlainTextResponse(text, status_code=200, headers=BASE_CORS_HEADERS)


# =============================================================================
# QR generation
# =============================================================================


@router.options("/generate-qr")
async def generate_qr_preflight(request: Request):
    return _preflight(request)


@router.post("/generate-qr")
async def generate_qr(
    request: Request,
    user: User = Depends(get_bearer_user),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    """
    Render, upload and link the QR image for one of the caller's items.

    Body: {"speakerId", "feedbackUrl", "userId"}. Responds {"qr_code_url"}.
    """
    try:
        data = await request.json()
    except ValueError:
        return _error(400, "Invalid JSON body")

    if not isinstance(data, dict):
        return _error(400, "Missing required fields")

    item_id = data.get("speakerId")
    feedback_url = data.get("feedbackUrl")
    user_id = data.get("userId")
    if not item_id or not isinstance(feedback_url, str) or not feedback_url or not user_id:
        return _error(400, "Missing required fields")
    if len(feedback_url) > MAX_FEEDBACK_URL_LENGTH:
        return _error(400, "feedbackUrl is too long")

    if str(user_id) != str(user.id):
        return _error(403, "userId does not match the authenticated account")

    try:
        item = ItemService.get_owned_item(db, int(item_id), user.id)
    except (TypeError, ValueError):
        item = None
    if not item:
        return _error(404, "Item not found")

    if not feedback_url.rstrip("/").endswith(f"/f/{item.slug}"):
        return _error(400, "feedbackUrl does not point at this item")

    result = code_image_service.publish(db, item, feedback_url, storage)
    if not result.ok:
        return _error(500, f"{result.stage} failed: {result.error}")

    return JSONResponse(
        content={"qr_code_url": result.public_url}, headers=BASE_CORS_HEADERS
    )
