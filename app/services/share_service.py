"""Share a published code image through the webhook relay."""
import base64
import logging
from typing import Optional

from app.models.registered_item import RegisteredItem
from app.services.item_service import feedback_url_for
from app.services.storage_service import ObjectStorage
from app.services.webhook_relay import WebhookRelay

logger = logging.getLogger(__name__)


async def share_item(
    item: RegisteredItem,
    storage: ObjectStorage,
    relay: WebhookRelay,
    base_url: Optional[str] = None,
) -> str:
    """
    Wait for the item's stored code image, then push it to the webhook.

    Raises:
        ReadinessTimeoutError: If the image never shows up in storage
        StorageError: If the stored image cannot be read
        RelayError: If forwarding fails
    """
    path = item.storage_path
    public_url = await storage.wait_for_object(path)
    image = storage.read(path)

    payload = {
        "slug": item.slug,
        "title": item.title,
        "label": item.label,
        "feedback_url": feedback_url_for(item.slug, base_url),
        "qr_code_url": item.code_image_url or public_url,
        "image_base64": base64.b64encode(image).decode("ascii"),
        "content_type": "image/png",
    }
    logger.info("Sharing code image for item %s", item.id)
    return await relay.forward(payload)
