"""
Code image pipeline: render, rasterize and publish QR codes for feedback URLs.

The QR symbol itself comes from the qrcode library. On-screen rendering uses
its SVG path factory; exports are painted onto a Pillow bitmap so that the
background is always opaque, whatever the target format.

Publishing runs a short, strictly ordered stage sequence:

    render -> upload -> link

and reports the first failing stage in a PipelineResult. The owning item's
code_image_url is only written in the link stage, i.e. after the upload
succeeded.
"""
import io
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import List, Optional

import qrcode
from qrcode.constants import ERROR_CORRECT_M
from qrcode.exceptions import DataOverflowError
from qrcode.image.svg import SvgPathImage
from PIL import Image, ImageDraw
from sqlalchemy.orm import Session

from app.config import settings
from app.models.registered_item import RegisteredItem
from app.services.errors import RenderError, StorageError, ValidationError
from app.services.storage_service import ObjectStorage

logger = logging.getLogger(__name__)

SVG_NAMESPACE = "http://www.w3.org/2000/svg"
ET.register_namespace("", SVG_NAMESPACE)

MIN_SIZE = 64
MAX_SIZE = 2048
JPEG_QUALITY = 92

BACKGROUND = (255, 255, 255)
FOREGROUND = (0, 0, 0)

EXPORT_FORMATS = {
    "png": ("PNG", "image/png", "png"),
    "jpeg": ("JPEG", "image/jpeg", "jpg"),
    "jpg": ("JPEG", "image/jpeg", "jpg"),
}


class _WhiteSvgPathImage(SvgPathImage):
    background = "white"


@dataclass
class ExportedImage:
    data: bytes
    content_type: str
    extension: str

    def filename(self, slug: str) -> str:
        return f"{slug}-qr.{self.extension}"


@dataclass
class PipelineResult:
    """Outcome of one publish run. `stage` names the failing stage, if any."""

    ok: bool
    stage: str
    public_url: Optional[str] = None
    error: Optional[str] = None


def _build_qr(url: str) -> qrcode.QRCode:
    if not url:
        raise RenderError("Cannot render an empty URL")
    qr = qrcode.QRCode(
        error_correction=ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(url)
    try:
        qr.make(fit=True)
    except DataOverflowError as e:
        raise RenderError(f"URL too long to encode ({len(url)} characters)") from e
    return qr


def module_matrix(url: str) -> List[List[bool]]:
    """QR module grid for the URL, quiet zone included."""
    return _build_qr(url).get_matrix()


def check_size(size: int) -> int:
    if not MIN_SIZE <= size <= MAX_SIZE:
        raise ValidationError(f"Size must be between {MIN_SIZE} and {MAX_SIZE} pixels")
    return size


def render_svg(url: str, size: int = settings.qr_display_size) -> str:
    """Vector rendering of the URL as an SVG document sized for display."""
    check_size(size)
    image = _build_qr(url).make_image(image_factory=_WhiteSvgPathImage)

    buffer = io.BytesIO()
    image.save(buffer)

    root = ET.fromstring(buffer.getvalue())
    # Scalable only when the library emitted a viewBox
    if "viewBox" in root.attrib:
        root.set("width", str(size))
        root.set("height", str(size))
    return ET.tostring(root, encoding="unicode")


def rasterize(url: str, size: int = settings.qr_export_size) -> Image.Image:
    """
    Draw the QR code onto an opaque RGB bitmap of size x size pixels.

    The full surface is painted with the light background before any module
    is drawn, so exported images never carry transparency.
    """
    check_size(size)
    matrix = module_matrix(url)

    try:
        surface = Image.new("RGB", (size, size))
    except (ValueError, MemoryError) as e:
        raise RenderError(f"Drawing surface unavailable: {e}") from e

    draw = ImageDraw.Draw(surface)
    draw.rectangle([0, 0, size - 1, size - 1], fill=BACKGROUND)

    modules = len(matrix)
    scale = size / modules
    for y, row in enumerate(matrix):
        top = round(y * scale)
        bottom = round((y + 1) * scale) - 1
        for x, dark in enumerate(row):
            if dark:
                left = round(x * scale)
                right = round((x + 1) * scale) - 1
                draw.rectangle([left, top, right, bottom], fill=FOREGROUND)

    return surface


def export(url: str, size: int = settings.qr_export_size, fmt: str = "png") -> ExportedImage:
    """Rasterize and encode the QR code as PNG or JPEG bytes."""
    try:
        pil_format, content_type, extension = EXPORT_FORMATS[fmt.lower()]
    except KeyError:
        raise ValidationError(f"Unsupported image format: {fmt}")

    surface = rasterize(url, size)
    buffer = io.BytesIO()
    if pil_format == "JPEG":
        surface.save(buffer, format="JPEG", quality=JPEG_QUALITY)
    else:
        surface.save(buffer, format="PNG", optimize=True)

    return ExportedImage(
        data=buffer.getvalue(), content_type=content_type, extension=extension
    )


def publish(
    db: Session,
    item: RegisteredItem,
    feedback_url: str,
    storage: ObjectStorage,
    size: int = settings.qr_export_size,
) -> PipelineResult:
    """
    Render the item's code image, upload it and link it to the item.

    Upload uses upsert on the fixed "{owner_id}/{item_id}.png" key, so a
    failed run can simply be repeated.
    """
    if item.id is None:
        return PipelineResult(ok=False, stage="render", error="Item has not been stored yet")

    try:
        image = export(feedback_url, size=size, fmt="png")
    except (RenderError, ValidationError) as e:
        logger.error("Code image render failed for item %s: %s", item.id, e)
        return PipelineResult(ok=False, stage="render", error=str(e))

    path = item.storage_path
    try:
        storage.upload(path, image.data, content_type=image.content_type, upsert=True)
    except StorageError as e:
        logger.error("Code image upload failed for item %s: %s", item.id, e)
        return PipelineResult(ok=False, stage="upload", error=str(e))

    try:
        public_url = storage.get_public_url(path)
        item.code_image_url = public_url
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(
            "Code image stored at %s but linking to item %s failed: %s", path, item.id, e
        )
        return PipelineResult(ok=False, stage="link", error=str(e))

    logger.info("Published code image for item %s at %s", item.id, public_url)
    return PipelineResult(ok=True, stage="link", public_url=public_url)
