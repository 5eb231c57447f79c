"""
Card image upload indirection.

Business-card photos arrive as multipart parts ``cardFront`` / ``cardBack``.
They are checked (image type, size ceiling, one part per side) before any
handler logic runs, then posted to Cloudinary; only the returned URL is kept.
"""

import hashlib
import logging
import time
from typing import Dict, NamedTuple, Optional

import httpx
from fastapi import Request
from starlette.datastructures import UploadFile

from config import config
from errors import UploadError, UpstreamError
from logging_config import log_call

logger = logging.getLogger("leads")

CARD_SIDES = ("cardFront", "cardBack")
UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud}/image/upload"


class CardImage(NamedTuple):
    side: str
    filename: str
    content_type: str
    data: bytes

    def __repr__(self):
        return f"CardImage({self.side!r}, {self.filename!r}, {self.content_type!r}, {len(self.data)} bytes)"


async def card_images(request: Request) -> Dict[str, CardImage]:
    """
    Request dependency: collect at most one image per card side.

    Raises UploadError for a non-image part, a part over the size ceiling, or
    more than one part for the same side. Text values under a side name (a
    client echoing an existing URL) are ignored.
    """
    if not request.headers.get("content-type", "").startswith("multipart/form-data"):
        return {}

    form = await request.form()
    images: Dict[str, CardImage] = {}
    for side in CARD_SIDES:
        parts = [p for p in form.getlist(side) if isinstance(p, UploadFile)]
        if not parts:
            continue
        if len(parts) > 1:
            raise UploadError(f"Only one {side} image is allowed")
        part = parts[0]
        content_type = part.content_type or ""
        if not content_type.startswith("image/"):
            raise UploadError("Only image files are allowed!")
        # One byte past the ceiling is enough to tell it was exceeded.
        data = await part.read(config.MAX_UPLOAD_BYTES + 1)
        if len(data) > config.MAX_UPLOAD_BYTES:
            raise UploadError(
                f"{side} exceeds the {config.MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit",
                status_code=413,
            )
        if not data:
            continue
        images[side] = CardImage(side, part.filename or f"{side}.jpg", content_type, data)
    return images


def sign_params(params: Dict[str, str], api_secret: str) -> str:
    """Cloudinary signature: sorted key=value pairs joined by '&', secret appended, SHA-1."""
    payload = "&".join(f"{k}={params[k]}" for k in sorted(params))
    return hashlib.sha1((payload + api_secret).encode("utf-8")).hexdigest()


@log_call
async def upload_image(image: CardImage, transport: Optional[httpx.AsyncBaseTransport] = None) -> str:
    """Upload one image and return its secure URL. Any failure raises UpstreamError."""
    if not (config.CLOUD_NAME and config.API_KEY and config.API_SECRET):
        raise UpstreamError("Failed to upload image", error="Media host not configured")

    params = {"folder": config.MEDIA_FOLDER, "timestamp": str(int(time.time()))}
    form = dict(params, api_key=config.API_KEY, signature=sign_params(params, config.API_SECRET))
    files = {"file": (image.filename, image.data, image.content_type)}
    url = UPLOAD_URL.format(cloud=config.CLOUD_NAME)

    logger.debug(f"Uploading {image.side} ({len(image.data)} bytes) to media host")
    try:
        async with httpx.AsyncClient(timeout=config.MEDIA_UPLOAD_TIMEOUT, transport=transport) as client:
            r = await client.post(url, data=form, files=files)
            r.raise_for_status()
            secure_url = r.json().get("secure_url")
    except (httpx.HTTPError, ValueError) as e:
        raise UpstreamError("Failed to upload image", error=str(e)[:200])
    if not secure_url:
        raise UpstreamError("Failed to upload image", error="Media host returned no URL")
    return secure_url


async def upload_card_images(images: Dict[str, CardImage]) -> Dict[str, str]:
    """Upload front then back, sequentially. Returns {side: url}."""
    urls = {}
    for side in CARD_SIDES:
        if side in images:
            urls[side] = await upload_image(images[side])
    return urls
