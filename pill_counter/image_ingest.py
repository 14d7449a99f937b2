"""Decoding and validation of incoming image payloads."""

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

from PIL import Image, UnidentifiedImageError

from pill_counter.errors import InvalidInput

logger = logging.getLogger(__name__)

DATA_URL_RE = re.compile(r"^data:(image/[\w.+-]+);base64,(.+)$", re.S)


@dataclass(frozen=True)
class DecodedImage:
    data: bytes
    mime_type: str
    base64: str

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"


def verify_image_bytes(data: bytes) -> None:
    """Raise InvalidInput unless ``data`` is something Pillow can identify."""
    if not data:
        raise InvalidInput("Image payload is empty")
    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise InvalidInput(f"Payload is not a decodable image: {e}") from e


def decode_image_payload(payload: Optional[str]) -> DecodedImage:
    """
    Turn a ``data:image/<type>;base64,<data>`` string into raw bytes.

    Nothing downstream is called for a payload that is missing, not a base64
    data URL, or not an image.
    """
    if not payload:
        raise InvalidInput("No image provided")

    match = DATA_URL_RE.match(payload.strip())
    if not match:
        raise InvalidInput("Invalid image format. Expected base64 data URL")

    mime_type, b64 = match.group(1), match.group(2).strip()
    try:
        data = base64.b64decode(b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidInput(f"Image data is not valid base64: {e}") from e

    verify_image_bytes(data)
    logger.debug("Decoded %s image, %d bytes", mime_type, len(data))
    return DecodedImage(data=data, mime_type=mime_type, base64=b64)

