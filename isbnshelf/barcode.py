import io
import logging
from typing import Optional

import zxingcpp
from PIL import Image, UnidentifiedImageError

from .models import InvalidIdentifier
from .utils import normalize_isbn

logger = logging.getLogger(__name__)


def decoded_texts(image_bytes: bytes) -> list[str]:
    """Every barcode text found in the image, unfiltered."""
    try:
        img = Image.open(io.BytesIO(image_bytes)).convert("RGB")
    except (UnidentifiedImageError, OSError) as e:
        logger.warning("unreadable image | err=%r", e)
        return []
    texts = []
    for res in zxingcpp.read_barcodes(img):
        raw = (res.text or "").strip()
        if raw:
            texts.append(raw)
    logger.debug("decoded | count=%s | texts=%s", len(texts), texts)
    return texts


def decode_isbn(image_bytes: bytes) -> Optional[str]:
    for raw in decoded_texts(image_bytes):
        isbn = normalize_isbn(raw)
        if not isinstance(isbn, InvalidIdentifier):
            return isbn
        logger.debug("skipping barcode | raw=%r | reason=%s", raw, isbn.reason)
    return None
