from __future__ import annotations

import base64
import binascii
from typing import Optional

from evquote.config import settings
from evquote.utils.validators import ValidationError

TOO_LARGE_MSG = "图片文件过大，请上传小于 2MB 的图片 (Image too large, max 2MB)"


def logo_data_uri(raw: bytes, content_type: Optional[str], max_bytes: Optional[int] = None) -> str:
    """Checks the upload before anything is stored and returns it as a data URI."""
    limit = max_bytes or settings.logo_max_bytes
    if len(raw) > limit:
        raise ValidationError(TOO_LARGE_MSG)
    if not raw:
        raise ValidationError("empty image")
    ctype = (content_type or "").split(";")[0].strip().lower()
    if not ctype.startswith("image/"):
        raise ValidationError(f"not an image: {content_type}")
    return f"data:{ctype};base64,{base64.b64encode(raw).decode('ascii')}"


def decode_data_uri(uri: str) -> bytes:
    if not uri or not uri.startswith("data:") or ";base64," not in uri:
        raise ValueError("not a base64 data URI")
    try:
        return base64.b64decode(uri.split(";base64,", 1)[1], validate=True)
    except binascii.Error as e:
        raise ValueError(f"bad base64 payload: {e}") from e
