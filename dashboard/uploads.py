import logging
import secrets
from pathlib import Path
from typing import Any
from urllib.parse import unquote
from urllib.parse import urlparse

from django.conf import settings
from PIL import Image

from dashboard.backend import Backend


logger = logging.getLogger(__name__)

IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}
IMAGE_MIMES = {"image/jpeg", "image/png", "image/webp", "image/gif"}
BRAND_EXTS = IMAGE_EXTS | {".ico"}
BRAND_MIMES = IMAGE_MIMES | {"image/x-icon", "image/vnd.microsoft.icon"}


class UploadRejected(Exception):
    def __init__(self, code: str, *, status: int = 400, details: dict[str, Any] | None = None) -> None:
        super().__init__(code)
        self.code = code
        self.status = status
        self.details = details or {}


def upload_max_bytes() -> int:
    return int(getattr(settings, "DASHBOARD_UPLOAD_MAX_BYTES", 5 * 1024 * 1024))


def brand_upload_max_bytes() -> int:
    return int(getattr(settings, "DASHBOARD_BRAND_UPLOAD_MAX_BYTES", 10 * 1024 * 1024))


def validate_upload(
    f: Any,
    *,
    max_bytes: int,
    allowed_exts: set[str] = IMAGE_EXTS,
    allowed_mimes: set[str] = IMAGE_MIMES,
) -> str:
    """Check an uploaded image and return its lower-cased extension."""
    size = int(getattr(f, "size", 0) or 0)
    if size <= 0:
        raise UploadRejected("empty_file")
    if size > max_bytes:
        raise UploadRejected("file_too_large", status=413, details={"maxBytes": max_bytes})

    original_name = str(getattr(f, "name", "") or "")
    ext = Path(original_name).suffix.lower()
    content_type = str(getattr(f, "content_type", "") or "").lower()
    if ext not in allowed_exts:
        raise UploadRejected("invalid_file_type", details={"allowedExtensions": sorted(allowed_exts)})
    if content_type and content_type not in allowed_mimes:
        raise UploadRejected("invalid_file_type", details={"allowedMimeTypes": sorted(allowed_mimes)})

    try:
        f.seek(0)
        image = Image.open(f)
        image.verify()
    except Exception:
        logger.info("Rejected upload that is not a readable image", extra={"fileName": original_name})
        raise UploadRejected("invalid_image") from None
    finally:
        f.seek(0)
    return ext


def storage_key(prefix: str, ext: str) -> str:
    token = secrets.token_urlsafe(12).replace("-", "").replace("_", "")
    name = f"{token}{ext}"
    prefix = prefix.strip("/")
    return f"{prefix}/{name}" if prefix else name


def brand_storage_key(setting_key: str, user_id: str, ext: str) -> str:
    token = secrets.token_urlsafe(8).replace("-", "").replace("_", "")
    safe_key = "".join(ch for ch in setting_key if ch.isalnum() or ch == "_") or "asset"
    return f"{safe_key}_{user_id}_{token}{ext}"


def store_upload(
    backend: Backend,
    bucket: str,
    prefix: str,
    f: Any,
    *,
    max_bytes: int | None = None,
    key: str | None = None,
    allowed_exts: set[str] = IMAGE_EXTS,
    allowed_mimes: set[str] = IMAGE_MIMES,
) -> str:
    """Validate ``f``, write it to ``bucket`` and return its public URL."""
    ext = validate_upload(
        f,
        max_bytes=max_bytes or upload_max_bytes(),
        allowed_exts=allowed_exts,
        allowed_mimes=allowed_mimes,
    )
    path = key or storage_key(prefix, ext)
    content_type = str(getattr(f, "content_type", "") or "") or "application/octet-stream"
    return backend.upload_file(bucket, path, f.read(), content_type=content_type)


def storage_path_from_url(url: str, bucket: str) -> str | None:
    """Object path inside ``bucket`` for a public URL, or None for foreign URLs."""
    path = urlparse(str(url or "")).path
    marker = f"/storage/v1/object/public/{bucket}/"
    idx = path.find(marker)
    if idx < 0:
        return None
    key = unquote(path[idx + len(marker):])
    return key or None
