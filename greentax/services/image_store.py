"""
Image Store - Persists uploaded proof images and returns their public URL
"""
import logging
from pathlib import Path
from typing import Optional

from greentax.config import settings
from greentax.exceptions import InvalidImage

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".webp"}
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}


class ImageStore:
    """Local filesystem storage for proof images"""

    def __init__(self, upload_dir: Optional[str] = None, base_url: Optional[str] = None):
        self.upload_dir = Path(upload_dir or settings.UPLOAD_DIR)
        self.base_url = (base_url or settings.MEDIA_BASE_URL).rstrip("/")

    def check_upload(
        self,
        filename: Optional[str],
        content_type: Optional[str],
        size: int
    ) -> None:
        """Accept images only, up to UPLOAD_MAX_BYTES."""
        extension = Path(filename or "").suffix.lower()
        if extension not in ALLOWED_EXTENSIONS or (content_type or "").lower() not in ALLOWED_CONTENT_TYPES:
            raise InvalidImage("Only image files are allowed!")
        if size > settings.UPLOAD_MAX_BYTES:
            raise InvalidImage(f"Image exceeds the {settings.UPLOAD_MAX_BYTES} byte limit")

    def save(self, image_bytes: bytes, filename: str) -> str:
        """Write bytes under the upload dir and return the image URL."""
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        safe_name = Path(filename).name
        (self.upload_dir / safe_name).write_bytes(image_bytes)
        url = f"{self.base_url}/{safe_name}"
        logger.info(f"Image stored: {url}")
        return url

    def delete(self, filename: str) -> None:
        """Remove a stored image; missing files are ignored."""
        (self.upload_dir / Path(filename).name).unlink(missing_ok=True)
        logger.info(f"Image removed: {filename}")


# Singleton instance
image_store = ImageStore()
