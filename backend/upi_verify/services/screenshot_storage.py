"""
Screenshot Storage — Keeps uploaded payment screenshots on local disk.
"""
import logging
import os
import random
import time
from dataclasses import dataclass
from typing import Optional

from upi_verify.config import get_settings

logger = logging.getLogger(__name__)

_EXTENSIONS = {"image/jpeg": ".jpg", "image/png": ".png", "image/webp": ".webp"}


@dataclass
class StoredScreenshot:
    filename: str
    path: str
    url: str


class ScreenshotStorage:
    """Writes screenshots under UPLOAD_DIR with unique ``upi-<ts>-<rand>`` names."""

    def __init__(self, upload_dir: Optional[str] = None, url_prefix: Optional[str] = None):
        settings = get_settings()
        self.upload_dir = upload_dir or settings.UPLOAD_DIR
        self.url_prefix = (url_prefix or settings.UPLOAD_URL_PREFIX).rstrip("/")

    def save(self, content: bytes, content_type: str) -> StoredScreenshot:
        """Client filenames are ignored; the extension comes from the accepted content type."""
        os.makedirs(self.upload_dir, exist_ok=True)

        ext = _EXTENSIONS.get(content_type, "")
        filename = f"upi-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{ext}"
        path = os.path.join(self.upload_dir, filename)

        with open(path, "wb") as f:
            f.write(content)

        logger.info("Stored screenshot %s (%d bytes)", filename, len(content))
        return StoredScreenshot(filename=filename, path=path, url=f"{self.url_prefix}/{filename}")

    def delete(self, filename: Optional[str]) -> bool:
        """Best-effort removal; failures are logged, never raised."""
        if not filename:
            return False
        path = os.path.join(self.upload_dir, os.path.basename(filename))
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error("Error deleting screenshot %s: %s", path, e)
            return False
        logger.info("Deleted screenshot %s", filename)
        return True
