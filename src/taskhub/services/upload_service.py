"""Profile picture storage on the local filesystem.

Learn: Files land in settings.upload_dir and are served back by the
StaticFiles mount at /uploads (see main.create_app). The stored name is
derived from the user id and a millisecond timestamp, never from the
client's filename, so uploads cannot overwrite each other or escape the
directory.
"""

import time
import uuid
from pathlib import Path

import structlog
from fastapi import UploadFile

from taskhub.errors import InvalidInput

logger = structlog.get_logger()

UPLOAD_URL_PREFIX = "/uploads"

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


class ProfilePictureStore:
    """Validate and persist uploaded profile pictures."""

    def __init__(self, upload_dir: Path, max_bytes: int, allowed_types: list[str]):
        self.upload_dir = upload_dir
        self.max_bytes = max_bytes
        self.allowed_types = allowed_types

    async def save(self, user_id: uuid.UUID, file: UploadFile) -> tuple[Path, str]:
        """Write the upload to disk. Returns (path on disk, public URL)."""
        if file.content_type not in self.allowed_types:
            raise InvalidInput(
                "Only image files are allowed ("
                + ", ".join(self.allowed_types)
                + ")"
            )

        data = await file.read(self.max_bytes + 1)
        if not data:
            raise InvalidInput("No file uploaded. Please upload an image file.")
        if len(data) > self.max_bytes:
            raise InvalidInput(
                f"File too large. Maximum size is {self.max_bytes // (1024 * 1024)}MB"
            )

        ext = _EXTENSIONS.get(file.content_type) or Path(file.filename or "").suffix
        filename = f"profile-{user_id}-{int(time.time() * 1000)}{ext}"

        self.upload_dir.mkdir(parents=True, exist_ok=True)
        path = self.upload_dir / filename
        path.write_bytes(data)

        logger.info("upload.saved", user_id=str(user_id), filename=filename, size=len(data))
        return path, f"{UPLOAD_URL_PREFIX}/{filename}"

    def discard(self, path: Path) -> None:
        """Remove a file written by save() when the follow-up update failed."""
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("upload.cleanup_failed", path=str(path), error=str(e))
