"""Admin image uploads, stored on disk and served under ``/uploads/``."""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Optional

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from .errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_EXTS = frozenset({".png", ".jpg", ".jpeg", ".webp", ".gif"})
URL_PREFIX = "/uploads/"


def has_file(file_obj: Optional[FileStorage]) -> bool:
    return bool(file_obj and getattr(file_obj, "filename", ""))


class UploadStore:
    def __init__(self, directory: Path, url_prefix: str = URL_PREFIX) -> None:
        self.directory = Path(directory)
        self.url_prefix = url_prefix if url_prefix.endswith("/") else url_prefix + "/"

    def ensure_dir(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def save_image(self, file_obj: FileStorage, label: str = "Image") -> str:
        """Store an uploaded image under a random name and return its public URL."""
        name = secure_filename(file_obj.filename or "")
        ext = os.path.splitext(name)[1].lower()
        if ext not in ALLOWED_IMAGE_EXTS:
            raise ValidationError(f"{label} must be a PNG, JPG, WEBP or GIF file.")
        self.ensure_dir()
        new_name = f"{uuid.uuid4().hex}{ext}"
        file_obj.save(str(self.directory / new_name))
        logger.info("Saved upload %s", new_name)
        return f"{self.url_prefix}{new_name}"

    def path_for(self, url: str) -> Optional[Path]:
        """Filesystem path for one of our upload URLs, or None for anything else."""
        url = (url or "").strip()
        if not url.startswith(self.url_prefix):
            return None
        name = url[len(self.url_prefix):]
        if not name or name != secure_filename(name):
            return None
        path = (self.directory / name).resolve()
        if path.parent != self.directory.resolve():
            return None
        return path

    def discard(self, url: str) -> bool:
        """Delete an uploaded file. URLs outside the upload area are ignored."""
        path = self.path_for(url)
        if path is None or not path.is_file():
            return False
        try:
            path.unlink()
        except OSError:
            logger.warning("Could not delete upload %s", path, exc_info=True)
            return False
        logger.info("Deleted upload %s", path.name)
        return True
