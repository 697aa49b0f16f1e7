"""JSON document files with serialized, atomic writes."""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any

from .errors import StoreIntegrityError

logger = logging.getLogger(__name__)


def dumps(data: Any) -> str:
    """Pretty-printed JSON plus a trailing newline (the on-disk format)."""
    return json.dumps(data, ensure_ascii=False, indent=2) + "\n"


class JsonDocument:
    """One JSON file owned by one store.

    ``lock`` is held by the owning store for the whole mutate-then-write
    sequence, so writers never interleave. ``write`` goes through a temp file
    and ``os.replace``; on failure the previous file is left untouched.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.lock = threading.RLock()

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> Any:
        """Parse the file. Raises FileNotFoundError if it does not exist."""
        with open(self.path, "r", encoding="utf-8") as f:
            raw = f.read()
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreIntegrityError(
                f"{self.path.name} is not valid JSON.",
                detail=f"{self.path}: {e}",
            ) from e

    def write(self, data: Any) -> None:
        payload = dumps(data)
        with self.lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_name(self.path.name + ".tmp")
            try:
                with open(tmp_path, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_path, self.path)
            except OSError:
                logger.exception("Failed writing %s", self.path)
                try:
                    tmp_path.unlink()
                except OSError:
                    pass
                raise
