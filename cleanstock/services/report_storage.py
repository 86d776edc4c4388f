"""Local report bucket: stored PDF/PNG exports served over HTTP."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from werkzeug.utils import secure_filename

from cleanstock.errors import StoreError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredReport:
    filename: str
    path: Path
    size: int
    modified_at: datetime


class ReportStorage:
    def __init__(self, folder: str | Path):
        self.folder = Path(folder)

    def _path(self, filename: str) -> Path:
        safe_name = secure_filename(filename)
        if not safe_name:
            raise ValueError(f"Invalid report filename: {filename!r}")
        return self.folder / safe_name

    def _describe(self, path: Path) -> StoredReport:
        stat = path.stat()
        return StoredReport(
            filename=path.name,
            path=path,
            size=stat.st_size,
            modified_at=datetime.fromtimestamp(stat.st_mtime),
        )

    def save(self, filename: str, data: bytes) -> StoredReport:
        """Write ``data`` under ``filename``, replacing any earlier upload."""

        path = self._path(filename)
        try:
            self.folder.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            logger.error("Unable to store report %s: %s", path.name, exc)
            raise StoreError(str(exc), operation="upload_report") from exc
        logger.info("Stored report %s (%s bytes)", path.name, len(data))
        return self._describe(path)

    def find(self, filename: str) -> StoredReport | None:
        try:
            path = self._path(filename)
        except ValueError:
            return None
        if not path.is_file():
            return None
        return self._describe(path)

    def latest(self, extension: str) -> StoredReport | None:
        if not self.folder.is_dir():
            return None
        candidates = [
            path
            for path in self.folder.glob(f"inventory_*.{extension}")
            if path.is_file()
        ]
        if not candidates:
            return None
        newest = max(candidates, key=lambda path: (path.stat().st_mtime, path.name))
        return self._describe(newest)
