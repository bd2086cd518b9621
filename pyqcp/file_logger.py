"""Project activity log stored as JSON in the workspace."""

import json
import logging
from datetime import datetime
from pathlib import Path

from .config import DEFAULT_MAX_LOG_ENTRIES


class JsonFileLogHandler(logging.Handler):
    """Logging handler that appends records to a JSON array file.

    When the file holds ``max_entries`` entries it is moved to
    ``backup_path`` and a new log is started.
    """

    def __init__(
        self,
        path: Path,
        backup_path: Path,
        max_entries: int = DEFAULT_MAX_LOG_ENTRIES,
        level: int = logging.INFO,
    ):
        super().__init__(level=level)
        self.path = Path(path)
        self.backup_path = Path(backup_path)
        self.max_entries = max_entries

    def _read_entries(self) -> list:
        if not self.path.exists():
            return []
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError):
            return []
        return data if isinstance(data, list) else []

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = {
                "timestamp": datetime.fromtimestamp(record.created).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "message": self.format(record),
            }
            entries = self._read_entries()
            if len(entries) >= self.max_entries:
                self.path.replace(self.backup_path)
                entries = []
            entries.append(entry)

            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(entries, f, indent=2)
        except Exception:
            self.handleError(record)


def attach_file_logger(
    path: Path,
    backup_path: Path,
    max_entries: int = DEFAULT_MAX_LOG_ENTRIES,
) -> JsonFileLogHandler:
    """Attach a JsonFileLogHandler to the ``pyqcp`` logger.

    An existing handler for the same file is reused.
    """
    package_logger = logging.getLogger("pyqcp")
    for handler in package_logger.handlers:
        if isinstance(handler, JsonFileLogHandler) and handler.path == Path(path):
            return handler
    handler = JsonFileLogHandler(path, backup_path, max_entries=max_entries)
    package_logger.addHandler(handler)
    if package_logger.level == logging.NOTSET or package_logger.level > logging.INFO:
        package_logger.setLevel(logging.INFO)
    return handler
