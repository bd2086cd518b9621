"""File-system primitives for a QCP project workspace."""

import json
import logging
import shutil
from pathlib import Path
from typing import Any, Union

from .exceptions import PersistenceError

logger = logging.getLogger(__name__)

QCP_DIR = ".qcp"
CONFIG_FILE = f"{QCP_DIR}/qcp-config.json"
CONFIG_BACKUP_FILE = f"{QCP_DIR}/qcp-config.bak.json"
LOG_FILE = f"{QCP_DIR}/qcp-log.json"
LOG_BACKUP_FILE = f"{QCP_DIR}/qcp-log.bak.json"
BACKUP_DIR = f"{QCP_DIR}/backups"
SRC_DIR = "src"
SOURCE_PATTERN = "*.ts"

PathLike = Union[str, Path]


class Workspace:
    """Paths and file access for a project rooted at ``root``.

    Text is read and written without newline translation so file content
    round-trips byte-for-byte with the remote code field.
    """

    def __init__(self, root: PathLike):
        self.root = Path(root).resolve()

    @property
    def src_dir(self) -> Path:
        return self.root / SRC_DIR

    @property
    def config_path(self) -> Path:
        return self.root / CONFIG_FILE

    @property
    def config_backup_path(self) -> Path:
        return self.root / CONFIG_BACKUP_FILE

    @property
    def backup_root(self) -> Path:
        return self.root / BACKUP_DIR

    def resolve(self, path: PathLike) -> Path:
        """Resolve a workspace-relative or absolute path."""
        path = Path(path)
        if not path.is_absolute():
            path = self.root / path
        return path.resolve()

    def relative(self, path: PathLike) -> str:
        """Workspace-relative posix path, or the absolute path if outside."""
        resolved = self.resolve(path)
        try:
            return resolved.relative_to(self.root).as_posix()
        except ValueError:
            return resolved.as_posix()

    def exists(self, path: PathLike) -> bool:
        return self.resolve(path).exists()

    def read_text(self, path: PathLike) -> str:
        try:
            with open(self.resolve(path), encoding="utf-8", newline="") as f:
                return f.read()
        except UnicodeDecodeError as e:
            raise PersistenceError(f"{self.relative(path)} is not valid UTF-8") from e

    def write_text(self, path: PathLike, content: str) -> Path:
        target = self.resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        return target

    def read_json(self, path: PathLike) -> Any:
        with open(self.resolve(path), encoding="utf-8") as f:
            return json.load(f)

    def write_json(self, path: PathLike, value: Any) -> Path:
        target = self.resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding="utf-8") as f:
            json.dump(value, f, indent=2)
            f.write("\n")
        return target

    def copy(self, src: PathLike, dest: PathLike) -> Path:
        target = self.resolve(dest)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(self.resolve(src), target)
        return target

    def list_files(
        self, directory: PathLike = SRC_DIR, pattern: str = SOURCE_PATTERN
    ) -> list[Path]:
        """List files matching ``pattern`` directly inside ``directory``.

        Returns:
            Sorted list of absolute paths (empty if the directory is missing)
        """
        base = self.resolve(directory)
        if not base.is_dir():
            logger.debug(f"Directory {base} does not exist")
            return []
        return sorted(p for p in base.glob(pattern) if p.is_file())

    def source_files(self) -> list[Path]:
        return self.list_files(SRC_DIR, SOURCE_PATTERN)
