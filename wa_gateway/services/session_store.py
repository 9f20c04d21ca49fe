"""File-backed credential store for the chat session.

Auth material is a mapping of document name to JSON value; each document
lives in ``<session_path>/<name>.json``.
"""

import json
import shutil
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from wa_gateway.logging_config import get_logger

logger = get_logger("session_store")

SESSION_FILE_MARKERS = ("creds", "session", "pre-key")
DEFAULT_CLEANUP_MAX_AGE_SECONDS = 7 * 24 * 60 * 60

_FILE_TYPES = (
    ("creds", "credentials"),
    ("session", "session"),
    ("pre-key", "pre-key"),
    ("sender-key", "sender-key"),
    ("app-state", "app-state"),
)


class SessionStoreError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def _file_name(name: str) -> str:
    return name.replace("/", "__").replace(":", "-") + ".json"


def _file_type(filename: str) -> str:
    for marker, label in _FILE_TYPES:
        if marker in filename:
            return label
    return "unknown"


class SessionStore:
    def __init__(self, session_path: str | Path):
        self.path = Path(session_path)

    def _json_files(self) -> list[Path]:
        if not self.path.is_dir():
            return []
        return sorted(p for p in self.path.iterdir() if p.is_file() and p.suffix == ".json")

    def load(self) -> dict[str, Any]:
        """Read every stored document. Unreadable JSON means the session is corrupt."""
        self.path.mkdir(parents=True, exist_ok=True)
        material: dict[str, Any] = {}
        for file in self._json_files():
            try:
                material[file.stem] = json.loads(file.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                raise SessionStoreError(f"Corrupt session file {file.name}: {exc}") from exc
        logger.info(f"Loaded session material ({len(material)} documents)", extra={"context": {"path": str(self.path)}})
        return material

    def persist(self, delta: dict[str, Any]) -> None:
        """Write changed documents; a ``None`` value deletes the document."""
        self.path.mkdir(parents=True, exist_ok=True)
        for name, value in delta.items():
            target = self.path / _file_name(name)
            if value is None:
                target.unlink(missing_ok=True)
                continue
            tmp = target.with_suffix(".json.tmp")
            tmp.write_text(json.dumps(value, ensure_ascii=False), encoding="utf-8")
            tmp.replace(target)
        logger.debug(f"Persisted {len(delta)} session documents")

    def reset(self) -> dict:
        logger.warning("Resetting session: removing stored credentials")
        removed = 0
        if self.path.is_dir():
            for file in self.path.iterdir():
                if file.is_file():
                    file.unlink()
                    removed += 1
                    logger.debug(f"Deleted session file: {file.name}")
        logger.info(f"Session reset completed ({removed} files removed)")
        return {"success": True, "removed": removed, "message": "Session reset successfully"}

    def exists(self) -> bool:
        return any(
            any(marker in file.name for marker in SESSION_FILE_MARKERS) for file in self._json_files()
        )

    def info(self) -> dict:
        files = []
        mtimes = []
        for file in self._json_files():
            stat = file.stat()
            mtimes.append(stat.st_mtime)
            files.append(
                {
                    "name": file.name,
                    "size": stat.st_size,
                    "modified": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
                    "type": _file_type(file.name),
                }
            )
        last_modified = max(mtimes, default=None)
        return {
            "exists": bool(files),
            "path": str(self.path),
            "files": files,
            "total_files": len(files),
            "last_modified": (
                datetime.fromtimestamp(last_modified, tz=timezone.utc).isoformat() if last_modified else None
            ),
        }

    def cleanup_old(self, max_age_seconds: int = DEFAULT_CLEANUP_MAX_AGE_SECONDS, now: Optional[float] = None) -> dict:
        now = time.time() if now is None else now
        cleaned = 0
        for file in self._json_files():
            if now - file.stat().st_mtime > max_age_seconds:
                file.unlink()
                cleaned += 1
                logger.debug(f"Cleaned up old session file: {file.name}")
        if cleaned:
            logger.info(f"Cleaned up {cleaned} old session files")
        return {"cleaned": cleaned, "message": f"Cleaned up {cleaned} old session files"}

    def backup(self, now: Optional[float] = None) -> dict:
        if not self.path.is_dir():
            raise SessionStoreError("No session directory found to backup")
        stamp = int((time.time() if now is None else now) * 1000)
        backup_path = self.path.with_name(f"{self.path.name}_backup_{stamp}")
        backup_path.mkdir(parents=True, exist_ok=True)
        copied = 0
        for file in self._json_files():
            shutil.copy2(file, backup_path / file.name)
            copied += 1
        logger.info(f"Session backup created: {backup_path} ({copied} files)")
        return {"success": True, "backup_path": str(backup_path), "files_backed_up": copied}
