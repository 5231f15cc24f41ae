"""
Script Library

Stores uploaded script text files per user on disk, with a JSON index.

Layout under the scripts root::

    index.json                      {username: {script_id: meta}}
    <user>/<script_id>/script.txt
    <user>/<script_id>/meta.json
"""

import json
import logging
import re
import shutil
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from .settings_store import read_json_file, write_json_file_atomic

logger = logging.getLogger(__name__)

MAX_TAGS = 20
MAX_REPLACEMENT_CHARS = 10
REPLACEMENT_CHAR = "\ufffd"

LANGUAGE_BY_EXTENSION = {
    "ps1": "PowerShell",
    "py": "Python",
    "sh": "Bash",
    "bash": "Bash",
    "yaml": "YAML",
    "yml": "YAML",
    "json": "JSON",
    "tf": "Terraform",
    "hcl": "HCL",
    "js": "JavaScript",
    "ts": "TypeScript",
    "go": "Go",
    "java": "Java",
    "cs": "C#",
    "cpp": "C++",
    "c": "C",
    "rb": "Ruby",
    "php": "PHP",
    "pl": "Perl",
    "txt": "Text",
}


def safe_text_from_bytes(data: bytes) -> str:
    """
    Decode an uploaded file as UTF-8 text.

    Raises:
        ValueError: If the content looks binary or is badly encoded
    """
    if not isinstance(data, (bytes, bytearray)):
        raise ValueError("Invalid file buffer")
    if b"\x00" in data:
        raise ValueError("File appears to be binary (null bytes found). Please upload text files only.")

    text = bytes(data).decode("utf-8", errors="replace")
    if text.count(REPLACEMENT_CHAR) > MAX_REPLACEMENT_CHARS:
        raise ValueError("File encoding appears invalid. Please ensure UTF-8 encoding.")
    return text


def normalize_tags(tags: Any) -> List[str]:
    """Accept a list or a comma-separated string; trim, drop empties, cap at MAX_TAGS."""
    if not tags:
        return []
    items = tags if isinstance(tags, (list, tuple)) else str(tags).split(",")
    cleaned = [str(tag).strip() for tag in items]
    return [tag for tag in cleaned if tag][:MAX_TAGS]


def detect_language(filename: str = "") -> str:
    extension = (filename or "").lower().rsplit(".", 1)[-1]
    return LANGUAGE_BY_EXTENSION.get(extension, "Text")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class ScriptRecord:
    """Metadata of one stored script."""

    id: str
    name: str
    original_name: str
    language: str
    size: int
    created_at: str
    updated_at: str
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "originalName": self.original_name,
            "language": self.language,
            "tags": list(self.tags),
            "size": self.size,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


class ScriptStore:
    """Per-user script library rooted at a directory."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._index_path = self._root / "index.json"
        self._lock = threading.Lock()

    def _folder(self, username: str, script_id: str) -> Path:
        safe_user = re.sub(r"[^\w.-]", "_", username)
        safe_id = re.sub(r"[^\w-]", "", str(script_id))
        return self._root / safe_user / safe_id

    def create(
        self,
        username: str,
        *,
        data: bytes,
        original_name: Optional[str] = None,
        name: Optional[str] = None,
        language: Optional[str] = None,
        tags: Any = None,
    ) -> Dict[str, Any]:
        """
        Validate and store an uploaded script.

        Raises:
            ValueError: If the upload is not acceptable UTF-8 text
        """
        original_name = str(original_name or "script.txt")
        content = safe_text_from_bytes(data)
        timestamp = _now()
        record = ScriptRecord(
            id=uuid4().hex,
            name=(name or "").strip() or original_name,
            original_name=original_name,
            language=(language or "").strip() or detect_language(original_name),
            tags=normalize_tags(tags),
            size=len(content),
            created_at=timestamp,
            updated_at=timestamp,
        )
        meta = record.to_dict()

        folder = self._folder(username, record.id)
        with self._lock:
            folder.mkdir(parents=True, exist_ok=True)
            (folder / "script.txt").write_text(content, encoding="utf-8")
            (folder / "meta.json").write_text(json.dumps(meta, indent=2), encoding="utf-8")

            index = read_json_file(self._index_path)
            index.setdefault(username, {})[record.id] = meta
            write_json_file_atomic(self._index_path, index)

        logger.info(f"Stored script {record.id} ({record.name}) for {username}")
        return meta

    def list_scripts(self, username: str) -> List[Dict[str, Any]]:
        with self._lock:
            index = read_json_file(self._index_path)
        scripts = list((index.get(username) or {}).values())
        scripts.sort(key=lambda meta: meta.get("updatedAt") or meta.get("createdAt") or "", reverse=True)
        return scripts

    def get(self, username: str, script_id: str) -> Optional[Dict[str, Any]]:
        """Return {"meta", "content"} or None if the script is unknown or unreadable."""
        with self._lock:
            index = read_json_file(self._index_path)
        meta = (index.get(username) or {}).get(script_id)
        if not meta:
            return None

        script_path = self._folder(username, script_id) / "script.txt"
        try:
            content = script_path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to read script {script_id}: {e}")
            return None
        return {"meta": meta, "content": content}

    def delete(self, username: str, script_id: str) -> bool:
        with self._lock:
            index = read_json_file(self._index_path)
            if not (index.get(username) or {}).get(script_id):
                return False

            shutil.rmtree(self._folder(username, script_id), ignore_errors=True)
            del index[username][script_id]
            write_json_file_atomic(self._index_path, index)

        logger.info(f"Deleted script {script_id} for {username}")
        return True
