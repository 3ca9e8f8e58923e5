"""Data model for the in-memory project tree."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from livepreview.utils import content_hash


class NodeKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class FileNode:
    """One entry in the virtual tree.

    Nodes are immutable; every write replaces the node, so a reader holding a
    node always sees a consistent (path, content, hash) triple.
    """

    path: str
    kind: NodeKind
    content: str = ""
    language: str = "plaintext"
    modified_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    content_hash: str = ""

    @classmethod
    def file(cls, path: str, content: str, language: str) -> "FileNode":
        return cls(
            path=path,
            kind=NodeKind.FILE,
            content=content,
            language=language,
            content_hash=content_hash(content),
        )

    @classmethod
    def directory(cls, path: str) -> "FileNode":
        return cls(path=path, kind=NodeKind.DIRECTORY, language="")

    @property
    def is_file(self) -> bool:
        return self.kind is NodeKind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind is NodeKind.DIRECTORY

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1] or "/"


class ProjectSnapshot(BaseModel):
    """Flat, serialisable form of a project handed to the persistence layer.

    ``files`` maps normalised path to content. Empty directory markers are
    stored as keys with a trailing ``/`` and empty content.
    """

    files: dict[str, str] = Field(default_factory=dict)
    messages: list[dict[str, Any]] = Field(default_factory=list)

    def save(self, path: Path) -> Path:
        """Write the snapshot as JSON to *path*."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "ProjectSnapshot":
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_json(cls, raw: str) -> "ProjectSnapshot":
        """Accept either the full snapshot object or a bare ``{path: content}`` map."""
        data = json.loads(raw)
        if isinstance(data, dict) and "files" not in data:
            return cls(files=data)
        return cls.model_validate(data)
