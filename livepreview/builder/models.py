"""Data model shared by the preview build components.

``ModuleRecord`` and ``PreviewSession`` are mutable runtime records owned by
the resolver and coordinator; ``ImportEdge`` and ``StyleAsset`` are immutable
values describing one build's dependency graph.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional

from livepreview.errors import Diagnostic

if TYPE_CHECKING:
    from livepreview.builder.import_map import ImportMap


class EdgeKind(str, Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"


@dataclass(frozen=True)
class ImportEdge:
    """One import site: ``specifier`` as written, resolved one of two ways.

    Internal edges carry ``resolved_path``; external edges carry
    ``external_url`` (when an external resolver was supplied).
    """

    from_path: str
    specifier: str
    kind: EdgeKind = EdgeKind.STATIC
    resolved_path: Optional[str] = None
    external_url: Optional[str] = None
    line: Optional[int] = None

    @property
    def is_external(self) -> bool:
        return self.resolved_path is None


@dataclass(frozen=True)
class StyleAsset:
    """A stylesheet pulled into the preview by an import statement."""

    path: str
    content: str = ""
    url: Optional[str] = None

    @property
    def is_external(self) -> bool:
        return self.url is not None


@dataclass
class ModuleRecord:
    """The build-ready form of one source file at one content hash.

    ``transpiled_code`` is the raw transform output; ``linked_code`` is the
    same code with every internal specifier rewritten to its canonical path
    and stylesheet imports removed. ``dependencies`` lists the resolved
    internal paths in import order.
    """

    path: str
    content_hash: str
    transpiled_code: str
    linked_code: str
    edges: list[ImportEdge] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    module_url: Optional[str] = None
    last_used_version: int = 0

    @property
    def externals(self) -> list[str]:
        return [edge.specifier for edge in self.edges if edge.is_external]

    def same_links(self, edges: list[ImportEdge]) -> bool:
        """True when *edges* resolve every specifier exactly as this record does."""
        return [(e.specifier, e.kind, e.resolved_path) for e in self.edges] == [
            (e.specifier, e.kind, e.resolved_path) for e in edges
        ]


@dataclass
class PreviewSession:
    """One published (or publishable) preview of the project."""

    entry_path: str
    import_map: ImportMap
    document_markup: str
    generation: int
    modules: list[str] = field(default_factory=list)
    module_urls: list[str] = field(default_factory=list)
    styles: list[StyleAsset] = field(default_factory=list)
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


__all__ = [
    "Diagnostic",
    "EdgeKind",
    "ImportEdge",
    "ModuleRecord",
    "PreviewSession",
    "StyleAsset",
]
