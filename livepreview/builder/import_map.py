"""Specifier -> URL resolution table for the sandbox's native module loader.

Internal modules are keyed by their canonical virtual path (the linker
rewrites every internal specifier to that path) and map to their artifact
URL. External bare specifiers map to ``{registry}/{package}@{version}`` with
the version passed through from the source, or the configured default.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Iterable

from livepreview.builder.models import ImportEdge, ModuleRecord
from livepreview.builder.scanner import BareSpecifier, parse_specifier
from livepreview.config import RegistryConfig
from livepreview.errors import PreviewError


@dataclass
class ImportMap:
    """An ``{"imports": {...}}`` table."""

    imports: dict[str, str] = field(default_factory=dict)

    def __contains__(self, specifier: str) -> bool:
        return specifier in self.imports

    def __getitem__(self, specifier: str) -> str:
        return self.imports[specifier]

    def __len__(self) -> int:
        return len(self.imports)

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {"imports": dict(self.imports)}

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)


class ImportMapBuilder:
    """Merges internal artifact URLs with external package URLs."""

    def __init__(self, registry: RegistryConfig | None = None):
        self.registry = registry or RegistryConfig()

    def external_url(self, specifier: BareSpecifier | str) -> str:
        """Return the registry URL for a bare specifier.

        No network access happens here; this is pure URL construction.
        """
        if isinstance(specifier, str):
            parsed = parse_specifier(specifier)
            if not isinstance(parsed, BareSpecifier):
                raise ValueError(f"Not a bare specifier: {specifier!r}")
            specifier = parsed
        if specifier.is_url:
            return specifier.raw
        version = specifier.version or self.registry.default_version
        return f"{self.registry.base_url}/{specifier.name}@{version}{specifier.subpath}"

    def build(
        self,
        modules: Iterable[ModuleRecord],
        external_edges: Iterable[ImportEdge] = (),
        runtime_specifiers: Iterable[str] = (),
    ) -> ImportMap:
        """Build the table for one generation.

        Raises:
            PreviewError: If a module has no allocated URL.
        """
        imports: dict[str, str] = {}
        for record in modules:
            if not record.module_url:
                raise PreviewError(f"Module has no allocated URL: {record.path}", path=record.path)
            imports[record.path] = record.module_url

        for edge in external_edges:
            if edge.specifier not in imports:
                imports[edge.specifier] = edge.external_url or self.external_url(edge.specifier)

        for specifier in runtime_specifiers:
            imports.setdefault(specifier, self.external_url(specifier))

        return ImportMap(imports=imports)
