"""Import graph resolution.

``ImportGraphResolver`` walks the import statements reachable from an entry
file depth-first. Each visited file is transformed (through the
``TranspileCache``) before its own imports are followed, internal specifiers
are resolved against the ``VirtualFileSystem`` and bare specifiers are
recorded as external edges. The walk produces modules in dependency-first
order, or a list of typed errors.

``ModuleRegistry`` keeps the live ``ModuleRecord`` per path across builds,
plus a reverse-dependency index used to invalidate dependents on edits.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator

from livepreview.builder.cache import TranspileCache, TranspileResult
from livepreview.builder.models import ImportEdge, ModuleRecord, StyleAsset
from livepreview.builder.scanner import (
    BareSpecifier,
    ImportStatement,
    RelativeSpecifier,
    import_lines,
    parse_specifier,
    rewrite,
    scan_imports,
)
from livepreview.config import Config
from livepreview.errors import (
    BuildError,
    CycleError,
    Diagnostic,
    ImportResolutionError,
    NotFoundError,
    PathError,
    PreviewError,
)
from livepreview.vfs.filesystem import VirtualFileSystem
from livepreview.vfs.paths import extension_of, join_path, normalize_path, parent_of

ExternalResolver = Callable[[BareSpecifier], str]

# ---------------------------------------------------------------------------
# Module registry
# ---------------------------------------------------------------------------


class ModuleRegistry:
    """At most one live ``ModuleRecord`` per path.

    Putting a record for a path replaces (and so invalidates) the previous
    one. ``invalidate`` drops a path's record together with every record that
    depends on it, directly or transitively.
    """

    def __init__(self) -> None:
        self._records: dict[str, ModuleRecord] = {}
        self._dependents: dict[str, set[str]] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, path: str) -> bool:
        return path in self._records

    def __iter__(self) -> Iterator[ModuleRecord]:
        return iter(list(self._records.values()))

    def get(self, path: str, digest: str | None = None) -> ModuleRecord | None:
        record = self._records.get(path)
        if record is None or (digest is not None and record.content_hash != digest):
            return None
        return record

    def put(self, record: ModuleRecord) -> ModuleRecord | None:
        """Register *record*, returning the record it replaced (if any)."""
        previous = self._records.get(record.path)
        if previous is not None:
            self._unlink(previous)
        self._records[record.path] = record
        for dependency in record.dependencies:
            self._dependents.setdefault(dependency, set()).add(record.path)
        return previous

    def dependents_of(self, path: str) -> set[str]:
        """Paths whose live record imports *path* directly."""
        return set(self._dependents.get(path, ()))

    def invalidate(self, paths: Iterable[str]) -> set[str]:
        """Drop the records for *paths* and everything depending on them.

        Returns:
            The paths whose records were dropped.
        """
        affected: set[str] = set()
        queue = deque(paths)
        while queue:
            path = queue.popleft()
            if path in affected:
                continue
            affected.add(path)
            queue.extend(self._dependents.get(path, ()))

        dropped: set[str] = set()
        for path in affected:
            record = self._records.pop(path, None)
            if record is not None:
                self._unlink(record)
                dropped.add(path)
        return dropped

    def prune(self, tree_version: int, grace_versions: int) -> list[str]:
        """Drop records unused for more than *grace_versions* tree versions."""
        cutoff = tree_version - grace_versions
        stale = [p for p, r in self._records.items() if r.last_used_version < cutoff]
        for path in stale:
            self._unlink(self._records.pop(path))
        return sorted(stale)

    def clear(self) -> None:
        self._records.clear()
        self._dependents.clear()

    def _unlink(self, record: ModuleRecord) -> None:
        for dependency in record.dependencies:
            dependents = self._dependents.get(dependency)
            if dependents is None:
                continue
            dependents.discard(record.path)
            if not dependents:
                del self._dependents[dependency]


# ---------------------------------------------------------------------------
# Resolution result
# ---------------------------------------------------------------------------


@dataclass
class ResolutionResult:
    """Everything one resolution pass learned about the project."""

    entry_path: str | None
    modules: list[ModuleRecord] = field(default_factory=list)
    edges: list[ImportEdge] = field(default_factory=list)
    styles: list[StyleAsset] = field(default_factory=list)
    errors: list[PreviewError] = field(default_factory=list)
    tree_version: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def order(self) -> list[str]:
        """Module paths in dependency-first order."""
        return [record.path for record in self.modules]

    @property
    def external_edges(self) -> list[ImportEdge]:
        return [edge for edge in self.edges if edge.is_external]

    def diagnostics(self) -> list[Diagnostic]:
        collected = [e.to_diagnostic() for e in self.errors]
        for record in self.modules:
            collected.extend(record.diagnostics)
        return collected

    def raise_for_errors(self) -> None:
        """Raise the single error, or a ``BuildError`` wrapping several."""
        if not self.errors:
            return
        if len(self.errors) == 1:
            raise self.errors[0]
        raise BuildError(self.errors)


@dataclass
class _Walk:
    """Mutable state of one depth-first traversal."""

    stack: list[str] = field(default_factory=list)
    done: set[str] = field(default_factory=set)
    failed: set[str] = field(default_factory=set)
    order: list[ModuleRecord] = field(default_factory=list)
    edges: list[ImportEdge] = field(default_factory=list)
    styles: dict[str, StyleAsset] = field(default_factory=dict)
    errors: list[PreviewError] = field(default_factory=list)
    _seen: set[tuple[str, str]] = field(default_factory=set)

    def error(self, exc: PreviewError) -> None:
        key = (type(exc).__name__, str(exc))
        if key not in self._seen:
            self._seen.add(key)
            self.errors.append(exc)

    def fail(self, path: str, exc: PreviewError) -> None:
        self.error(exc)
        self.failed.add(path)
        self.done.add(path)


def _stylesheet_stub(statement: ImportStatement) -> str:
    """Replacement for a removed stylesheet import that keeps bindings defined."""
    if statement.default_binding:
        return f"const {statement.default_binding} = {{}};"
    return ""


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class ImportGraphResolver:
    """Resolves the module graph reachable from an entry file."""

    def __init__(
        self,
        fs: VirtualFileSystem,
        cache: TranspileCache,
        registry: ModuleRegistry | None = None,
        config: Config | None = None,
        external_url: ExternalResolver | None = None,
    ):
        self.fs = fs
        self.cache = cache
        self.registry = registry if registry is not None else ModuleRegistry()
        self.config = config or Config()
        self.external_url = external_url

    # -- Entry and specifier resolution ------------------------------------

    def find_entry(self) -> str:
        """Return the first existing default entry point.

        Raises:
            NotFoundError: If none of the configured candidates exists.
        """
        for candidate in self.config.preview.entry_candidates:
            if self.fs.is_file(candidate):
                return normalize_path(candidate)
        raise NotFoundError(
            "No entry point found; looked for "
            + ", ".join(self.config.preview.entry_candidates)
        )

    def resolve_specifier(self, importer: str, specifier: RelativeSpecifier | str) -> str | None:
        """Resolve an internal specifier to an existing file path.

        Tries the literal path, then each configured extension, then an
        ``index`` file with each extension inside a directory of that name.
        Returns ``None`` when nothing matches (or the specifier is bare).
        """
        if isinstance(specifier, str):
            parsed = parse_specifier(specifier, self.config.path_aliases)
            if isinstance(parsed, BareSpecifier):
                return None
            specifier = parsed

        try:
            base = join_path(parent_of(importer), specifier.path)
        except PathError:
            return None

        extensions = self.config.resolve_extensions
        directory = base.rstrip("/")
        candidates = [base]
        candidates.extend(base + ext for ext in extensions)
        candidates.extend(f"{directory}/index{ext}" for ext in extensions)
        for candidate in candidates:
            if self.fs.is_file(candidate):
                return candidate
        return None

    # -- Graph walk ----------------------------------------------------------

    async def resolve(self, entry_path: str | None = None) -> ResolutionResult:
        """Walk the graph from *entry_path* (or the default entry).

        Never raises for project errors: they are collected in
        ``ResolutionResult.errors`` so independent files still get resolved
        and every problem is reported at once.
        """
        walk = _Walk()
        try:
            entry = normalize_path(entry_path) if entry_path else self.find_entry()
        except PreviewError as exc:
            return ResolutionResult(
                entry_path=entry_path, errors=[exc], tree_version=self.fs.version
            )

        await self._visit(entry, walk)
        return ResolutionResult(
            entry_path=entry,
            modules=walk.order,
            edges=walk.edges,
            styles=list(walk.styles.values()),
            errors=walk.errors,
            tree_version=self.fs.version,
        )

    async def _visit(self, path: str, walk: _Walk) -> None:
        node = self.fs.get_node(path)
        if node is None or not node.is_file:
            walk.fail(path, NotFoundError(f"File not found: {path}", path=path))
            return

        result = await self.cache.get(path, node.content, node.content_hash)
        if not result.ok:
            walk.fail(path, result.error)  # type: ignore[arg-type]
            return

        walk.stack.append(path)
        edges: list[ImportEdge] = []
        dependencies: list[str] = []
        replacements: list[tuple[int, int, str]] = []
        local_ok = True
        source_lines = import_lines(node.content)

        for statement in scan_imports(result.code):
            specifier = parse_specifier(statement.specifier, self.config.path_aliases)
            line = source_lines.get(statement.specifier)

            if isinstance(specifier, BareSpecifier):
                url = self.external_url(specifier) if self.external_url else None
                if extension_of(specifier.name + specifier.subpath) == ".css":
                    walk.styles.setdefault(
                        specifier.raw, StyleAsset(path=specifier.raw, url=url or specifier.raw)
                    )
                    replacements.append(
                        (statement.statement_start, statement.statement_end, _stylesheet_stub(statement))
                    )
                    continue
                edges.append(
                    ImportEdge(
                        from_path=path,
                        specifier=statement.specifier,
                        kind=statement.kind,
                        external_url=url,
                        line=line,
                    )
                )
                continue

            target = self.resolve_specifier(path, specifier)
            if target is None:
                walk.error(ImportResolutionError(statement.specifier, path, line))
                local_ok = False
                continue

            edges.append(
                ImportEdge(
                    from_path=path,
                    specifier=statement.specifier,
                    kind=statement.kind,
                    resolved_path=target,
                    line=line,
                )
            )

            if extension_of(target) == ".css":
                if target not in walk.styles:
                    walk.styles[target] = StyleAsset(path=target, content=self.fs.read_file(target))
                replacements.append(
                    (statement.statement_start, statement.statement_end, _stylesheet_stub(statement))
                )
                continue

            replacements.append((statement.start, statement.end, target))
            if target not in dependencies:
                dependencies.append(target)

            if target in walk.stack:
                walk.error(CycleError(walk.stack[walk.stack.index(target):]))
                local_ok = False
                continue
            if target not in walk.done:
                await self._visit(target, walk)

        walk.stack.pop()
        if not local_ok:
            walk.failed.add(path)
            walk.done.add(path)
            return

        record = self._record_for(path, node.content_hash, result, edges, dependencies, replacements)
        walk.done.add(path)
        walk.order.append(record)
        walk.edges.extend(edges)

    def _record_for(
        self,
        path: str,
        digest: str,
        result: TranspileResult,
        edges: list[ImportEdge],
        dependencies: list[str],
        replacements: list[tuple[int, int, str]],
    ) -> ModuleRecord:
        """Reuse the registered record when it is still valid, else build one.

        A new record is only registered when the tree still holds the content
        it was built from; otherwise it stays private to this build.
        """
        existing = self.registry.get(path, digest)
        if existing is not None and existing.same_links(edges):
            existing.last_used_version = self.fs.version
            return existing

        record = ModuleRecord(
            path=path,
            content_hash=digest,
            transpiled_code=result.code,
            linked_code=rewrite(result.code, replacements),
            edges=edges,
            dependencies=dependencies,
            diagnostics=list(result.diagnostics),
            last_used_version=self.fs.version,
        )
        current = self.fs.get_node(path)
        if current is not None and current.is_file and current.content_hash == digest:
            self.registry.put(record)
        return record
