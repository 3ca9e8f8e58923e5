"""In-memory virtual file system.

``VirtualFileSystem`` owns the canonical project tree. Nodes live in a flat
path-keyed map; a derived parent -> children index is maintained
incrementally for listing, rename and delete. Directories are derived from
file path prefixes, plus explicit markers for empty directories.

Every mutating operation validates first and only then applies, so it either
fully succeeds (bumping ``version`` exactly once and notifying subscribers)
or raises without touching the tree.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterator

from livepreview.errors import NotFoundError, PathError
from livepreview.vfs.models import FileNode, NodeKind, ProjectSnapshot
from livepreview.vfs.paths import (
    ROOT,
    ancestors_of,
    infer_language,
    is_within,
    normalize_path,
    parent_of,
)


class ChangeKind(str, Enum):
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"


@dataclass(frozen=True)
class ChangeEvent:
    """One applied mutation, delivered to subscribers after the fact.

    ``paths`` lists every affected node path. For renames, ``renamed`` maps
    each old path to its new path.
    """

    version: int
    kind: ChangeKind
    paths: tuple[str, ...]
    renamed: dict[str, str] = field(default_factory=dict)


Listener = Callable[[ChangeEvent], None]


class VirtualFileSystem:
    """The single source of truth for a project's files.

    Instances are passed explicitly to every component that reads the tree;
    there is no module-level tree, so independent sessions can coexist.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, FileNode] = {}
        self._children: dict[str, set[str]] = {ROOT: set()}
        self._listeners: list[Listener] = []
        self._version = 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def version(self) -> int:
        """Tree-wide version, incremented once per applied mutation."""
        return self._version

    def exists(self, path: str) -> bool:
        path = normalize_path(path)
        return path in self._nodes or path in self._children

    def is_file(self, path: str) -> bool:
        node = self._nodes.get(normalize_path(path))
        return node is not None and node.is_file

    def is_directory(self, path: str) -> bool:
        return normalize_path(path) in self._children

    def get_node(self, path: str) -> FileNode | None:
        """Return the node at *path*; implicit directories get a synthesized node."""
        path = normalize_path(path)
        node = self._nodes.get(path)
        if node is None and path in self._children:
            return FileNode.directory(path)
        return node

    def read_file(self, path: str) -> str:
        """Return the content of the file at *path*.

        Raises:
            NotFoundError: If nothing exists at *path*.
            PathError: If *path* is a directory.
        """
        path = normalize_path(path)
        node = self._nodes.get(path)
        if node is None:
            if path in self._children:
                raise PathError(f"Cannot read a directory: {path}", path=path)
            raise NotFoundError(f"File not found: {path}", path=path)
        if not node.is_file:
            raise PathError(f"Cannot read a directory: {path}", path=path)
        return node.content

    def list(self, directory: str = ROOT) -> list[FileNode]:
        """List the direct children of *directory*, sorted by name.

        Raises:
            NotFoundError: If *directory* does not exist.
            PathError: If *directory* is a file.
        """
        directory = normalize_path(directory)
        if directory not in self._children:
            if directory in self._nodes:
                raise PathError(f"Not a directory: {directory}", path=directory)
            raise NotFoundError(f"Directory not found: {directory}", path=directory)
        children = sorted(self._children[directory])
        return [self.get_node(child) for child in children]  # type: ignore[misc]

    def files(self) -> Iterator[FileNode]:
        """Iterate every file node in path order."""
        for path in sorted(self._nodes):
            node = self._nodes[path]
            if node.is_file:
                yield node

    def __len__(self) -> int:
        return sum(1 for node in self._nodes.values() if node.is_file)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_file(self, path: str, content: str = "") -> FileNode:
        """Create a new file.

        Raises:
            PathError: If *path* already exists or an ancestor is a file.
        """
        path = normalize_path(path)
        self._require_free(path)
        self._require_no_file_ancestor(path)
        node = FileNode.file(path, content, infer_language(path))
        self._insert(node)
        self._commit(ChangeKind.CREATED, (path,))
        return node

    def write_file(self, path: str, content: str) -> FileNode:
        """Overwrite the file at *path*, creating it when absent.

        Raises:
            PathError: If *path* is a directory or an ancestor is a file.
        """
        path = normalize_path(path)
        existing = self._nodes.get(path)
        if existing is None and path not in self._children:
            return self.create_file(path, content)
        if existing is None or not existing.is_file:
            raise PathError(f"Cannot write to a directory: {path}", path=path)
        node = FileNode.file(path, content, existing.language)
        self._nodes[path] = node
        self._commit(ChangeKind.MODIFIED, (path,))
        return node

    def create_directory(self, path: str) -> FileNode:
        """Materialise an (empty) directory marker at *path*."""
        path = normalize_path(path)
        if path == ROOT:
            raise PathError("The root directory always exists", path=path)
        self._require_free(path)
        self._require_no_file_ancestor(path)
        node = FileNode.directory(path)
        self._insert(node)
        self._commit(ChangeKind.CREATED, (path,))
        return node

    def delete_file(self, path: str) -> None:
        """Delete a single file.

        Raises:
            NotFoundError: If *path* does not exist.
            PathError: If *path* is a directory.
        """
        path = normalize_path(path)
        node = self._nodes.get(path)
        if node is None and path not in self._children:
            raise NotFoundError(f"File not found: {path}", path=path)
        if node is None or not node.is_file:
            raise PathError(f"Use delete_directory to remove a directory: {path}", path=path)
        self._remove(path)
        self._commit(ChangeKind.DELETED, (path,))

    def delete_directory(self, path: str, recursive: bool = True) -> list[str]:
        """Delete a directory and, when *recursive*, everything beneath it.

        Returns:
            The removed node paths (files and markers), sorted.

        Raises:
            NotFoundError: If the directory does not exist.
            PathError: If *path* is the root or a file, or the directory is
                non-empty and *recursive* is false.
        """
        path = normalize_path(path)
        if path == ROOT:
            raise PathError("Cannot delete the root directory", path=path)
        if path not in self._children:
            if path in self._nodes:
                raise PathError(f"Not a directory: {path}", path=path)
            raise NotFoundError(f"Directory not found: {path}", path=path)

        descendants = self._descendants(path)
        if descendants and not recursive:
            raise PathError(f"Directory is not empty: {path}", path=path)

        removed = sorted(descendants)
        for child in sorted(descendants, key=len, reverse=True):
            self._remove(child)
        if path in self._nodes:
            self._remove(path)
            removed.append(path)
        self._children.pop(path, None)
        self._prune_empty(parent_of(path))
        self._commit(ChangeKind.DELETED, tuple(removed or [path]))
        return removed

    def rename(self, old_path: str, new_path: str) -> dict[str, str]:
        """Move a file or directory; directory descendants move with it.

        Returns:
            Mapping of every moved node's old path to its new path.

        Raises:
            NotFoundError: If *old_path* does not exist.
            PathError: If *new_path* exists, lies inside *old_path*, or has a
                file ancestor.
        """
        old_path = normalize_path(old_path)
        new_path = normalize_path(new_path)
        if old_path == ROOT:
            raise PathError("Cannot rename the root directory", path=old_path)
        if not (old_path in self._nodes or old_path in self._children):
            raise NotFoundError(f"Path not found: {old_path}", path=old_path)
        if new_path == old_path:
            raise PathError(f"Source and target are the same: {old_path}", path=old_path)
        if is_within(new_path, old_path):
            raise PathError(
                f"Cannot move '{old_path}' inside itself ('{new_path}')", path=new_path
            )
        self._require_free(new_path)
        self._require_no_file_ancestor(new_path)

        moved = sorted(self._descendants(old_path))
        if old_path in self._nodes:
            moved.insert(0, old_path)
        mapping = {src: new_path + src[len(old_path):] for src in moved}

        nodes = [self._nodes[src] for src in moved]
        for src in sorted(moved, key=len, reverse=True):
            self._remove(src)
        self._children.pop(old_path, None)
        self._prune_empty(parent_of(old_path))
        for node in nodes:
            dst = mapping[node.path]
            if node.is_file:
                self._insert(FileNode.file(dst, node.content, infer_language(dst)))
            else:
                self._insert(FileNode.directory(dst))

        self._commit(
            ChangeKind.RENAMED,
            tuple(list(mapping) + list(mapping.values())),
            renamed=mapping,
        )
        return mapping

    def replace_in_file(self, path: str, old: str, new: str) -> int:
        """Replace every occurrence of *old* with *new* in one mutation.

        Returns:
            The number of replacements made.

        Raises:
            NotFoundError: If the file is missing or *old* does not occur.
        """
        content = self.read_file(path)
        if not old:
            raise PathError("Search text must not be empty", path=normalize_path(path))
        count = content.count(old)
        if count == 0:
            raise NotFoundError(
                f"Text to replace not found in {normalize_path(path)}", path=normalize_path(path)
            )
        self.write_file(path, content.replace(old, new))
        return count

    def insert_in_file(self, path: str, line: int, text: str) -> None:
        """Insert *text* after line *line* (0 inserts at the top)."""
        content = self.read_file(path)
        lines = content.split("\n")
        if line < 0 or line > len(lines):
            raise PathError(
                f"Line {line} is out of range for {normalize_path(path)} ({len(lines)} lines)",
                path=normalize_path(path),
            )
        lines.insert(line, text)
        self.write_file(path, "\n".join(lines))

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* for change events; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Snapshot round-trip
    # ------------------------------------------------------------------

    def snapshot(self, messages: list[dict] | None = None) -> ProjectSnapshot:
        """Return the flat ``{path: content}`` form of the tree."""
        files: dict[str, str] = {}
        for path in sorted(self._nodes):
            node = self._nodes[path]
            if node.is_file:
                files[path] = node.content
            else:
                files[path + "/"] = ""
        return ProjectSnapshot(files=files, messages=list(messages or []))

    @classmethod
    def from_snapshot(cls, snapshot: ProjectSnapshot | dict[str, str]) -> "VirtualFileSystem":
        """Rehydrate a tree from a snapshot (or a bare ``{path: content}`` map).

        Raises:
            PathError: If the snapshot contains malformed or colliding paths.
        """
        files = snapshot.files if isinstance(snapshot, ProjectSnapshot) else snapshot
        fs = cls()
        for raw in sorted(files):
            if raw.endswith("/") and raw != "/":
                path = normalize_path(raw)
                if path in fs._children:
                    if path not in fs._nodes:
                        fs._nodes[path] = FileNode.directory(path)
                    continue
                fs._require_free(path)
                fs._require_no_file_ancestor(path)
                fs._insert(FileNode.directory(path))
            else:
                path = normalize_path(raw)
                fs._require_free(path)
                fs._require_no_file_ancestor(path)
                fs._insert(FileNode.file(path, files[raw], infer_language(path)))
        return fs

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_free(self, path: str) -> None:
        if path in self._nodes or path in self._children:
            raise PathError(f"Path already exists: {path}", path=path)

    def _require_no_file_ancestor(self, path: str) -> None:
        for ancestor in ancestors_of(path):
            node = self._nodes.get(ancestor)
            if node is not None and node.is_file:
                raise PathError(
                    f"Cannot create '{path}': ancestor '{ancestor}' is a file", path=path
                )

    def _descendants(self, directory: str) -> list[str]:
        return [p for p in self._nodes if is_within(p, directory)]

    def _insert(self, node: FileNode) -> None:
        self._nodes[node.path] = node
        if node.is_directory:
            self._children.setdefault(node.path, set())
        current = node.path
        while current != ROOT:
            parent = parent_of(current)
            siblings = self._children.setdefault(parent, set())
            if current in siblings:
                break
            siblings.add(current)
            current = parent

    def _remove(self, path: str) -> None:
        node = self._nodes.pop(path)
        if node.is_directory and not self._children.get(path):
            self._children.pop(path, None)
        parent = parent_of(path)
        self._children.get(parent, set()).discard(path)
        self._prune_empty(parent)

    def _prune_empty(self, directory: str) -> None:
        """Drop implicit directories that no longer have children."""
        current = directory
        while current != ROOT:
            if self._children.get(current) or current in self._nodes:
                return
            self._children.pop(current, None)
            parent = parent_of(current)
            self._children.get(parent, set()).discard(current)
            current = parent

    def _commit(
        self,
        kind: ChangeKind,
        paths: tuple[str, ...],
        renamed: dict[str, str] | None = None,
    ) -> None:
        self._version += 1
        event = ChangeEvent(
            version=self._version, kind=kind, paths=paths, renamed=dict(renamed or {})
        )
        for listener in list(self._listeners):
            listener(event)
