"""Virtual path normalisation.

Virtual paths are case-sensitive, always begin with ``/`` and never end with
``/`` (except the root itself). Files and directories share one namespace.
"""

from __future__ import annotations

import posixpath

from livepreview.errors import PathError

ROOT = "/"

_LANGUAGES: dict[str, str] = {
    ".tsx": "typescript",
    ".ts": "typescript",
    ".jsx": "javascript",
    ".js": "javascript",
    ".mjs": "javascript",
    ".json": "json",
    ".css": "css",
    ".html": "html",
    ".md": "markdown",
    ".svg": "xml",
}


def normalize_path(raw: str) -> str:
    """Normalise *raw* into a canonical virtual path.

    Collapses ``.`` and ``..`` segments and adds a missing leading ``/``. A
    single trailing ``/`` is dropped.

    Raises:
        PathError: If the path is empty, contains an empty segment, a NUL
            byte or a backslash, or climbs above the root.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise PathError("Path must be a non-empty string", path=str(raw))
    if "\x00" in raw or "\\" in raw:
        raise PathError(f"Path contains an illegal character: {raw!r}", path=raw)

    path = raw if raw.startswith("/") else "/" + raw
    if "//" in path:
        raise PathError(f"Path contains an empty segment: {raw!r}", path=raw)
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]

    segments: list[str] = []
    for segment in path.split("/")[1:]:
        if segment == "":
            break
        if segment == ".":
            continue
        if segment == "..":
            if not segments:
                raise PathError(f"Path escapes the root: {raw!r}", path=raw)
            segments.pop()
            continue
        segments.append(segment)

    return ROOT + "/".join(segments)


def parent_of(path: str) -> str:
    """Return the parent directory of a normalised path (root's parent is root)."""
    if path == ROOT:
        return ROOT
    parent = path.rsplit("/", 1)[0]
    return parent or ROOT


def ancestors_of(path: str) -> list[str]:
    """Return every ancestor directory of *path*, nearest first, excluding root."""
    result: list[str] = []
    current = parent_of(path)
    while current != ROOT:
        result.append(current)
        current = parent_of(current)
    return result


def join_path(directory: str, relative: str) -> str:
    """Resolve *relative* against *directory* and normalise the result."""
    if relative.startswith("/"):
        return normalize_path(relative)
    return normalize_path(posixpath.join(directory, relative))


def is_within(path: str, directory: str) -> bool:
    """True when *path* is strictly inside *directory*."""
    if directory == ROOT:
        return path != ROOT
    return path.startswith(directory + "/")


def basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def extension_of(path: str) -> str:
    """Return the lower-cased extension of the final segment (``""`` if none)."""
    name = basename(path)
    dot = name.rfind(".")
    if dot <= 0:
        return ""
    return name[dot:].lower()


def infer_language(path: str) -> str:
    """Infer an editor language id from the file extension."""
    return _LANGUAGES.get(extension_of(path), "plaintext")
