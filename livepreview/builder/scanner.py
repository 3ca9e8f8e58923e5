"""Static import/export statement scanner.

Finds ``import ... from "x"``, ``import "x"``, ``export ... from "x"`` and
``import("x")`` in JavaScript without executing it. Comments, string
literals and template literals are skipped so specifiers that merely appear
in text are ignored. Specifiers are classified exactly once, at parse time,
into :class:`RelativeSpecifier` or :class:`BareSpecifier`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from livepreview.builder.models import EdgeKind

# ---------------------------------------------------------------------------
# Specifier variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RelativeSpecifier:
    """An internal specifier.

    ``path`` is the specifier with any alias expanded: either relative to the
    importing file (``./x``, ``../x``) or absolute (``/x``).
    """

    raw: str
    path: str


@dataclass(frozen=True)
class BareSpecifier:
    """An external package reference, e.g. ``react`` or ``@scope/pkg@2/sub``."""

    raw: str
    name: str
    version: str | None = None
    subpath: str = ""
    is_url: bool = False


Specifier = Union[RelativeSpecifier, BareSpecifier]

_URL_PREFIXES = ("http://", "https://", "data:", "blob:")


def parse_specifier(raw: str, aliases: dict[str, str] | None = None) -> Specifier:
    """Classify *raw* as internal or external.

    Aliases (e.g. ``{"@/": "/"}``) are expanded first; the result is
    internal when it begins with ``.`` or ``/``.
    """
    for prefix, target in (aliases or {}).items():
        if raw.startswith(prefix):
            return RelativeSpecifier(raw=raw, path=target + raw[len(prefix):])

    if raw.startswith((".", "/")):
        return RelativeSpecifier(raw=raw, path=raw)

    if raw.startswith(_URL_PREFIXES):
        return BareSpecifier(raw=raw, name=raw, is_url=True)

    parts = raw.split("/")
    if raw.startswith("@") and len(parts) >= 2:
        head, rest = parts[0] + "/" + parts[1], parts[2:]
    else:
        head, rest = parts[0], parts[1:]

    version: str | None = None
    at = head.rfind("@")
    if at > 0:
        head, version = head[:at], head[at + 1:] or None

    subpath = "/" + "/".join(rest) if rest else ""
    return BareSpecifier(raw=raw, name=head, version=version, subpath=subpath)


# ---------------------------------------------------------------------------
# Import statements
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ImportStatement:
    """One import-bearing statement.

    ``start``/``end`` delimit the specifier text (without quotes);
    ``statement_start``/``statement_end`` delimit the whole statement.
    ``default_binding`` is the default import name, if any.
    """

    specifier: str
    kind: EdgeKind
    start: int
    end: int
    statement_start: int
    statement_end: int
    line: int
    side_effect_only: bool = False
    default_binding: str | None = None


_DYNAMIC = re.compile(r"""import\s*\(\s*(['"`])([^'"`\n$]*)\1\s*\)""")
_SIDE_EFFECT = re.compile(r"""import\s*(['"])([^'"\n]*)\1\s*;?""")
_TYPE_ONLY = re.compile(r"""(?:import|export)\s+type\s+[\w${*]""")
_IMPORT_FROM = re.compile(
    r"""import\s*([^'";()]*?)\s*\bfrom\s*(['"])([^'"\n]*)\2\s*;?"""
)
_EXPORT_FROM = re.compile(
    r"""export\s*(\*(?:\s*as\s+[\w$]+)?|\{[^}]*\})\s*from\s*(['"])([^'"\n]*)\2\s*;?"""
)
_DEFAULT_BINDING = re.compile(r"""^(?:\*\s*as\s+)?([A-Za-z_$][\w$]*)\s*(?:,|$)""")


def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


def _skip_string(source: str, i: int) -> int:
    """Return the index just past the string literal starting at *i*."""
    quote = source[i]
    i += 1
    n = len(source)
    while i < n:
        ch = source[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote or ch == "\n":
            return i + 1
        i += 1
    return n


def _skip_template(source: str, i: int) -> int:
    """Return the index just past the template literal starting at *i*."""
    i += 1
    n = len(source)
    while i < n:
        ch = source[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "`":
            return i + 1
        if ch == "$" and source.startswith("${", i):
            i += 2
            depth = 1
            while i < n and depth:
                ch = source[i]
                if ch in "'\"":
                    i = _skip_string(source, i)
                    continue
                if ch == "`":
                    i = _skip_template(source, i)
                    continue
                if ch == "{":
                    depth += 1
                elif ch == "}":
                    depth -= 1
                i += 1
            continue
        i += 1
    return n


def _match_at(source: str, i: int) -> ImportStatement | None:
    line = source.count("\n", 0, i) + 1

    if source.startswith("import.", i):
        return None
    if source.startswith("import", i):
        match = _DYNAMIC.match(source, i)
        if match:
            return ImportStatement(
                specifier=match.group(2),
                kind=EdgeKind.DYNAMIC,
                start=match.start(2),
                end=match.end(2),
                statement_start=match.start(),
                statement_end=match.end(),
                line=line,
            )
        match = _SIDE_EFFECT.match(source, i)
        if match:
            return ImportStatement(
                specifier=match.group(2),
                kind=EdgeKind.STATIC,
                start=match.start(2),
                end=match.end(2),
                statement_start=match.start(),
                statement_end=match.end(),
                line=line,
                side_effect_only=True,
            )
        if _TYPE_ONLY.match(source, i):
            return None
        match = _IMPORT_FROM.match(source, i)
        if match:
            binding = _DEFAULT_BINDING.match(match.group(1).strip())
            return ImportStatement(
                specifier=match.group(3),
                kind=EdgeKind.STATIC,
                start=match.start(3),
                end=match.end(3),
                statement_start=match.start(),
                statement_end=match.end(),
                line=line,
                default_binding=binding.group(1) if binding else None,
            )
        return None

    if _TYPE_ONLY.match(source, i):
        return None
    match = _EXPORT_FROM.match(source, i)
    if match:
        return ImportStatement(
            specifier=match.group(3),
            kind=EdgeKind.STATIC,
            start=match.start(3),
            end=match.end(3),
            statement_start=match.start(),
            statement_end=match.end(),
            line=line,
        )
    return None


def scan_imports(source: str) -> list[ImportStatement]:
    """Return every import-bearing statement in *source*, in source order."""
    statements: list[ImportStatement] = []
    i = 0
    n = len(source)
    while i < n:
        ch = source[i]
        if ch == "/" and source.startswith("//", i):
            newline = source.find("\n", i)
            i = n if newline == -1 else newline + 1
            continue
        if ch == "/" and source.startswith("/*", i):
            close = source.find("*/", i + 2)
            i = n if close == -1 else close + 2
            continue
        if ch in "'\"":
            i = _skip_string(source, i)
            continue
        if ch == "`":
            i = _skip_template(source, i)
            continue
        if (
            ch in "ie"
            and source.startswith(("import", "export"), i)
            and (i == 0 or not (_is_ident_char(source[i - 1]) or source[i - 1] == "."))
            and (i + 6 >= n or not _is_ident_char(source[i + 6]))
        ):
            statement = _match_at(source, i)
            if statement is not None:
                statements.append(statement)
                i = statement.statement_end
                continue
        i += 1
    return statements


def import_lines(source: str) -> dict[str, int]:
    """Map each specifier in *source* to the line of its first import.

    Statement lines from :func:`scan_imports` count lines of whatever text
    was scanned; resolving them against the untransformed source gives the
    positions the author actually sees.
    """
    lines: dict[str, int] = {}
    for statement in scan_imports(source):
        lines.setdefault(statement.specifier, statement.line)
    return lines


def rewrite(source: str, replacements: list[tuple[int, int, str]]) -> str:
    """Apply non-overlapping ``(start, end, text)`` replacements to *source*."""
    result = source
    for start, end, text in sorted(replacements, key=lambda r: r[0], reverse=True):
        result = result[:start] + text + result[end:]
    return result
