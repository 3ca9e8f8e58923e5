"""Error taxonomy for the live preview core.

Every failure the core reports derives from :class:`PreviewError`. File-system
errors are raised synchronously by ``VirtualFileSystem`` before any mutation is
applied; resolution and transform errors are collected per build and handed to
the host as :class:`Diagnostic` payloads.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class Diagnostic(BaseModel):
    """A host-facing, serialisable description of one build problem."""

    path: str = Field(default="", description="Virtual path the problem belongs to")
    message: str = Field(..., description="Human-readable description")
    severity: str = Field(default="error", description="'error' or 'warning'")
    line: Optional[int] = Field(default=None, ge=1, description="1-based line, if known")
    column: Optional[int] = Field(default=None, ge=1, description="1-based column, if known")
    code: str = Field(default="", description="Error class name, e.g. 'CycleError'")

    def location(self) -> str:
        """Return ``path:line:column`` (omitting unknown parts)."""
        parts = [self.path or "<project>"]
        if self.line is not None:
            parts.append(str(self.line))
            if self.column is not None:
                parts.append(str(self.column))
        return ":".join(parts)


class PreviewError(Exception):
    """Base class for every error raised by the live preview core."""

    def __init__(self, message: str, path: str = ""):
        self.path = path
        self.message = message
        super().__init__(message)

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(path=self.path, message=self.message, code=type(self).__name__)


class PathError(PreviewError):
    """Malformed or colliding path on a file-system mutation."""


class NotFoundError(PreviewError):
    """Read or resolve of a path that does not exist."""


class ImportResolutionError(NotFoundError):
    """A relative or aliased specifier that matches no file in the tree."""

    def __init__(self, specifier: str, importer: str, line: int | None = None):
        self.specifier = specifier
        self.importer = importer
        self.line = line
        super().__init__(
            f"Cannot resolve import '{specifier}' from '{importer}'",
            path=importer,
        )

    def to_diagnostic(self) -> Diagnostic:
        diagnostic = super().to_diagnostic()
        diagnostic.line = self.line
        return diagnostic


class CycleError(PreviewError):
    """An import cycle; ``cycle`` lists its members in import order."""

    def __init__(self, cycle: list[str]):
        self.cycle = list(cycle)
        chain = " -> ".join(self.cycle + self.cycle[:1])
        super().__init__(f"Import cycle detected: {chain}", path=self.cycle[0] if self.cycle else "")


class TranspileError(PreviewError):
    """The source-to-executable transform rejected a file."""

    def __init__(
        self,
        message: str,
        path: str = "",
        line: int | None = None,
        column: int | None = None,
    ):
        self.line = line
        self.column = column
        super().__init__(message, path=path)

    def to_diagnostic(self) -> Diagnostic:
        diagnostic = super().to_diagnostic()
        diagnostic.line = self.line
        diagnostic.column = self.column
        return diagnostic


class BuildError(PreviewError):
    """Several errors collected from one build generation."""

    def __init__(self, errors: list[PreviewError]):
        self.errors = list(errors)
        summary = "; ".join(str(e) for e in self.errors[:3])
        if len(self.errors) > 3:
            summary += f"; ... ({len(self.errors) - 3} more)"
        super().__init__(f"Build failed with {len(self.errors)} error(s): {summary}")

    def diagnostics(self) -> list[Diagnostic]:
        return [e.to_diagnostic() for e in self.errors]
