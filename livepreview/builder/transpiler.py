"""Source-to-executable transform backends.

A backend turns one JSX/TSX/TS/JS source file into a browser-ready ES
module. ``EsbuildTranspiler`` shells out to the esbuild CLI (source on stdin,
module on stdout); ``PassthroughTranspiler`` returns plain ES modules
unchanged for hosts that pre-transform their sources. JSON files are
handled here too, independently of the backend.
"""

from __future__ import annotations

import json
import re
from typing import Protocol, runtime_checkable

from livepreview.config import TranspileConfig
from livepreview.errors import TranspileError
from livepreview.utils import print_warning, run_command
from livepreview.vfs.paths import extension_of


@runtime_checkable
class Transpiler(Protocol):
    """Anything that can transform one source file into an ES module."""

    name: str

    async def transform(self, path: str, source: str) -> str:
        """Return executable ES module code for *source*.

        Raises:
            TranspileError: If the source cannot be transformed.
        """
        ...


# ---------------------------------------------------------------------------
# JSON modules
# ---------------------------------------------------------------------------


def transform_json(path: str, source: str) -> str:
    """Turn a JSON document into an ES module with a default export.

    Raises:
        TranspileError: If *source* is not valid JSON.
    """
    try:
        value = json.loads(source)
    except json.JSONDecodeError as exc:
        raise TranspileError(
            f"Invalid JSON: {exc.msg}", path=path, line=exc.lineno, column=exc.colno
        ) from exc
    return f"export default {json.dumps(value, ensure_ascii=False)};\n"


# ---------------------------------------------------------------------------
# Passthrough
# ---------------------------------------------------------------------------


class PassthroughTranspiler:
    """Returns sources unchanged; for projects written as plain ES modules."""

    name = "passthrough"

    async def transform(self, path: str, source: str) -> str:
        return source


# ---------------------------------------------------------------------------
# esbuild
# ---------------------------------------------------------------------------

_LOADERS: dict[str, str] = {
    ".tsx": "tsx",
    ".ts": "ts",
    ".jsx": "jsx",
    ".js": "jsx",
    ".mjs": "js",
}

_ERROR_MESSAGE = re.compile(r"(?:\[ERROR\]|error:)\s*(.+)")
_ERROR_LOCATION = re.compile(r"^\s*(\S+?):(\d+):(\d+):?\s*$", re.MULTILINE)


def _parse_esbuild_error(stderr: str, path: str) -> TranspileError:
    """Build a ``TranspileError`` from esbuild's stderr (first error only)."""
    message_match = _ERROR_MESSAGE.search(stderr)
    message = message_match.group(1).strip() if message_match else (stderr.strip() or "Transform failed")

    line: int | None = None
    column: int | None = None
    location = _ERROR_LOCATION.search(stderr)
    if location:
        line = int(location.group(2))
        # esbuild reports 0-based columns
        column = int(location.group(3)) + 1
    return TranspileError(message, path=path, line=line, column=column)


class EsbuildTranspiler:
    """Transforms sources by running the esbuild CLI once per file.

    Each call spawns ``esbuild`` with the source on stdin; JSX is compiled
    with the automatic runtime by default, so transformed modules import
    ``react/jsx-runtime`` as an ordinary bare specifier.
    """

    name = "esbuild"

    def __init__(self, config: TranspileConfig | None = None):
        self.config = config or TranspileConfig()

    def build_command(self, path: str) -> list[str]:
        """Return the esbuild argv for transforming *path*."""
        loader = _LOADERS.get(extension_of(path), "tsx")
        cmd = [
            self.config.esbuild_binary,
            f"--loader={loader}",
            "--format=esm",
            f"--target={self.config.target}",
            f"--jsx={self.config.jsx}",
            f"--sourcefile={path}",
            "--log-level=error",
            "--color=false",
        ]
        if self.config.jsx == "automatic":
            cmd.append(f"--jsx-import-source={self.config.jsx_import_source}")
        return cmd

    async def transform(self, path: str, source: str) -> str:
        cmd = self.build_command(path)
        try:
            returncode, stdout, stderr = await run_command(
                cmd, input_text=source, timeout=self.config.timeout
            )
        except FileNotFoundError as exc:
            print_warning(f"esbuild binary not found: {self.config.esbuild_binary}")
            raise TranspileError(
                f"Transform backend unavailable: '{self.config.esbuild_binary}' not found",
                path=path,
            ) from exc
        except OSError as exc:
            print_warning(f"esbuild could not be started: {exc}")
            raise TranspileError(
                f"Transform backend unavailable: {exc}",
                path=path,
            ) from exc

        if returncode == -1:
            raise TranspileError(stderr or "Transform timed out", path=path)
        if returncode != 0:
            raise _parse_esbuild_error(stderr, path)
        return stdout
