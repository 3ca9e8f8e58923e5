"""Shared pytest fixtures for the live preview test suite.

Provides reusable fixtures for:
- Fresh virtual file systems and sample component sources
- A deterministic fake transform backend (optionally slow, optionally failing)
- Mock subprocess helpers for the esbuild backend
- Coordinators wired to the fake backend
"""

from __future__ import annotations

import asyncio
import textwrap
from unittest.mock import AsyncMock, MagicMock

import pytest

from livepreview.builder.cache import TranspileCache
from livepreview.builder.coordinator import BuildCoordinator
from livepreview.builder.resolver import ImportGraphResolver, ModuleRegistry
from livepreview.config import Config
from livepreview.errors import TranspileError
from livepreview.vfs.filesystem import VirtualFileSystem

SYNTAX_ERROR_MARKER = "@@syntax-error@@"


# ---------------------------------------------------------------------------
# Sample sources
# ---------------------------------------------------------------------------

BUTTON_SOURCE = textwrap.dedent(
    """\
    export default function Button({ label }) {
      return label;
    }
    """
)

APP_SOURCE = textwrap.dedent(
    """\
    import React from "react";
    import Button from "./components/Button";

    export default function App() {
      return Button({ label: "hi" });
    }
    """
)


# ---------------------------------------------------------------------------
# Fake transform backend
# ---------------------------------------------------------------------------


class FakeTranspiler:
    """Returns sources unchanged after an optional delay.

    Any source containing ``SYNTAX_ERROR_MARKER`` fails with a
    ``TranspileError`` pointing at the marker's line.
    """

    name = "fake"

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.calls: list[tuple[str, str]] = []

    async def transform(self, path: str, source: str) -> str:
        self.calls.append((path, source))
        if self.delay:
            await asyncio.sleep(self.delay)
        if SYNTAX_ERROR_MARKER in source:
            line = source[: source.index(SYNTAX_ERROR_MARKER)].count("\n") + 1
            raise TranspileError("Unexpected token", path=path, line=line, column=1)
        return source

    def calls_for(self, path: str) -> int:
        return sum(1 for called_path, _ in self.calls if called_path == path)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fs() -> VirtualFileSystem:
    """An empty virtual file system."""
    return VirtualFileSystem()


@pytest.fixture
def config() -> Config:
    """Default configuration with the Tailwind CDN disabled for smaller documents."""
    cfg = Config()
    cfg.preview.include_tailwind = False
    return cfg


@pytest.fixture
def transpiler() -> FakeTranspiler:
    return FakeTranspiler()


@pytest.fixture
def slow_transpiler() -> FakeTranspiler:
    """A fake backend slow enough for builds to overlap."""
    return FakeTranspiler(delay=0.02)


@pytest.fixture
def resolver_factory(config: Config):
    """Factory building an ``ImportGraphResolver`` over a given file system."""

    def factory(
        fs: VirtualFileSystem,
        transpiler: FakeTranspiler | None = None,
        registry: ModuleRegistry | None = None,
    ) -> ImportGraphResolver:
        cache = TranspileCache(transpiler or FakeTranspiler())
        return ImportGraphResolver(fs, cache, registry=registry, config=config)

    return factory


@pytest.fixture
def coordinator_factory(config: Config):
    """Factory building a ``BuildCoordinator`` wired to a fake backend."""

    def factory(
        fs: VirtualFileSystem,
        transpiler: FakeTranspiler | None = None,
        **kwargs,
    ) -> BuildCoordinator:
        return BuildCoordinator(fs, config, transpiler or FakeTranspiler(), **kwargs)

    return factory


@pytest.fixture
def component_fs(fs: VirtualFileSystem) -> VirtualFileSystem:
    """A tree holding ``/App.jsx`` importing ``/components/Button.jsx``."""
    fs.create_file("/components/Button.jsx", BUTTON_SOURCE)
    fs.create_file("/App.jsx", APP_SOURCE)
    return fs


@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Returns a factory that creates mock subprocess instances with configurable
    stdout, stderr, and return codes.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", return_value=proc):
                ...
    """

    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory


@pytest.fixture
def make_transpiler():
    """Factory for ``FakeTranspiler`` instances with a custom delay."""

    def factory(delay: float = 0.0) -> FakeTranspiler:
        return FakeTranspiler(delay=delay)

    return factory
