"""Host-facing facade for one editable, previewable project.

``ProjectWorkspace`` bundles a ``VirtualFileSystem``, the chat message list
that accompanies it and a ``BuildCoordinator`` wired to rebuild on every
change. Hosts apply file operations, persist snapshots and read the current
preview or diagnostics from here.

Usage::

    workspace = ProjectWorkspace.from_snapshot(stored_snapshot)
    async with workspace:
        workspace.apply([{"op": "edit", "path": "/App.jsx", "content": source}])
        await workspace.settle()
        html = workspace.document
"""

from __future__ import annotations

from typing import Any

from livepreview.builder.coordinator import BuildCoordinator, BuildTask
from livepreview.builder.models import PreviewSession
from livepreview.builder.transpiler import Transpiler
from livepreview.config import Config
from livepreview.errors import Diagnostic, PreviewError
from livepreview.vfs.filesystem import VirtualFileSystem
from livepreview.vfs.models import ProjectSnapshot
from livepreview.vfs.operations import FileOperation, apply_operations


class ProjectWorkspace:
    """One project: its tree, its messages and its live preview."""

    def __init__(
        self,
        fs: VirtualFileSystem | None = None,
        config: Config | None = None,
        transpiler: Transpiler | None = None,
        messages: list[dict[str, Any]] | None = None,
        entry_path: str | None = None,
    ):
        self.fs = fs or VirtualFileSystem()
        self.config = config or Config()
        self.messages: list[dict[str, Any]] = list(messages or [])
        self.coordinator = BuildCoordinator(
            self.fs, self.config, transpiler, entry_path=entry_path
        )
        self.coordinator.attach()

    @classmethod
    def from_snapshot(
        cls,
        snapshot: ProjectSnapshot | dict[str, Any],
        config: Config | None = None,
        transpiler: Transpiler | None = None,
    ) -> "ProjectWorkspace":
        """Rehydrate a workspace from what ``snapshot()`` produced."""
        if not isinstance(snapshot, ProjectSnapshot):
            snapshot = ProjectSnapshot.model_validate(snapshot)
        fs = VirtualFileSystem.from_snapshot(snapshot)
        return cls(fs=fs, config=config, transpiler=transpiler, messages=snapshot.messages)

    def snapshot(self) -> ProjectSnapshot:
        return self.fs.snapshot(messages=self.messages)

    # -- Edits ----------------------------------------------------------------

    def apply(self, operations: list[FileOperation | dict]) -> list[PreviewError]:
        """Apply AI-issued file operations in order; returns the ones that failed."""
        return apply_operations(self.fs, operations)

    def add_message(self, message: dict[str, Any]) -> None:
        self.messages.append(message)

    # -- Preview --------------------------------------------------------------

    async def rebuild(self) -> BuildTask:
        """Force a build of the current tree and wait for it."""
        return await self.coordinator.build()

    async def settle(self) -> None:
        await self.coordinator.wait_settled()

    @property
    def session(self) -> PreviewSession | None:
        return self.coordinator.current_session

    @property
    def document(self) -> str | None:
        return self.coordinator.document

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return self.coordinator.diagnostics

    async def close(self) -> None:
        await self.coordinator.close()

    async def __aenter__(self) -> "ProjectWorkspace":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
