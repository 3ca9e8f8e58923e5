"""Build orchestration with supersession of stale builds.

Each edit starts a new build at a higher generation. Builds run as asyncio
tasks in the caller's event loop and move through
``Idle -> Resolving -> Allocating -> Ready`` (or ``Error``). Older in-flight
builds are marked superseded and allowed to finish their current step, but
only the latest requested generation may publish; everything else is
discarded and its artifacts are released on completion.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from livepreview.builder.allocator import ModuleURLAllocator
from livepreview.builder.cache import TranspileCache
from livepreview.builder.document import PreviewDocumentBuilder
from livepreview.builder.import_map import ImportMapBuilder
from livepreview.builder.models import PreviewSession
from livepreview.builder.resolver import ImportGraphResolver, ModuleRegistry
from livepreview.builder.transpiler import EsbuildTranspiler, Transpiler
from livepreview.config import Config
from livepreview.errors import Diagnostic, PreviewError
from livepreview.utils import console, print_warning
from livepreview.vfs.filesystem import ChangeEvent, ChangeKind, VirtualFileSystem


class BuildState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    ALLOCATING = "allocating"
    READY = "ready"
    ERROR = "error"


_TERMINAL = (BuildState.READY, BuildState.ERROR)


@dataclass
class BuildTask:
    """One build attempt, identified by its generation."""

    generation: int
    entry_path: str | None = None
    state: BuildState = BuildState.IDLE
    history: list[BuildState] = field(default_factory=lambda: [BuildState.IDLE])
    superseded: bool = False
    published: bool = False
    session: PreviewSession | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)
    started_at: float = field(default_factory=time.monotonic)
    finished_at: float | None = None
    task: asyncio.Task | None = field(default=None, repr=False)

    @property
    def settled(self) -> bool:
        return self.state in _TERMINAL

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return end - self.started_at

    def advance(self, state: BuildState) -> None:
        self.state = state
        self.history.append(state)


PublishCallback = Callable[[PreviewSession], None]
DiagnosticsCallback = Callable[[list[Diagnostic]], None]


class BuildCoordinator:
    """Rebuilds the preview on every change and publishes the newest result.

    The coordinator owns the transpile cache, module registry and artifact
    allocator for one project; the ``VirtualFileSystem`` stays owned by the
    host and is re-read at each build step.
    """

    def __init__(
        self,
        fs: VirtualFileSystem,
        config: Config | None = None,
        transpiler: Transpiler | None = None,
        *,
        entry_path: str | None = None,
        cache: TranspileCache | None = None,
        registry: ModuleRegistry | None = None,
        allocator: ModuleURLAllocator | None = None,
        on_publish: PublishCallback | None = None,
        on_diagnostics: DiagnosticsCallback | None = None,
    ):
        self.fs = fs
        self.config = config or Config()
        self.cache = cache or TranspileCache(transpiler or EsbuildTranspiler(self.config.transpile))
        self.registry = registry if registry is not None else ModuleRegistry()
        self.allocator = allocator or ModuleURLAllocator(self.config.preview)
        self.import_maps = ImportMapBuilder(self.config.registry)
        self.documents = PreviewDocumentBuilder(self.config.preview)
        self.resolver = ImportGraphResolver(
            fs,
            self.cache,
            registry=self.registry,
            config=self.config,
            external_url=self.import_maps.external_url,
        )
        self.entry_path = entry_path
        self.on_publish = on_publish
        self.on_diagnostics = on_diagnostics

        self._generation = 0
        self._published_generation = 0
        self._builds: dict[int, BuildTask] = {}
        self._session: PreviewSession | None = None
        self._diagnostics: list[Diagnostic] = []
        self._error_document: str | None = None
        self._last_outcome: BuildState = BuildState.IDLE
        self._rebuild_pending = False
        self._unsubscribe: Callable[[], None] | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def generation(self) -> int:
        """Highest generation requested so far."""
        return self._generation

    @property
    def state(self) -> BuildState:
        """State of the latest build while it runs, otherwise ``IDLE``."""
        latest = self._builds.get(self._generation)
        if latest is not None and not latest.settled:
            return latest.state
        return BuildState.IDLE

    @property
    def last_outcome(self) -> BuildState:
        """``READY`` or ``ERROR`` for the last surfaced build (``IDLE`` before any)."""
        return self._last_outcome

    @property
    def current_session(self) -> PreviewSession | None:
        return self._session

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return list(self._diagnostics)

    @property
    def in_flight(self) -> list[BuildTask]:
        return [self._builds[g] for g in sorted(self._builds)]

    @property
    def document(self) -> str | None:
        """The markup the host should display right now."""
        if self._error_document is not None and (
            self._session is None or not self.config.preview.keep_last_good_preview
        ):
            return self._error_document
        return self._session.document_markup if self._session else None

    # ------------------------------------------------------------------
    # File-system wiring
    # ------------------------------------------------------------------

    def attach(self) -> None:
        """Subscribe to the file system so every mutation triggers a rebuild."""
        if self._unsubscribe is None:
            self._unsubscribe = self.fs.subscribe(self._on_change)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def invalidate(self, paths: list[str]) -> set[str]:
        """Drop cached module records for *paths* and their dependents."""
        return self.registry.invalidate(paths)

    def _on_change(self, event: ChangeEvent) -> None:
        if event.kind is ChangeKind.RENAMED:
            stale = list(event.renamed)
        elif event.kind is ChangeKind.CREATED:
            stale = []
        else:
            stale = list(event.paths)

        self.invalidate(stale)
        if event.kind in (ChangeKind.DELETED, ChangeKind.RENAMED):
            for path in stale:
                self.cache.discard(path)

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._rebuild_pending = True
            return
        self.request_build()

    # ------------------------------------------------------------------
    # Build scheduling
    # ------------------------------------------------------------------

    def request_build(self, entry_path: str | None = None) -> BuildTask:
        """Start a build at the next generation, superseding in-flight ones.

        Must be called from within a running event loop.
        """
        loop = asyncio.get_running_loop()
        self._generation += 1
        self._rebuild_pending = False
        for previous in self._builds.values():
            if not previous.settled and not previous.superseded:
                previous.superseded = True
                console.print(
                    f"[dim]Build #{previous.generation} superseded by #{self._generation}[/dim]"
                )

        build = BuildTask(generation=self._generation, entry_path=entry_path or self.entry_path)
        self._builds[build.generation] = build
        build.task = loop.create_task(self._run(build))
        return build

    async def build(self, entry_path: str | None = None) -> BuildTask:
        """Start a build and wait for it to settle."""
        build = self.request_build(entry_path)
        await build.task  # type: ignore[misc]
        return build

    async def wait_settled(self) -> None:
        """Wait until no build is in flight (starting a pending rebuild first)."""
        if self._rebuild_pending:
            self.request_build()
        while self._builds:
            tasks = [b.task for b in list(self._builds.values()) if b.task is not None]
            if not tasks:
                break
            await asyncio.gather(*tasks)

    async def close(self) -> None:
        """Detach, let in-flight builds finish, and release every artifact."""
        self.detach()
        await self.wait_settled()
        self.allocator.release_all()
        self._session = None

    # ------------------------------------------------------------------
    # Build steps
    # ------------------------------------------------------------------

    async def _run(self, build: BuildTask) -> None:
        console.print(f"[cyan]Build #{build.generation}[/cyan] started")
        try:
            build.advance(BuildState.RESOLVING)
            result = await self.resolver.resolve(build.entry_path)
            if not result.ok:
                self._settle_error(build, result.diagnostics())
                return

            build.advance(BuildState.ALLOCATING)
            urls = await self.allocator.allocate(result.modules, build.generation)
            import_map = self.import_maps.build(
                result.modules,
                result.external_edges,
                runtime_specifiers=self.documents.runtime_specifiers,
            )
            markup = self.documents.build(
                result.entry_path or "", import_map, build.generation, result.styles
            )
            session = PreviewSession(
                entry_path=result.entry_path or "",
                import_map=import_map,
                document_markup=markup,
                generation=build.generation,
                modules=result.order,
                module_urls=urls,
                styles=result.styles,
            )
            build.session = session
            self._settle_ready(build, session)
        except PreviewError as exc:
            self._settle_error(build, [exc.to_diagnostic()])
        finally:
            build.finished_at = time.monotonic()
            if not build.settled:
                self.allocator.release_generation(build.generation)
            self._builds.pop(build.generation, None)
            self.registry.prune(self.fs.version, self.config.record_grace_versions)

    def _is_latest(self, build: BuildTask) -> bool:
        return build.generation == self._generation and build.generation > self._published_generation

    def _settle_ready(self, build: BuildTask, session: PreviewSession) -> None:
        build.advance(BuildState.READY)
        if not self._is_latest(build):
            build.superseded = True
            freed = self.allocator.release_generation(build.generation)
            console.print(
                f"[dim]Build #{build.generation} discarded "
                f"(latest is #{self._generation}); released {len(freed)} artifact(s)[/dim]"
            )
            return

        previous = self._session
        self._session = session
        self._published_generation = build.generation
        self._diagnostics = []
        self._error_document = None
        self._last_outcome = BuildState.READY
        build.published = True
        if previous is not None:
            self.allocator.release_generation(previous.generation)

        console.print(
            f"[green]Build #{build.generation} published[/green] "
            f"({len(session.modules)} module(s), {build.duration_seconds:.2f}s)"
        )
        if self.on_publish is not None:
            self.on_publish(session)

    def _settle_error(self, build: BuildTask, diagnostics: list[Diagnostic]) -> None:
        build.advance(BuildState.ERROR)
        build.diagnostics = diagnostics
        self.allocator.release_generation(build.generation)
        if not self._is_latest(build):
            build.superseded = True
            return

        self._published_generation = build.generation
        self._diagnostics = diagnostics
        self._error_document = self.documents.build_error_document(diagnostics, build.generation)
        self._last_outcome = BuildState.ERROR
        if not self.config.preview.keep_last_good_preview and self._session is not None:
            self.allocator.release_generation(self._session.generation)
            self._session = None

        print_warning(f"Build #{build.generation} failed with {len(diagnostics)} problem(s)")
        for diagnostic in diagnostics[:5]:
            console.print(f"  [red]-[/red] {diagnostic.location()}: {diagnostic.message}")
        if self.on_diagnostics is not None:
            self.on_diagnostics(diagnostics)
