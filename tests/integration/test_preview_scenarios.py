"""End-to-end preview scenarios across the file system and the builder.

Each test drives a ``VirtualFileSystem`` through a realistic edit sequence
with a ``BuildCoordinator`` attached, the way a host editor would, and checks
what the host gets to display.
"""

from __future__ import annotations

import asyncio

import pytest

from livepreview.builder.coordinator import BuildCoordinator, BuildState
from livepreview.builder.resolver import ModuleRegistry
from livepreview.errors import CycleError, ImportResolutionError, NotFoundError
from livepreview.vfs.filesystem import VirtualFileSystem

BUTTON_TSX = "export default function Button() { return 'button'; }\n"
ICON_TSX = "export default function Icon() { return 'icon'; }\n"


def _app(import_path: str) -> str:
    return (
        f'import Button from "{import_path}";\n'
        "export default function App() { return Button(); }\n"
    )


@pytest.fixture
def attached(fs: VirtualFileSystem, coordinator_factory):
    """A coordinator subscribed to ``fs`` so every edit triggers a build."""

    def factory(transpiler=None, **kwargs) -> BuildCoordinator:
        coordinator = coordinator_factory(fs, transpiler, **kwargs)
        coordinator.attach()
        return coordinator

    return factory


class TestScenarios:
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_import_of_missing_file(self, fs: VirtualFileSystem, attached):
        coordinator = attached()

        fs.create_file("/App.tsx", _app("./Button"))
        await coordinator.wait_settled()

        assert coordinator.last_outcome is BuildState.ERROR
        (diagnostic,) = coordinator.diagnostics
        assert diagnostic.code == "ImportResolutionError"
        assert diagnostic.path == "/App.tsx"
        assert "'./Button'" in diagnostic.message

        result = await coordinator.resolver.resolve()
        (err,) = result.errors
        assert isinstance(err, ImportResolutionError)
        assert (err.specifier, err.importer) == ("./Button", "/App.tsx")

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_component_then_importer(self, fs: VirtualFileSystem, attached):
        coordinator = attached()

        fs.create_file("/components/Button.tsx", BUTTON_TSX)
        fs.create_file("/App.tsx", _app("./components/Button"))
        await coordinator.wait_settled()

        session = coordinator.current_session
        assert session.modules == ["/components/Button.tsx", "/App.tsx"]
        button_url = session.import_map["/components/Button.tsx"]
        app_url = session.import_map["/App.tsx"]
        assert button_url != app_url
        assert coordinator.allocator.is_live(button_url)
        assert coordinator.allocator.is_live(app_url)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_rename_breaks_importer_until_edited(self, fs: VirtualFileSystem, attached):
        coordinator = attached()
        fs.create_file("/components/Button.tsx", BUTTON_TSX)
        fs.create_file("/App.tsx", _app("./components/Button"))
        await coordinator.wait_settled()
        good = coordinator.current_session

        fs.rename("/components/Button.tsx", "/components/PrimaryButton.tsx")
        await coordinator.wait_settled()

        assert not fs.exists("/components/Button.tsx")
        assert coordinator.last_outcome is BuildState.ERROR
        assert coordinator.diagnostics[0].code == "ImportResolutionError"
        assert coordinator.current_session is good

        fs.write_file("/App.tsx", _app("./components/PrimaryButton"))
        await coordinator.wait_settled()

        assert coordinator.last_outcome is BuildState.READY
        assert coordinator.current_session.modules == ["/components/PrimaryButton.tsx", "/App.tsx"]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_rapid_edits_publish_latest_only(
        self, fs: VirtualFileSystem, attached, slow_transpiler
    ):
        published: list[int] = []
        coordinator = attached(slow_transpiler, on_publish=lambda s: published.append(s.generation))

        fs.create_file("/App.tsx", "export default function App() { return 'v1'; }\n")
        await asyncio.sleep(0.005)
        assert coordinator.state is BuildState.RESOLVING
        fs.write_file("/App.tsx", "export default function App() { return 'v2'; }\n")
        await coordinator.wait_settled()

        assert published == [2]
        entry_url = coordinator.current_session.import_map["/App.tsx"]
        assert "'v2'" in coordinator.allocator.read(entry_url)
        live = [coordinator.allocator.read(url) for url in coordinator.allocator.live_urls()]
        assert not any("'v1'" in code for code in live)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_delete_directory_breaks_importer(self, fs: VirtualFileSystem, attached):
        coordinator = attached()
        fs.create_file("/components/Button.tsx", BUTTON_TSX)
        fs.create_file("/components/Icon.tsx", ICON_TSX)
        fs.create_file("/App.tsx", _app("./components/Button"))
        await coordinator.wait_settled()
        assert coordinator.last_outcome is BuildState.READY

        fs.delete_directory("/components")
        await coordinator.wait_settled()

        assert not fs.exists("/components/Button.tsx")
        assert not fs.exists("/components/Icon.tsx")
        assert not fs.exists("/components")
        result = await coordinator.resolver.resolve()
        assert isinstance(result.errors[0], NotFoundError)
        assert coordinator.diagnostics[0].code == "ImportResolutionError"


class TestGraphProperties:
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_topological_and_deterministic(self, fs: VirtualFileSystem, resolver_factory):
        fs.create_file("/App.tsx", 'import "./pages/Home";\nimport "./lib/api";\nexport default 1;\n')
        fs.create_file("/pages/Home.tsx", 'import "../components/Card";\nimport "../lib/api";\n')
        fs.create_file("/components/Card.tsx", 'import "../lib/format";\n')
        fs.create_file("/lib/api.ts", 'import "./format";\n')
        fs.create_file("/lib/format.ts", "export const fmt = String;\n")

        first = await resolver_factory(fs).resolve()
        second = await resolver_factory(fs).resolve()

        assert first.ok
        assert first.order == second.order
        position = {path: i for i, path in enumerate(first.order)}
        for record in first.modules:
            for dependency in record.dependencies:
                assert position[dependency] < position[record.path]
        assert first.order[-1] == "/App.tsx"
        assert len(first.order) == 5

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_cycle_terminates(self, fs: VirtualFileSystem, resolver_factory):
        fs.create_file("/A.tsx", 'import B from "./B";\nexport default 1;\n')
        fs.create_file("/B.tsx", 'import A from "./A";\nexport default 2;\n')

        result = await asyncio.wait_for(resolver_factory(fs).resolve("/A.tsx"), timeout=5)

        (err,) = result.errors
        assert isinstance(err, CycleError)
        assert err.cycle == ["/A.tsx", "/B.tsx"]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_edit_invalidates_only_dependents(self, fs: VirtualFileSystem, coordinator_factory):
        fs.create_file("/App.tsx", 'import "./Page";\nimport "./Footer";\nexport default 1;\n')
        fs.create_file("/Page.tsx", 'import "./Card";\n')
        fs.create_file("/Card.tsx", "export default 'card';\n")
        fs.create_file("/Footer.tsx", "export default 'footer';\n")
        registry = ModuleRegistry()
        coordinator = coordinator_factory(fs, registry=registry)
        await coordinator.build()
        coordinator.attach()

        fs.write_file("/Card.tsx", "export default 'card v2';\n")

        assert sorted(r.path for r in registry) == ["/Footer.tsx"]
        await coordinator.wait_settled()
        assert sorted(r.path for r in registry) == ["/App.tsx", "/Card.tsx", "/Footer.tsx", "/Page.tsx"]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_tree_round_trip_then_build(self, fs: VirtualFileSystem, coordinator_factory):
        fs.create_file("/components/Button.tsx", BUTTON_TSX)
        fs.create_file("/App.tsx", _app("@/components/Button"))
        fs.create_directory("/public")

        restored = VirtualFileSystem.from_snapshot(fs.snapshot())
        build = await coordinator_factory(restored).build()

        assert restored.snapshot() == fs.snapshot()
        assert build.state is BuildState.READY
        assert build.session.modules == ["/components/Button.tsx", "/App.tsx"]
