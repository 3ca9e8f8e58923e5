"""Live preview builder.

Turns the virtual project tree into a runnable, sandboxed preview document on
every edit: transform, import resolution, artifact allocation, import map and
document assembly, orchestrated by a generation-stamped coordinator.

Key classes:
    TranspileCache          - (path, content hash) -> transform result memo
    ImportGraphResolver     - Dependency-first module order from an entry file
    ModuleURLAllocator      - Generation-refcounted module artifacts
    ImportMapBuilder        - Specifier -> URL resolution table
    PreviewDocumentBuilder  - Sandboxed HTML document rendering
    BuildCoordinator        - Rebuild-on-change with stale build discard
"""

from .allocator import Artifact, ArtifactMode, ModuleURLAllocator
from .cache import TranspileCache, TranspileResult
from .coordinator import BuildCoordinator, BuildState, BuildTask
from .document import PreviewDocumentBuilder
from .import_map import ImportMap, ImportMapBuilder
from .models import EdgeKind, ImportEdge, ModuleRecord, PreviewSession, StyleAsset
from .resolver import ImportGraphResolver, ModuleRegistry, ResolutionResult
from .scanner import (
    BareSpecifier,
    ImportStatement,
    RelativeSpecifier,
    Specifier,
    import_lines,
    parse_specifier,
    scan_imports,
)
from .transpiler import EsbuildTranspiler, PassthroughTranspiler, Transpiler

__all__ = [
    # Transform
    "Transpiler",
    "EsbuildTranspiler",
    "PassthroughTranspiler",
    "TranspileCache",
    "TranspileResult",
    # Scanning
    "scan_imports",
    "import_lines",
    "parse_specifier",
    "ImportStatement",
    "Specifier",
    "RelativeSpecifier",
    "BareSpecifier",
    # Resolution
    "ImportGraphResolver",
    "ModuleRegistry",
    "ResolutionResult",
    # Allocation
    "ModuleURLAllocator",
    "Artifact",
    "ArtifactMode",
    # Import map & document
    "ImportMap",
    "ImportMapBuilder",
    "PreviewDocumentBuilder",
    # Coordination
    "BuildCoordinator",
    "BuildState",
    "BuildTask",
    # Model
    "EdgeKind",
    "ImportEdge",
    "ModuleRecord",
    "PreviewSession",
    "StyleAsset",
]
