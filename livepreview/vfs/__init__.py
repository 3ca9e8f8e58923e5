"""Live preview virtual file system.

Owns the canonical in-memory project tree that every build reads.

Usage::

    from livepreview.vfs import VirtualFileSystem

    fs = VirtualFileSystem()
    fs.create_file("/components/Button.tsx", source)
    fs.rename("/components", "/ui")
    snapshot = fs.snapshot()
"""

from .filesystem import ChangeEvent, ChangeKind, VirtualFileSystem
from .models import FileNode, NodeKind, ProjectSnapshot
from .operations import FileOperation, OperationKind, apply_operation, apply_operations
from .paths import infer_language, join_path, normalize_path, parent_of

__all__ = [
    # File system
    "VirtualFileSystem",
    "ChangeEvent",
    "ChangeKind",
    # Model
    "FileNode",
    "NodeKind",
    "ProjectSnapshot",
    # Operations
    "FileOperation",
    "OperationKind",
    "apply_operation",
    "apply_operations",
    # Paths
    "normalize_path",
    "parent_of",
    "join_path",
    "infer_language",
]
