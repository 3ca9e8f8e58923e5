"""File operations issued by the AI tool layer.

Operations arrive as ``{op: create|edit|rename|delete, path, newPath?,
content?}`` and are applied one at a time through the
``VirtualFileSystem`` API. The core does not interpret why an operation was
issued.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from livepreview.errors import PathError, PreviewError
from livepreview.vfs.filesystem import VirtualFileSystem
from livepreview.vfs.models import ProjectSnapshot

__all__ = [
    "FileOperation",
    "OperationKind",
    "ProjectSnapshot",
    "apply_operation",
    "apply_operations",
]


class OperationKind(str, Enum):
    CREATE = "create"
    EDIT = "edit"
    RENAME = "rename"
    DELETE = "delete"


class FileOperation(BaseModel):
    """A single validated file operation."""

    model_config = ConfigDict(populate_by_name=True)

    op: OperationKind = Field(..., description="Operation kind")
    path: str = Field(..., min_length=1, description="Target path")
    new_path: Optional[str] = Field(
        default=None, alias="newPath", description="Destination path (rename only)"
    )
    content: Optional[str] = Field(default=None, description="File content (create/edit)")

    @model_validator(mode="after")
    def _check_shape(self) -> "FileOperation":
        if self.op is OperationKind.RENAME and not self.new_path:
            raise ValueError("rename requires newPath")
        if self.op is OperationKind.EDIT and self.content is None:
            raise ValueError("edit requires content")
        return self


def apply_operation(fs: VirtualFileSystem, operation: FileOperation | dict) -> None:
    """Apply one operation to *fs*.

    ``delete`` removes a file, or a whole directory when *path* names one.

    Raises:
        PathError: If *operation* is a malformed dict.
        PreviewError: Whatever the underlying file-system call raises; the
            tree is left unchanged in that case.
    """
    if not isinstance(operation, FileOperation):
        try:
            operation = FileOperation.model_validate(operation)
        except ValidationError as exc:
            path = operation.get("path") if isinstance(operation, dict) else None
            reasons = "; ".join(error["msg"] for error in exc.errors())
            raise PathError(
                f"Invalid file operation: {reasons}",
                path=path if isinstance(path, str) else "",
            ) from exc

    if operation.op is OperationKind.CREATE:
        fs.create_file(operation.path, operation.content or "")
    elif operation.op is OperationKind.EDIT:
        fs.write_file(operation.path, operation.content or "")
    elif operation.op is OperationKind.RENAME:
        fs.rename(operation.path, operation.new_path or "")
    elif operation.op is OperationKind.DELETE:
        if fs.is_directory(operation.path):
            fs.delete_directory(operation.path, recursive=True)
        else:
            fs.delete_file(operation.path)


def apply_operations(
    fs: VirtualFileSystem, operations: list[FileOperation | dict]
) -> list[PreviewError]:
    """Apply *operations* in order, continuing past failures.

    Each operation is atomic on its own; a failing one leaves the tree as it
    was and is reported in the returned list (in operation order).
    """
    errors: list[PreviewError] = []
    for operation in operations:
        try:
            apply_operation(fs, operation)
        except PreviewError as exc:
            errors.append(exc)
    return errors
