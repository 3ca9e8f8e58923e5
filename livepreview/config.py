"""Live preview configuration.

Centralised, typed configuration for the preview build core. All settings use
Pydantic v2 models so they can be validated at construction time and serialised
to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator


class ArtifactMode(str, Enum):
    """How transpiled modules are made addressable to the preview sandbox."""

    DATA = "data"
    HOSTED = "hosted"


class RegistryConfig(BaseModel):
    """External package resolution endpoint.

    Bare specifiers are mapped to ``{base_url}/{package}@{version}`` with no
    network access; the version is whatever the source wrote, or
    ``default_version``.
    """

    base_url: str = Field(default="https://esm.sh")
    default_version: str = Field(default="latest", min_length=1)

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class TranspileConfig(BaseModel):
    """Settings for the JSX/TSX source-to-executable transform."""

    esbuild_binary: str = Field(default="esbuild")
    target: str = Field(default="es2020")
    jsx: str = Field(default="automatic", description="'automatic' or 'transform'")
    jsx_import_source: str = Field(default="react")
    timeout: float = Field(default=30.0, ge=1.0, description="Per-file transform timeout in seconds")


class PreviewConfig(BaseModel):
    """Settings for the generated sandbox document."""

    title: str = Field(default="Preview")
    root_element_id: str = Field(default="root", min_length=1)
    include_tailwind: bool = Field(default=True)
    tailwind_url: str = Field(default="https://cdn.tailwindcss.com")
    artifact_mode: ArtifactMode = Field(default=ArtifactMode.DATA)
    artifact_base_url: str = Field(
        default="/__preview__/modules",
        description="URL prefix the host serves artifacts from in hosted mode",
    )
    keep_last_good_preview: bool = Field(
        default=True,
        description="Keep the previous successful document visible when a build fails",
    )
    entry_candidates: list[str] = Field(
        default=[
            "/App.jsx",
            "/App.tsx",
            "/index.jsx",
            "/index.tsx",
            "/src/App.jsx",
            "/src/App.tsx",
        ]
    )


class Config(BaseModel):
    """Global live preview configuration.

    Instances are typically created once by the host (or by
    ``ProjectWorkspace``) and then passed to every component that needs
    them.
    """

    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    transpile: TranspileConfig = Field(default_factory=TranspileConfig)
    preview: PreviewConfig = Field(default_factory=PreviewConfig)
    path_aliases: dict[str, str] = Field(default_factory=lambda: {"@/": "/"})
    resolve_extensions: list[str] = Field(
        default=[".tsx", ".ts", ".jsx", ".js", ".mjs", ".json", ".css"]
    )
    record_grace_versions: int = Field(
        default=50, ge=1, description="Tree versions an unused module record survives"
    )

    @field_validator("resolve_extensions")
    @classmethod
    def _extensions_have_dot(cls, value: list[str]) -> list[str]:
        for ext in value:
            if not ext.startswith("."):
                raise ValueError(f"Extension must start with '.': {ext!r}")
        return value

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file.

        Returns:
            The path where the file was written.
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            LP_REGISTRY_URL, LP_DEFAULT_VERSION, LP_ESBUILD_BINARY,
            LP_TRANSPILE_TIMEOUT, LP_TRANSPILE_TARGET, LP_ARTIFACT_MODE,
            LP_ARTIFACT_BASE_URL, LP_INCLUDE_TAILWIND, LP_RECORD_GRACE_VERSIONS.
        """
        registry_kwargs: dict[str, Any] = {}
        if os.environ.get("LP_REGISTRY_URL"):
            registry_kwargs["base_url"] = os.environ["LP_REGISTRY_URL"]
        if os.environ.get("LP_DEFAULT_VERSION"):
            registry_kwargs["default_version"] = os.environ["LP_DEFAULT_VERSION"]

        transpile_kwargs: dict[str, Any] = {}
        if os.environ.get("LP_ESBUILD_BINARY"):
            transpile_kwargs["esbuild_binary"] = os.environ["LP_ESBUILD_BINARY"]
        if os.environ.get("LP_TRANSPILE_TIMEOUT"):
            transpile_kwargs["timeout"] = float(os.environ["LP_TRANSPILE_TIMEOUT"])
        if os.environ.get("LP_TRANSPILE_TARGET"):
            transpile_kwargs["target"] = os.environ["LP_TRANSPILE_TARGET"]

        preview_kwargs: dict[str, Any] = {}
        if os.environ.get("LP_ARTIFACT_MODE"):
            preview_kwargs["artifact_mode"] = ArtifactMode(os.environ["LP_ARTIFACT_MODE"])
        if os.environ.get("LP_ARTIFACT_BASE_URL"):
            preview_kwargs["artifact_base_url"] = os.environ["LP_ARTIFACT_BASE_URL"]
        if os.environ.get("LP_INCLUDE_TAILWIND"):
            preview_kwargs["include_tailwind"] = (
                os.environ["LP_INCLUDE_TAILWIND"].strip().lower() in ("1", "true", "yes", "on")
            )

        kwargs: dict[str, Any] = {}
        if os.environ.get("LP_RECORD_GRACE_VERSIONS"):
            kwargs["record_grace_versions"] = int(os.environ["LP_RECORD_GRACE_VERSIONS"])

        return cls(
            registry=RegistryConfig(**registry_kwargs),
            transpile=TranspileConfig(**transpile_kwargs),
            preview=PreviewConfig(**preview_kwargs),
            **kwargs,
        )
