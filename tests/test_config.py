"""Unit tests for Config and related Pydantic models (livepreview.config).

Tests cover:
- RegistryConfig defaults and trailing-slash normalisation
- TranspileConfig defaults and validation
- PreviewConfig defaults (artifact mode, entry candidates)
- Config defaults, extension validation, save/load, from_env
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from livepreview.config import (
    ArtifactMode,
    Config,
    PreviewConfig,
    RegistryConfig,
    TranspileConfig,
)


# ---------------------------------------------------------------------------
# RegistryConfig
# ---------------------------------------------------------------------------


class TestRegistryConfig:
    @pytest.mark.unit
    def test_defaults(self):
        registry = RegistryConfig()
        assert registry.base_url == "https://esm.sh"
        assert registry.default_version == "latest"

    @pytest.mark.unit
    def test_trailing_slash_stripped(self):
        registry = RegistryConfig(base_url="https://cdn.example.com/")
        assert registry.base_url == "https://cdn.example.com"

    @pytest.mark.unit
    def test_empty_default_version_rejected(self):
        with pytest.raises(ValidationError):
            RegistryConfig(default_version="")


# ---------------------------------------------------------------------------
# TranspileConfig
# ---------------------------------------------------------------------------


class TestTranspileConfig:
    @pytest.mark.unit
    def test_defaults(self):
        cfg = TranspileConfig()
        assert cfg.esbuild_binary == "esbuild"
        assert cfg.target == "es2020"
        assert cfg.jsx == "automatic"
        assert cfg.jsx_import_source == "react"
        assert cfg.timeout == 30.0

    @pytest.mark.unit
    def test_timeout_lower_bound(self):
        with pytest.raises(ValidationError):
            TranspileConfig(timeout=0.5)


# ---------------------------------------------------------------------------
# PreviewConfig
# ---------------------------------------------------------------------------


class TestPreviewConfig:
    @pytest.mark.unit
    def test_defaults(self):
        cfg = PreviewConfig()
        assert cfg.root_element_id == "root"
        assert cfg.include_tailwind is True
        assert cfg.artifact_mode is ArtifactMode.DATA
        assert cfg.keep_last_good_preview is True
        assert cfg.entry_candidates[0] == "/App.jsx"
        assert "/src/App.tsx" in cfg.entry_candidates

    @pytest.mark.unit
    def test_artifact_mode_from_string(self):
        cfg = PreviewConfig(artifact_mode="hosted")
        assert cfg.artifact_mode is ArtifactMode.HOSTED

    @pytest.mark.unit
    def test_invalid_artifact_mode(self):
        with pytest.raises(ValidationError):
            PreviewConfig(artifact_mode="blob")


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


class TestConfig:
    @pytest.mark.unit
    def test_defaults(self):
        cfg = Config()
        assert cfg.path_aliases == {"@/": "/"}
        assert cfg.resolve_extensions[:4] == [".tsx", ".ts", ".jsx", ".js"]
        assert ".json" in cfg.resolve_extensions
        assert cfg.record_grace_versions == 50

    @pytest.mark.unit
    def test_extension_without_dot_rejected(self):
        with pytest.raises(ValidationError, match="must start with"):
            Config(resolve_extensions=[".tsx", "jsx"])

    @pytest.mark.unit
    def test_grace_versions_must_be_positive(self):
        with pytest.raises(ValidationError):
            Config(record_grace_versions=0)

    @pytest.mark.unit
    def test_nested_defaults_are_independent(self):
        a = Config()
        b = Config()
        a.preview.include_tailwind = False
        assert b.preview.include_tailwind is True


class TestConfigSaveLoad:
    @pytest.mark.unit
    def test_round_trip(self, tmp_path: Path):
        cfg = Config(
            registry=RegistryConfig(base_url="https://cdn.example.com", default_version="18"),
            preview=PreviewConfig(artifact_mode=ArtifactMode.HOSTED, title="Demo"),
        )
        target = cfg.save(tmp_path / "nested" / "config.json")
        assert target.exists()

        loaded = Config.load(target)
        assert loaded == cfg
        assert loaded.preview.artifact_mode is ArtifactMode.HOSTED

    @pytest.mark.unit
    def test_saved_file_is_json(self, tmp_path: Path):
        target = Config().save(tmp_path / "config.json")
        data = json.loads(target.read_text(encoding="utf-8"))
        assert data["registry"]["base_url"] == "https://esm.sh"
        assert data["preview"]["artifact_mode"] == "data"


class TestConfigFromEnv:
    @pytest.mark.unit
    def test_no_variables_gives_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            cfg = Config.from_env()
        assert cfg == Config()

    @pytest.mark.unit
    def test_all_variables(self):
        env = {
            "LP_REGISTRY_URL": "https://cdn.example.com/",
            "LP_DEFAULT_VERSION": "18.2.0",
            "LP_ESBUILD_BINARY": "/opt/esbuild/bin/esbuild",
            "LP_TRANSPILE_TIMEOUT": "12.5",
            "LP_TRANSPILE_TARGET": "es2022",
            "LP_ARTIFACT_MODE": "hosted",
            "LP_ARTIFACT_BASE_URL": "/modules",
            "LP_INCLUDE_TAILWIND": "off",
            "LP_RECORD_GRACE_VERSIONS": "7",
        }
        with patch.dict(os.environ, env, clear=True):
            cfg = Config.from_env()

        assert cfg.registry.base_url == "https://cdn.example.com"
        assert cfg.registry.default_version == "18.2.0"
        assert cfg.transpile.esbuild_binary == "/opt/esbuild/bin/esbuild"
        assert cfg.transpile.timeout == 12.5
        assert cfg.transpile.target == "es2022"
        assert cfg.preview.artifact_mode is ArtifactMode.HOSTED
        assert cfg.preview.artifact_base_url == "/modules"
        assert cfg.preview.include_tailwind is False
        assert cfg.record_grace_versions == 7

    @pytest.mark.unit
    @pytest.mark.parametrize("value", ["1", "true", "YES", "on"])
    def test_tailwind_truthy_values(self, value: str):
        with patch.dict(os.environ, {"LP_INCLUDE_TAILWIND": value}, clear=True):
            assert Config.from_env().preview.include_tailwind is True

    @pytest.mark.unit
    def test_invalid_artifact_mode(self):
        with patch.dict(os.environ, {"LP_ARTIFACT_MODE": "ftp"}, clear=True):
            with pytest.raises(ValueError):
                Config.from_env()
