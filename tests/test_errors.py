"""Unit tests for the error taxonomy (livepreview.errors)."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from livepreview.errors import (
    BuildError,
    CycleError,
    Diagnostic,
    ImportResolutionError,
    NotFoundError,
    PathError,
    PreviewError,
    TranspileError,
)


class TestDiagnostic:
    @pytest.mark.unit
    def test_defaults(self):
        diagnostic = Diagnostic(message="boom")
        assert diagnostic.severity == "error"
        assert diagnostic.path == ""
        assert diagnostic.line is None

    @pytest.mark.unit
    def test_location_full(self):
        diagnostic = Diagnostic(path="/App.jsx", message="x", line=3, column=7)
        assert diagnostic.location() == "/App.jsx:3:7"

    @pytest.mark.unit
    def test_location_without_column(self):
        diagnostic = Diagnostic(path="/App.jsx", message="x", line=3)
        assert diagnostic.location() == "/App.jsx:3"

    @pytest.mark.unit
    def test_location_project_level(self):
        assert Diagnostic(message="x").location() == "<project>"

    @pytest.mark.unit
    def test_line_is_one_based(self):
        with pytest.raises(ValidationError):
            Diagnostic(message="x", line=0)

    @pytest.mark.unit
    def test_serialises(self):
        data = Diagnostic(path="/a.js", message="m", line=1, code="TranspileError").model_dump()
        assert data["code"] == "TranspileError"
        assert data["line"] == 1


class TestHierarchy:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "cls", [PathError, NotFoundError, CycleError, TranspileError, BuildError]
    )
    def test_all_derive_from_preview_error(self, cls):
        assert issubclass(cls, PreviewError)

    @pytest.mark.unit
    def test_import_resolution_is_not_found(self):
        assert issubclass(ImportResolutionError, NotFoundError)


class TestPreviewError:
    @pytest.mark.unit
    def test_to_diagnostic(self):
        diagnostic = PathError("Path already exists: /a", path="/a").to_diagnostic()
        assert diagnostic.path == "/a"
        assert diagnostic.message == "Path already exists: /a"
        assert diagnostic.code == "PathError"


class TestImportResolutionError:
    @pytest.mark.unit
    def test_message_and_fields(self):
        err = ImportResolutionError("./Missing", "/App.jsx", line=4)
        assert err.specifier == "./Missing"
        assert err.importer == "/App.jsx"
        assert err.path == "/App.jsx"
        assert "./Missing" in str(err)
        assert "/App.jsx" in str(err)

    @pytest.mark.unit
    def test_diagnostic_carries_line(self):
        diagnostic = ImportResolutionError("./Missing", "/App.jsx", line=4).to_diagnostic()
        assert diagnostic.line == 4
        assert diagnostic.code == "ImportResolutionError"


class TestCycleError:
    @pytest.mark.unit
    def test_message_closes_the_loop(self):
        err = CycleError(["/A.tsx", "/B.tsx"])
        assert err.cycle == ["/A.tsx", "/B.tsx"]
        assert str(err) == "Import cycle detected: /A.tsx -> /B.tsx -> /A.tsx"
        assert err.path == "/A.tsx"


class TestTranspileError:
    @pytest.mark.unit
    def test_diagnostic_location(self):
        diagnostic = TranspileError("Unexpected '<'", path="/App.jsx", line=2, column=5).to_diagnostic()
        assert diagnostic.location() == "/App.jsx:2:5"
        assert diagnostic.message == "Unexpected '<'"


class TestBuildError:
    @pytest.mark.unit
    def test_summary_and_diagnostics(self):
        errors = [
            NotFoundError("File not found: /a", path="/a"),
            CycleError(["/b", "/c"]),
        ]
        err = BuildError(errors)
        assert "2 error(s)" in str(err)
        assert [d.code for d in err.diagnostics()] == ["NotFoundError", "CycleError"]

    @pytest.mark.unit
    def test_summary_truncates(self):
        errors = [PreviewError(f"problem {i}") for i in range(5)]
        assert "(2 more)" in str(BuildError(errors))
