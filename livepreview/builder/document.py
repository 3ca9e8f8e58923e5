"""Sandboxed preview document assembly.

Renders the ``preview.html.j2`` Jinja2 template into a complete HTML
document that installs the import map, loads the entry module and reports
uncaught errors to the host (``window.parent.postMessage``) while showing an
in-sandbox overlay. Every build renders a brand-new document.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from livepreview.builder.import_map import ImportMap
from livepreview.builder.models import StyleAsset
from livepreview.config import PreviewConfig
from livepreview.errors import Diagnostic

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"
_TEMPLATE_NAME = "preview.html.j2"

# Specifiers the render bootstrap imports on its own.
RUNTIME_SPECIFIERS: tuple[str, ...] = ("react", "react-dom/client")

_CLOSE_STYLE = re.compile(r"</(style)", re.IGNORECASE)


def _style_text_filter(css: str) -> Markup:
    """Make CSS safe to inline in a ``<style>`` element."""
    return Markup(_CLOSE_STYLE.sub(r"<\\/\1", css))


class PreviewDocumentBuilder:
    """Renders preview and error-overlay documents."""

    def __init__(self, config: PreviewConfig | None = None, template_dir: str | Path | None = None):
        self.config = config or PreviewConfig()
        self.template_dir = Path(template_dir) if template_dir else _DEFAULT_TEMPLATE_DIR
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape(["html", "j2"]),
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["style_text"] = _style_text_filter

    @property
    def runtime_specifiers(self) -> tuple[str, ...]:
        return RUNTIME_SPECIFIERS

    def build(
        self,
        entry_path: str,
        import_map: ImportMap,
        generation: int,
        styles: Iterable[StyleAsset] = (),
    ) -> str:
        """Render the document for one successful build."""
        return self._render(
            generation=generation,
            entry_specifier=entry_path,
            import_map=import_map.to_dict(),
            styles=list(styles),
            diagnostics=[],
        )

    def build_error_document(self, diagnostics: list[Diagnostic], generation: int) -> str:
        """Render an overlay-only document listing *diagnostics*."""
        return self._render(
            generation=generation,
            entry_specifier=None,
            import_map=None,
            styles=[],
            diagnostics=list(diagnostics),
        )

    def _render(self, **context) -> str:
        template = self.env.get_template(_TEMPLATE_NAME)
        return template.render(
            title=self.config.title,
            root_id=self.config.root_element_id,
            tailwind_url=self.config.tailwind_url if self.config.include_tailwind else None,
            **context,
        )
