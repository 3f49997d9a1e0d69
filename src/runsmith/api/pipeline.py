"""Conversion helpers exposing a friendly facade over the execution engine.

Architecture
: `convert_markdown` renders Markdown (with YAML front matter) to HTML, parses
  it into a BeautifulSoup tree and hands it to `convert_html`.
: `convert_html` builds an `EngineContext` for the document, runs every
  registered tree processor over the tree and serialises the result.
: `convert_document` dispatches on the file suffix so callers can hand over a
  path without caring about the input format.
: `ConversionResult` returns the converted markup together with the engine
  state (cell results, cache files, build artifacts) of the run.

Usage Example
:
    >>> from runsmith.api.pipeline import convert_markdown
    >>> convert_markdown("# Title\\n\\nNo dynamic blocks here.").html
    '<h1>Title</h1>\\n<p>No dynamic blocks here.</p>'
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from bs4 import BeautifulSoup

from runsmith.adapters.markdown import render_markdown, split_front_matter
from runsmith.core.config import EngineConfig
from runsmith.core.context import EngineContext, EngineState
from runsmith.core.diagnostics import DiagnosticEmitter, NullEmitter
from runsmith.core.rules import ProcessorRegistry, TreeEngine
from runsmith.execution.compiled import process_compiled
from runsmith.execution.gateway import ProcessRunner
from runsmith.execution.notebook import process_notebook


MARKDOWN_SUFFIXES = frozenset({".md", ".markdown", ".mdown", ".mkd"})
HTML_SUFFIXES = frozenset({".html", ".htm"})


@dataclass(slots=True)
class ConversionResult:
    """Artifacts produced by a document conversion."""

    html: str
    attributes: dict[str, Any]
    state: EngineState
    source_path: Path | None = None

    @property
    def failures(self) -> int:
        """Return the number of fragments that reported a failure."""
        return self.state.failures


def build_engine(registry: ProcessorRegistry | None = None) -> TreeEngine:
    """Return a tree engine with the notebook and compiled processors registered."""
    engine = TreeEngine(registry)
    engine.register(process_notebook)
    engine.register(process_compiled)
    return engine


def convert_html(
    html: str,
    *,
    attributes: Mapping[str, Any] | None = None,
    source_path: Path | None = None,
    config: EngineConfig | None = None,
    emitter: DiagnosticEmitter | None = None,
    runner: ProcessRunner | None = None,
    engine: TreeEngine | None = None,
) -> ConversionResult:
    """Execute the dynamic fragments of an HTML document and splice their results."""
    optional: dict[str, Any] = {}
    if runner is not None:
        optional["runner"] = runner
    context = EngineContext.for_source(
        source_path,
        attributes=attributes,
        config=config or EngineConfig(),
        emitter=emitter or NullEmitter(),
        **optional,
    )
    root = BeautifulSoup(html, "html.parser")
    (engine or build_engine()).run(root, context)
    return ConversionResult(
        html=str(root),
        attributes=dict(context.attributes),
        state=context.state,
        source_path=source_path,
    )


def convert_markdown(
    source: str,
    *,
    source_path: Path | None = None,
    attributes: Mapping[str, Any] | None = None,
    markdown_extensions: Sequence[str] | None = None,
    **kwargs: Any,
) -> ConversionResult:
    """Convert Markdown to HTML, then run the dynamic fragments it declares.

    Explicit ``attributes`` override keys of the YAML front matter.
    ``markdown_extensions`` replaces the default extension list when given.
    """
    document = render_markdown(source, markdown_extensions)
    merged = dict(document.front_matter)
    merged.update(attributes or {})
    return convert_html(document.html, attributes=merged, source_path=source_path, **kwargs)


def convert_document(
    path: Path,
    *,
    attributes: Mapping[str, Any] | None = None,
    markdown_extensions: Sequence[str] | None = None,
    **kwargs: Any,
) -> ConversionResult:
    """Convert the Markdown or HTML document stored at ``path``.

    ``markdown_extensions`` only applies to Markdown sources.
    """
    source_path = Path(path)
    text = source_path.read_text(encoding="utf-8")
    if source_path.suffix.lower() in HTML_SUFFIXES:
        front_matter, body = split_front_matter(text)
        merged = {**front_matter, **(attributes or {})}
        return convert_html(body, attributes=merged, source_path=source_path, **kwargs)
    return convert_markdown(
        text,
        source_path=source_path,
        attributes=attributes,
        markdown_extensions=markdown_extensions,
        **kwargs,
    )


__all__ = [
    "HTML_SUFFIXES",
    "MARKDOWN_SUFFIXES",
    "ConversionResult",
    "build_engine",
    "convert_document",
    "convert_html",
    "convert_markdown",
]
