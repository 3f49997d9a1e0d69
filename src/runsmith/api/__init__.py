"""Facade aggregating the high-level runsmith entry points.

Architecture
: `convert_document`, `convert_markdown` and `convert_html` run the tree
  engine over a document and return a `ConversionResult`.
: `build_engine` exposes the processor wiring so embedders can register extra
  tree processors next to the built-in ones.
"""

from __future__ import annotations

from .pipeline import (
    ConversionResult,
    build_engine,
    convert_document,
    convert_html,
    convert_markdown,
)


__all__ = [
    "ConversionResult",
    "build_engine",
    "convert_document",
    "convert_html",
    "convert_markdown",
]
