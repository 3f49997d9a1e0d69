"""Primary public API for runsmith."""

from __future__ import annotations

from runsmith.api import (
    ConversionResult,
    build_engine,
    convert_document,
    convert_html,
    convert_markdown,
)
from runsmith.core.config import EngineConfig, load_engine_config
from runsmith.core.context import EngineContext, EngineState
from runsmith.core.exceptions import (
    ArtifactMissingError,
    CompilationError,
    ExecutionError,
    MarkdownConversionError,
    RunsmithError,
)
from runsmith.core.rules import ProcessorRegistry, TreeEngine, tree_processor
from runsmith.version import get_version


__version__ = get_version()

__all__ = [
    "ArtifactMissingError",
    "CompilationError",
    "ConversionResult",
    "EngineConfig",
    "EngineContext",
    "EngineState",
    "ExecutionError",
    "MarkdownConversionError",
    "ProcessorRegistry",
    "RunsmithError",
    "TreeEngine",
    "__version__",
    "build_engine",
    "convert_document",
    "convert_html",
    "convert_markdown",
    "get_version",
    "load_engine_config",
    "tree_processor",
]
