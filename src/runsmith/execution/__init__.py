"""Execution strategies for dynamic fragments.

`notebook`
: Python fragments executed as cells of one IPython session per document.

`compiled`
: C and C++ fragments written to the document workspace, built and run once
  per argument set.
"""

from __future__ import annotations

from .cache import ResultCacheStore
from .compiled import process_compiled
from .fragments import SourceFragment, discover_fragments, is_execution_enabled
from .gateway import ExecutionRequest, ExecutionResult, ProcessRunner
from .notebook import process_notebook
from .outputs import OutputKind, OutputPayload, transform_output
from .policy import ErrorPolicy
from .results import CellResult, parse_session_output
from .session import ExecutionSession, synthesize_script


__all__ = [
    "CellResult",
    "ErrorPolicy",
    "ExecutionRequest",
    "ExecutionResult",
    "ExecutionSession",
    "OutputKind",
    "OutputPayload",
    "ProcessRunner",
    "ResultCacheStore",
    "SourceFragment",
    "discover_fragments",
    "is_execution_enabled",
    "parse_session_output",
    "process_compiled",
    "process_notebook",
    "synthesize_script",
    "transform_output",
]
