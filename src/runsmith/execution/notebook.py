"""Interpreter-session strategy: run a document's Python fragments as notebook cells.

The fragments of a document are executed in document order by one
interpreter process, so later fragments see the bindings of earlier ones.
Results are spliced after their fragment inside a collapsible ``Results``
container.

Prerequisites: the configured interpreter must be on the ``PATH`` and able to
import IPython together with whatever the fragments import.
"""

from __future__ import annotations

from bs4 import BeautifulSoup
from bs4.element import Tag

from runsmith.core.context import EngineContext
from runsmith.core.exceptions import ExecutionError
from runsmith.core.rules import tree_processor
from runsmith.core.tree import append_content, example_block, insert_after

from .cache import ResultCacheStore
from .fragments import SourceFragment, discover_fragments, is_execution_enabled
from .gateway import ExecutionRequest
from .outputs import OutputKind, transform_output
from .policy import ErrorPolicy
from .results import CellResult, parse_session_output
from .session import ExecutionSession


RESULTS_TITLE = "Results"


def run_session(session: ExecutionSession, context: EngineContext) -> list[CellResult]:
    """Execute every cell of ``session`` in a single interpreter process."""
    config = context.config
    request = ExecutionRequest(
        command=config.python_executable,
        args=("-",),
        cwd=context.base_dir,
        stdin=session.script,
        max_buffer=config.max_buffer,
        timeout=config.timeout,
    )
    result = context.runner.run(request, error=ExecutionError)
    if not result.success:
        raise ExecutionError(
            f"Unable to execute {config.python_executable}! status: {result.returncode}, "
            f"stdout: {result.stdout}, stderr: {result.stderr}",
            stderr=result.stderr,
            stdout=result.stdout,
        )
    return parse_session_output(result.stderr, expected=len(session))


def build_result_block(
    soup: BeautifulSoup, fragment: SourceFragment, result: CellResult, context: EngineContext
) -> Tag:
    """Create the ``Results`` container embedding a cell's output."""
    text = result.stdout
    if not result.success and not text:
        text = result.stderr
    payload = transform_output(
        OutputKind.for_fragment(fragment),
        soup,
        text,
        index=fragment.index,
        emitter=context.emitter,
    )
    block = example_block(soup, RESULTS_TITLE, roles=payload.roles, opened=fragment.opened)
    return append_content(block, payload.nodes)


@tree_processor(priority=10, name="notebook_session")
def process_notebook(root: BeautifulSoup, context: EngineContext) -> None:
    """Execute dynamic Python fragments and splice their results."""
    config = context.config
    if not is_execution_enabled(context.attributes, config.enable_attribute):
        return

    fragments = discover_fragments(
        root, config.session_languages, option=config.execute_option
    )
    if not fragments:
        return

    session = ExecutionSession(fragments)
    context.emitter.event(
        "session_start", {"cells": len(session), "document": context.document_name}
    )
    results = run_session(session, context)

    cache = ResultCacheStore.from_attributes(
        context.attributes,
        attribute=config.cache_attribute,
        default=config.default_cache_dir,
        base_dir=context.base_dir,
    )
    policy = ErrorPolicy(context.emitter)

    for fragment, result in zip(fragments, results, strict=True):
        context.state.cells.append(result)
        if cache is not None:
            path = cache.write(result)
            context.state.cache_files.append(path)
            context.emitter.event("cache_write", {"id": result.id, "path": str(path)})
        if not result.success:
            context.state.cell_failures += 1
        policy.check_cell(fragment, result)
        insert_after(fragment.node, build_result_block(root, fragment, result, context))

    context.emitter.event(
        "session_complete",
        {"cells": len(results), "failures": context.state.cell_failures},
    )


__all__ = ["RESULTS_TITLE", "build_result_block", "process_notebook", "run_session"]
