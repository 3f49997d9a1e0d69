from __future__ import annotations

import ast
from collections.abc import Callable, Mapping
import json
from pathlib import Path
from typing import Any

from bs4 import BeautifulSoup
from bs4.element import Tag
import pytest

from runsmith.core.context import EngineContext
from runsmith.core.exceptions import ExecutionError, RunsmithError
from runsmith.execution.gateway import ExecutionRequest, ExecutionResult
from runsmith.execution.notebook import process_notebook
from runsmith.execution.session import cell_id


CellOutcome = tuple[bool, str, str]


class _FakeInterpreter:
    """Stand-in for the session interpreter answering with canned cell outcomes."""

    def __init__(self, evaluate: Callable[[str], CellOutcome], returncode: int = 0) -> None:
        self.evaluate = evaluate
        self.returncode = returncode
        self.requests: list[ExecutionRequest] = []

    def run(
        self,
        request: ExecutionRequest,
        *,
        error: type[RunsmithError] = ExecutionError,
        check: bool = False,
    ) -> ExecutionResult:
        self.requests.append(request)
        assert request.stdin is not None
        first_line = request.stdin.split("\n", 1)[0]
        cells = ast.literal_eval(first_line[len("CELLS = ") :])
        records = []
        for index, code in enumerate(cells):
            success, stdout, stderr = self.evaluate(code)
            records.append(
                {
                    "success": success,
                    "stderr": stderr,
                    "stdout": stdout,
                    "id": cell_id(code, index),
                    "code": code,
                }
            )
        return ExecutionResult(
            returncode=self.returncode,
            stdout="",
            stderr="\n" + json.dumps(records) + "\n",
        )


class _Recorder:
    debug_enabled = False

    def __init__(self) -> None:
        self.warnings: list[str] = []
        self.errors: list[str] = []
        self.events: list[tuple[str, dict[str, Any]]] = []

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        self.warnings.append(message)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        self.errors.append(message)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        self.events.append((name, dict(payload)))


def _echo(code: str) -> CellOutcome:
    if code.startswith("print("):
        return True, ast.literal_eval(code[len("print(") : -1]) + "\n", ""
    if code.startswith("raise"):
        return False, "Traceback...\nValueError: nope\n", ""
    return True, "", ""


def _context(
    tmp_path: Path,
    runner: _FakeInterpreter,
    attributes: dict[str, Any] | None = None,
) -> tuple[EngineContext, _Recorder]:
    recorder = _Recorder()
    context = EngineContext(
        attributes={"dynamic-blocks": ""} if attributes is None else attributes,
        document_name="guide",
        base_dir=tmp_path,
        emitter=recorder,
        runner=runner,  # type: ignore[arg-type]
    )
    return context, recorder


def _block(code: str, extra: str = "") -> str:
    return f'<pre class="dynamic"><code class="language-python"{extra}>{code}\n</code></pre>'


def _result_after(pre: Tag) -> Tag:
    sibling = pre.find_next_sibling()
    assert isinstance(sibling, Tag)
    return sibling


def test_hello_world_result_is_spliced_after_fragment(tmp_path: Path) -> None:
    soup = BeautifulSoup(
        "<p>Intro</p>" + _block('print("hello")') + "<p>Outro</p>", "html.parser"
    )
    runner = _FakeInterpreter(_echo)
    context, recorder = _context(tmp_path, runner)

    process_notebook(soup, context)

    pre = soup.find("pre")
    assert isinstance(pre, Tag)
    details = _result_after(pre)
    assert details.name == "details"
    assert not details.has_attr("open")
    summary = details.find("summary")
    assert summary is not None and summary.get_text() == "Results"
    literal = details.find("div", class_="dynamic-py-result")
    assert literal is not None and literal.get_text() == "hello"
    assert _result_after(details).get_text() == "Outro"

    assert len(runner.requests) == 1
    assert runner.requests[0].command == "python3"
    assert runner.requests[0].args == ("-",)
    assert runner.requests[0].cwd == tmp_path
    assert [name for name, _ in recorder.events] == ["session_start", "session_complete"]
    assert recorder.warnings == []


def test_cells_share_one_session_and_keep_order(tmp_path: Path) -> None:
    soup = BeautifulSoup(
        _block('print("one")') + "<p>between</p>" + _block('print("two")'), "html.parser"
    )
    runner = _FakeInterpreter(_echo)
    context, _ = _context(tmp_path, runner)

    process_notebook(soup, context)

    first, second = soup.find_all("pre")
    assert _result_after(first).get_text().endswith("one")
    assert _result_after(second).get_text().endswith("two")
    assert len(runner.requests) == 1
    assert len(context.state.cells) == 2


def test_document_without_marker_is_untouched(tmp_path: Path) -> None:
    markup = _block('print("hello")')
    soup = BeautifulSoup(markup, "html.parser")
    runner = _FakeInterpreter(_echo)
    context, _ = _context(tmp_path, runner, attributes={})

    process_notebook(soup, context)

    assert runner.requests == []
    assert str(soup) == markup


def test_open_option_expands_results(tmp_path: Path) -> None:
    soup = BeautifulSoup(
        '<pre class="dynamic open"><code class="language-python">print("x")</code></pre>',
        "html.parser",
    )
    context, _ = _context(tmp_path, _FakeInterpreter(_echo))

    process_notebook(soup, context)

    pre = soup.find("pre")
    assert isinstance(pre, Tag)
    assert _result_after(pre).has_attr("open")


def test_failed_cell_warns_and_embeds_output(tmp_path: Path) -> None:
    soup = BeautifulSoup(_block("raise ValueError('nope')"), "html.parser")
    context, recorder = _context(tmp_path, _FakeInterpreter(_echo))

    process_notebook(soup, context)

    pre = soup.find("pre")
    assert isinstance(pre, Tag)
    assert "ValueError: nope" in _result_after(pre).get_text()
    assert recorder.warnings == ["Execution is unsuccessful! Traceback...\nValueError: nope\n"]
    assert context.state.cell_failures == 1


def test_failed_cell_with_fail_on_error_aborts(tmp_path: Path) -> None:
    soup = BeautifulSoup(
        _block("raise ValueError('nope')", ' fail-on-error=""'), "html.parser"
    )
    context, _ = _context(tmp_path, _FakeInterpreter(_echo))

    with pytest.raises(ExecutionError) as excinfo:
        process_notebook(soup, context)

    assert str(excinfo.value) == " Traceback...\nValueError: nope\n"


def test_interpreter_failure_aborts_the_pass(tmp_path: Path) -> None:
    soup = BeautifulSoup(_block('print("hello")'), "html.parser")
    context, _ = _context(tmp_path, _FakeInterpreter(_echo, returncode=1))

    with pytest.raises(ExecutionError, match="Unable to execute python3"):
        process_notebook(soup, context)


def test_results_are_written_to_cache(tmp_path: Path) -> None:
    soup = BeautifulSoup(_block('print("hello")'), "html.parser")
    context, recorder = _context(
        tmp_path,
        _FakeInterpreter(_echo),
        attributes={"dynamic-blocks": "", "dynamic-blocks-cache-result": ""},
    )

    process_notebook(soup, context)

    code = 'print("hello")'
    path = tmp_path / ".cache" / f"{cell_id(code, 0)}.json"
    assert context.state.cache_files == [path]
    assert json.loads(path.read_text(encoding="utf-8")) == {
        "success": True,
        "stderr": "",
        "stdout": "hello\n",
        "id": cell_id(code, 0),
        "code": code,
    }
    assert "cache_write" in [name for name, _ in recorder.events]


def test_plotly_output_is_grouped_as_grid(tmp_path: Path) -> None:
    chart = (
        '<div id="{0}" class="plotly-graph-div"></div>'
        '<script type="text/javascript">Plotly.newPlot("{0}")</script>'
    )

    def _plot(code: str) -> CellOutcome:
        return True, chart.format("a") + chart.format("b"), ""

    soup = BeautifulSoup(
        '<pre class="dynamic"><code class="language-python" raw="" output="plotly">'
        "fig.show()</code></pre>",
        "html.parser",
    )
    context, _ = _context(tmp_path, _FakeInterpreter(_plot))

    process_notebook(soup, context)

    pre = soup.find("pre")
    assert isinstance(pre, Tag)
    details = _result_after(pre)
    assert details.get("class") == [
        "dynamic-py-result",
        "dynamic-py-result-plotly",
        "dynamic-py-result-plotly-grid",
    ]
    assert len(details.find_all("div", class_="plotly-graph-div")) == 2
