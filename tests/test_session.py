from __future__ import annotations

import ast
import hashlib

from bs4 import BeautifulSoup

from runsmith.execution.fragments import discover_fragments
from runsmith.execution.session import (
    PLOTLY_CAPTURE,
    PYVISTA_CAPTURE,
    ExecutionSession,
    cell_id,
    prepare_cell_code,
    strip_callouts,
    substitute_show_calls,
    synthesize_script,
)


def _cells_from_script(script: str) -> list[str]:
    first_line = script.split("\n", 1)[0]
    assert first_line.startswith("CELLS = ")
    return ast.literal_eval(first_line[len("CELLS = ") :])


def test_strip_callouts_removes_markers() -> None:
    code = "\n".join(
        [
            "x = 1  # (1)",
            "y = 2  # (2)!",
            "z = 3 // <3>",
            "w = 4 <4>",
            'print(x)<i class="conum" data-value="5"></i><b>(5)</b>',
        ]
    )
    assert strip_callouts(code) == "x = 1\ny = 2\nz = 3\nw = 4\nprint(x)"


def test_strip_callouts_keeps_regular_comments() -> None:
    code = "value = 3  # three\nitems = [1, 2]  # (not a callout)"
    assert strip_callouts(code) == code


def test_substitute_show_calls() -> None:
    assert substitute_show_calls("fig.show()") == PLOTLY_CAPTURE
    assert substitute_show_calls("plotter.show()") == PYVISTA_CAPTURE
    assert substitute_show_calls("myfig.show()") == "myfig.show()"


def test_prepare_cell_code_combines_both_rewrites() -> None:
    assert prepare_cell_code("fig.show()  # (1)") == PLOTLY_CAPTURE


def test_cell_id_uses_md5_and_ordinal() -> None:
    digest = hashlib.md5(b"print(1)").hexdigest()
    assert cell_id("print(1)", 3) == f"{digest}-3"


def test_script_embeds_cells_in_order() -> None:
    soup = BeautifulSoup(
        '<pre class="dynamic"><code class="language-python">x = "a\'b"</code></pre>'
        '<pre class="dynamic"><code class="language-python">fig.show()</code></pre>',
        "html.parser",
    )
    session = ExecutionSession(discover_fragments(soup, ["python"]))

    assert len(session) == 2
    assert _cells_from_script(session.script) == ["x = \"a'b\"", PLOTLY_CAPTURE]
    assert session.cell_ids() == [
        cell_id("x = \"a'b\"", 0),
        cell_id(PLOTLY_CAPTURE, 1),
    ]


def test_script_runs_cells_in_one_shell_and_reports_on_stderr() -> None:
    script = synthesize_script(["x = 1", "print(x)"])

    assert script.count("InteractiveShell()") == 1
    assert "capture_output" in script
    assert "sys.stderr.write" in script
    assert "json.dumps(results)" in script
    compile(script, "<session>", "exec")
