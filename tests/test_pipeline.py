from __future__ import annotations

import json
from pathlib import Path
import sys

from bs4 import BeautifulSoup
import pytest

from runsmith.api.pipeline import convert_document, convert_html, convert_markdown
from runsmith.core.config import EngineConfig
from runsmith.core.exceptions import ExecutionError, RunsmithError
from runsmith.execution.gateway import ExecutionRequest, ExecutionResult
from runsmith.execution.session import cell_id


MARKDOWN = """\
---
title: Demo
dynamic-blocks:
---

# Demo

```{.python .dynamic}
print("hello")
```

Some prose.
"""


class _StaticSession:
    """Answers every session with one successful cell printing ``stdout``."""

    def __init__(self, stdout: str) -> None:
        self.stdout = stdout
        self.requests: list[ExecutionRequest] = []

    def run(
        self,
        request: ExecutionRequest,
        *,
        error: type[RunsmithError] = ExecutionError,
        check: bool = False,
    ) -> ExecutionResult:
        self.requests.append(request)
        code = 'print("hello")'
        record = {
            "success": True,
            "stderr": "",
            "stdout": self.stdout,
            "id": cell_id(code, 0),
            "code": code,
        }
        return ExecutionResult(0, "", json.dumps([record]) + "\n")


def test_markdown_fence_attributes_reach_the_engine(tmp_path: Path) -> None:
    runner = _StaticSession("hello\n")

    result = convert_markdown(
        MARKDOWN,
        source_path=tmp_path / "demo.md",
        runner=runner,  # type: ignore[arg-type]
    )

    soup = BeautifulSoup(result.html, "html.parser")
    pre = soup.find("pre")
    assert pre is not None
    details = pre.find_next_sibling()
    assert details is not None and details.name == "details"
    assert details.find("div", class_="dynamic-py-result").get_text() == "hello"
    assert result.attributes["title"] == "Demo"
    assert result.failures == 0
    assert len(result.state.cells) == 1
    assert runner.requests[0].cwd == tmp_path


def test_markdown_without_marker_skips_execution() -> None:
    runner = _StaticSession("unused")
    source = "```{.python .dynamic}\nprint(1)\n```\n"

    result = convert_markdown(source, runner=runner)  # type: ignore[arg-type]

    assert runner.requests == []
    assert "Results" not in result.html


def test_explicit_attributes_override_front_matter() -> None:
    runner = _StaticSession("unused")
    result = convert_markdown(
        MARKDOWN,
        attributes={"dynamic-blocks": False},
        runner=runner,  # type: ignore[arg-type]
    )
    assert runner.requests == []
    assert result.attributes["dynamic-blocks"] is False


def test_convert_document_reads_html_with_front_matter(tmp_path: Path) -> None:
    path = tmp_path / "page.html"
    path.write_text(
        "---\ndynamic-blocks: true\n---\n"
        '<pre class="dynamic"><code class="language-python">print("hello")</code></pre>\n',
        encoding="utf-8",
    )
    runner = _StaticSession("hello\n")

    result = convert_document(path, runner=runner)  # type: ignore[arg-type]

    assert result.source_path == path
    assert "<summary class=\"title\">Results</summary>" in result.html


def test_convert_html_uses_configured_interpreter() -> None:
    runner = _StaticSession("hello\n")
    convert_html(
        '<pre class="dynamic"><code class="language-python">print("hello")</code></pre>',
        attributes={"dynamic-blocks": ""},
        config=EngineConfig(python_executable="/opt/py/bin/python"),
        runner=runner,  # type: ignore[arg-type]
    )
    assert runner.requests[0].command == "/opt/py/bin/python"


def test_real_session_shares_state_between_cells(tmp_path: Path) -> None:
    pytest.importorskip("IPython")
    source = (
        "---\ndynamic-blocks: true\ndynamic-blocks-cache-result: cache\n---\n\n"
        "```{.python .dynamic}\nanswer = 21\n```\n\n"
        "```{.python .dynamic}\nprint(answer * 2)\n```\n"
    )

    result = convert_markdown(
        source,
        source_path=tmp_path / "real.md",
        config=EngineConfig(python_executable=sys.executable, timeout=120),
    )

    soup = BeautifulSoup(result.html, "html.parser")
    outputs = [node.get_text() for node in soup.find_all("div", class_="dynamic-py-result")]
    assert outputs == ["", "42"]
    assert all(cell.success for cell in result.state.cells)
    assert sorted(path.name for path in (tmp_path / "cache").iterdir()) == sorted(
        f"{cell.id}.json" for cell in result.state.cells
    )
