"""Synthesis of the interpreter script that runs a document's notebook cells.

All fragments of one document run inside a single IPython
``InteractiveShell``: each fragment becomes a cell with its own captured
output while the shell's user namespace is shared, so bindings created by
cell *i* are visible to every later cell.

The script reports results on stderr as the final line, a JSON list holding
one record per cell::

    {"success": bool, "stderr": str, "stdout": str, "id": "<md5>-<index>", "code": str}

Charts are captured by rewriting the trailing "show" calls of the supported
visualisation libraries so they serialise to stdout instead of opening a
viewer.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
import hashlib
import re

from .fragments import SourceFragment


CALLOUT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r'\s*<i class="conum" data-value="[0-9]+"></i><b>[^>]+</b>'),
    re.compile(r"[ \t]*(?:#|//)[ \t]*(?:\([0-9]+\)!?|<[0-9]+>)[ \t]*$", re.MULTILINE),
    re.compile(r"[ \t]+<[0-9]+>[ \t]*$", re.MULTILINE),
)

PLOTLY_SHOW = re.compile(r"\bfig\.show\(\)")
PLOTLY_CAPTURE = "import sys; fig.write_html(file=sys.stdout, include_plotlyjs=False)"

PYVISTA_SHOW = re.compile(r"\bplotter\.show\(\)")
PYVISTA_CAPTURE = "import sys; sys.stdout.write(plotter.export_html(None).getvalue())"

SHOW_SUBSTITUTIONS: tuple[tuple[re.Pattern[str], str], ...] = (
    (PLOTLY_SHOW, PLOTLY_CAPTURE),
    (PYVISTA_SHOW, PYVISTA_CAPTURE),
)

SESSION_TEMPLATE = """\
import hashlib
import json
import sys

from IPython.core.interactiveshell import InteractiveShell
from IPython.utils.capture import capture_output

shell = InteractiveShell()
shell.run_cell("%colors nocolor")
results = []

for index, code in enumerate(CELLS):
    with capture_output() as captured:
        outcome = shell.run_cell(code)
    digest = hashlib.md5(code.encode("utf8")).hexdigest()
    results.append(
        {
            "success": outcome.success,
            "stderr": captured.stderr,
            "stdout": captured.stdout,
            "id": f"{digest}-{index}",
            "code": code,
        }
    )

sys.stderr.write("\\n" + json.dumps(results) + "\\n")
"""


def strip_callouts(code: str) -> str:
    """Remove callout markers, which annotate the listing but are not code."""
    for pattern in CALLOUT_PATTERNS:
        code = pattern.sub("", code)
    return code


def substitute_show_calls(code: str) -> str:
    """Rewrite chart "show" calls into their stdout-serialising equivalents."""
    for pattern, replacement in SHOW_SUBSTITUTIONS:
        code = pattern.sub(replacement, code)
    return code


def prepare_cell_code(code: str) -> str:
    """Return the code actually executed for a fragment."""
    return substitute_show_calls(strip_callouts(code))


def cell_id(code: str, index: int) -> str:
    """Return the stable identifier of a cell: ``<md5 of code>-<ordinal>``."""
    digest = hashlib.md5(code.encode("utf8")).hexdigest()
    return f"{digest}-{index}"


@dataclass(slots=True)
class ExecutionSession:
    """Ordered cells of one document, executed by a single interpreter."""

    fragments: Sequence[SourceFragment]
    cells: list[str] = field(init=False)

    def __post_init__(self) -> None:
        self.cells = [prepare_cell_code(fragment.code) for fragment in self.fragments]

    def __len__(self) -> int:
        return len(self.cells)

    def cell_ids(self) -> list[str]:
        """Return the identifiers the script will report, in order."""
        return [cell_id(code, index) for index, code in enumerate(self.cells)]

    @property
    def script(self) -> str:
        """Return the Python script running every cell in order."""
        return synthesize_script(self.cells)


def synthesize_script(cells: Sequence[str]) -> str:
    """Build the interpreter script for already prepared ``cells``."""
    return f"CELLS = {list(cells)!r}\n\n{SESSION_TEMPLATE}"


__all__ = [
    "CALLOUT_PATTERNS",
    "ExecutionSession",
    "PLOTLY_CAPTURE",
    "PYVISTA_CAPTURE",
    "SESSION_TEMPLATE",
    "cell_id",
    "prepare_cell_code",
    "strip_callouts",
    "substitute_show_calls",
    "synthesize_script",
]
