"""Transformation of captured output into embeddable nodes.

The output kind of a fragment is resolved once from its ``raw`` and ``output``
options and selects exactly one transform:

`PLAIN`
: stdout wrapped in a literal block.

`RAW`
: stdout passed through as markup. Plotly chart payloads are still recognised
  so that several charts are grouped as a grid.

`PLOTLY`
: every ``plotly-graph-div`` payload is extracted; more than one payload tags
  the container as a grid.

`PYVISTA`
: the exported vtk.js page is rebound to a dedicated container and wrapped
  with a resize observer so the canvas follows layout changes.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
import re

from bs4 import BeautifulSoup
from bs4.element import PageElement

from runsmith.core.diagnostics import DiagnosticEmitter
from runsmith.core.tree import literal_block, pass_block

from .fragments import SourceFragment


RESULT_ROLE = "dynamic-py-result"
PLOTLY_ROLE = "dynamic-py-result-plotly"
PLOTLY_GRID_ROLE = "dynamic-py-result-plotly-grid"
PYVISTA_ROLE = "dynamic-py-result-pyvista"

PLOTLY_PLOT = re.compile(
    r'<div id="[^"]+" class="plotly-graph-div"[^>]*>.*?</script>', re.DOTALL
)
PYVISTA_CONTAINER = re.compile(
    r"^var container = document\.querySelector\('\.content'\);$", re.MULTILINE
)
PYVISTA_SCRIPT = re.compile(r"(?P<script><script .*</script>)", re.DOTALL)
PYVISTA_FAVICON = re.compile(
    r'n\.setAttribute\("href","https://kitware\.github\.io/vtk-js/icon/favicon-"'
    r'\.concat\(t,"x"\)\.concat\(t,"\.png"\)\),'
)

PYVISTA_WRAPPER = """\
<div id="{container}" style="position: relative; height: 500px; border: 1px solid #cecece;"></div>
<script>
const resizeObserver = new ResizeObserver((entries) => {{
  for (const entry of entries) {{
    window.dispatchEvent(new Event('resize'))
  }}
}})
resizeObserver.observe(document.getElementById('{container}'))
</script>
{script}"""


class OutputKind(Enum):
    """Closed set of output renderings a fragment can declare."""

    PLAIN = "plain"
    RAW = "raw"
    PLOTLY = "plotly"
    PYVISTA = "pyvista"

    @classmethod
    def for_fragment(cls, fragment: SourceFragment) -> OutputKind:
        """Resolve the kind declared by ``fragment``."""
        if not fragment.flag_or_attribute("raw"):
            return cls.PLAIN
        declared = (fragment.attribute("output") or "").strip().lower()
        if declared == cls.PYVISTA.value:
            return cls.PYVISTA
        if declared == cls.PLOTLY.value:
            return cls.PLOTLY
        return cls.RAW


@dataclass(slots=True)
class OutputPayload:
    """Nodes to embed plus the roles of the container holding them."""

    nodes: list[PageElement]
    roles: tuple[str, ...] = ()
    charts: int = 0
    warnings: list[str] = field(default_factory=list)


Transform = Callable[[BeautifulSoup, str, int], OutputPayload]


def extract_plotly_charts(text: str) -> list[str]:
    """Return every Plotly chart payload found in ``text``."""
    return [match.group(0) for match in PLOTLY_PLOT.finditer(text)]


def render_plain(soup: BeautifulSoup, text: str, index: int) -> OutputPayload:
    """Wrap ``text`` in a literal block."""
    return OutputPayload(nodes=[literal_block(soup, text.rstrip("\n"), role=RESULT_ROLE)])


def render_plotly(soup: BeautifulSoup, text: str, index: int) -> OutputPayload:
    """Embed every Plotly chart, grouping several charts as a grid."""
    charts = extract_plotly_charts(text)
    if not charts:
        payload = render_raw_markup(soup, text, index)
        payload.warnings.append("No Plotly chart found in the output; embedding it as-is.")
        return payload
    roles = [RESULT_ROLE, PLOTLY_ROLE]
    if len(charts) > 1:
        roles.append(PLOTLY_GRID_ROLE)
    return OutputPayload(
        nodes=pass_block("\n".join(charts)), roles=tuple(roles), charts=len(charts)
    )


def render_raw_markup(soup: BeautifulSoup, text: str, index: int) -> OutputPayload:
    """Pass ``text`` through unescaped."""
    return OutputPayload(nodes=pass_block(text), roles=(RESULT_ROLE,))


def render_raw(soup: BeautifulSoup, text: str, index: int) -> OutputPayload:
    """Pass markup through, recognising Plotly charts when present."""
    if extract_plotly_charts(text):
        return render_plotly(soup, text, index)
    return render_raw_markup(soup, text, index)


def render_pyvista(soup: BeautifulSoup, text: str, index: int) -> OutputPayload:
    """Bind an exported PyVista scene to its own container."""
    container = f"pyvista-{index}"
    source = PYVISTA_CONTAINER.sub(
        f"var container = document.getElementById('{container}')", text, count=1
    )
    source = PYVISTA_FAVICON.sub("", source, count=1)
    found = PYVISTA_SCRIPT.search(source)
    if found is None:
        payload = render_raw_markup(soup, source, index)
        payload.warnings.append("No PyVista scene found in the output; embedding it as-is.")
        return payload
    markup = PYVISTA_WRAPPER.format(container=container, script=found.group("script"))
    return OutputPayload(nodes=pass_block(markup), roles=(RESULT_ROLE, PYVISTA_ROLE), charts=1)


TRANSFORMS: dict[OutputKind, Transform] = {
    OutputKind.PLAIN: render_plain,
    OutputKind.RAW: render_raw,
    OutputKind.PLOTLY: render_plotly,
    OutputKind.PYVISTA: render_pyvista,
}


def transform_output(
    kind: OutputKind,
    soup: BeautifulSoup,
    text: str,
    *,
    index: int,
    emitter: DiagnosticEmitter | None = None,
) -> OutputPayload:
    """Run the transform registered for ``kind``."""
    payload = TRANSFORMS[kind](soup, text, index)
    if emitter is not None:
        for message in payload.warnings:
            emitter.warning(message)
    return payload


__all__ = [
    "PLOTLY_GRID_ROLE",
    "PLOTLY_ROLE",
    "PYVISTA_ROLE",
    "RESULT_ROLE",
    "TRANSFORMS",
    "OutputKind",
    "OutputPayload",
    "extract_plotly_charts",
    "render_plain",
    "render_plotly",
    "render_pyvista",
    "render_raw",
    "transform_output",
]
