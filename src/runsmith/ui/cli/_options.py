"""Shared Typer option definitions for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer


INPUTS_PANEL = "Input Handling"
EXECUTION_PANEL = "Execution"
OUTPUT_PANEL = "Output"
MARKDOWN_PANEL = "Markdown"
DIAGNOSTICS_PANEL = "Diagnostics"

InputPathArgument = Annotated[
    Path,
    typer.Argument(
        metavar="INPUT",
        help="Markdown (.md) or HTML (.html) document holding dynamic blocks.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        resolve_path=True,
        rich_help_panel=INPUTS_PANEL,
    ),
]

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="YAML file providing engine settings (optionally under a 'runsmith:' key).",
        exists=True,
        dir_okay=False,
        readable=True,
        rich_help_panel=INPUTS_PANEL,
    ),
]

OutputPathOption = Annotated[
    Path | None,
    typer.Option(
        "--output",
        "-o",
        help="Output HTML file. Defaults to stdout.",
        show_default=False,
        rich_help_panel=OUTPUT_PANEL,
    ),
]

WorkspaceOption = Annotated[
    Path | None,
    typer.Option(
        "--workspace",
        "-w",
        help="Directory receiving compiled sources and artifacts.",
        show_default=False,
        rich_help_panel=EXECUTION_PANEL,
    ),
]

PythonOption = Annotated[
    str | None,
    typer.Option(
        "--python",
        help="Interpreter running the Python session (must provide IPython).",
        show_default=False,
        rich_help_panel=EXECUTION_PANEL,
    ),
]

TimeoutOption = Annotated[
    float | None,
    typer.Option(
        "--timeout",
        min=0.0,
        help="Per-process timeout in seconds.",
        show_default=False,
        rich_help_panel=EXECUTION_PANEL,
    ),
]

MarkdownExtensionsOption = Annotated[
    list[str] | None,
    typer.Option(
        "--enable-extension",
        "-x",
        help="Additional Markdown extensions to enable (comma or space separated values are accepted).",
        show_default=False,
        rich_help_panel=MARKDOWN_PANEL,
    ),
]

DisableMarkdownExtensionsOption = Annotated[
    list[str] | None,
    typer.Option(
        "--disable-extension",
        "-X",
        help="Markdown extensions to disable. Provide a comma separated list or repeat the option.",
        show_default=False,
        rich_help_panel=MARKDOWN_PANEL,
    ),
]

VerbosityOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Increase CLI verbosity. Combine multiple times for additional diagnostics.",
        rich_help_panel=DIAGNOSTICS_PANEL,
    ),
]

DebugOption = Annotated[
    bool,
    typer.Option(
        "--debug",
        help="Show full tracebacks when an unexpected error occurs.",
        rich_help_panel=DIAGNOSTICS_PANEL,
    ),
]


__all__ = [
    "DIAGNOSTICS_PANEL",
    "EXECUTION_PANEL",
    "INPUTS_PANEL",
    "MARKDOWN_PANEL",
    "OUTPUT_PANEL",
    "ConfigOption",
    "DebugOption",
    "DisableMarkdownExtensionsOption",
    "InputPathArgument",
    "MarkdownExtensionsOption",
    "OutputPathOption",
    "PythonOption",
    "TimeoutOption",
    "VerbosityOption",
    "WorkspaceOption",
]
