"""Typer application wiring for the runsmith CLI."""

from __future__ import annotations

import logging
from typing import Annotated

from pydantic import ValidationError
import typer
import yaml

from runsmith.adapters.markdown import resolve_markdown_extensions
from runsmith.api.pipeline import convert_document
from runsmith.core.config import load_engine_config
from runsmith.core.exceptions import RunsmithError, exception_hint
from runsmith.version import get_version

from ._options import (
    DIAGNOSTICS_PANEL,
    ConfigOption,
    DebugOption,
    DisableMarkdownExtensionsOption,
    InputPathArgument,
    MarkdownExtensionsOption,
    OutputPathOption,
    PythonOption,
    TimeoutOption,
    VerbosityOption,
    WorkspaceOption,
)
from .diagnostics import CliEmitter
from .state import debug_enabled, emit_error, get_cli_state, set_cli_state


app = typer.Typer(
    help="Execute dynamic code blocks of a document and embed their results.",
    context_settings={"help_option_names": ["--help"]},
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(get_version())
        raise typer.Exit()


def _configure_logging(verbosity: int) -> None:
    if verbosity < 2:
        return
    from rich.logging import RichHandler

    state = get_cli_state()
    handler = RichHandler(console=state.err_console, show_path=False)
    logging.basicConfig(
        level=logging.DEBUG if verbosity >= 3 else logging.INFO,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )


@app.command()
def run(
    ctx: typer.Context,
    input_path: InputPathArgument,
    output: OutputPathOption = None,
    config: ConfigOption = None,
    workspace: WorkspaceOption = None,
    python: PythonOption = None,
    timeout: TimeoutOption = None,
    enable_extension: MarkdownExtensionsOption = None,
    disable_extension: DisableMarkdownExtensionsOption = None,
    verbose: VerbosityOption = 0,
    debug: DebugOption = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show the installed version and exit.",
            rich_help_panel=DIAGNOSTICS_PANEL,
        ),
    ] = False,
) -> None:
    """Convert INPUT, running its dynamic blocks, and write the resulting HTML."""
    state = set_cli_state(ctx=ctx, verbosity=verbose, debug=debug)
    _configure_logging(state.verbosity)

    try:
        engine_config = load_engine_config(
            config,
            workspace=workspace,
            python_executable=python,
            timeout=timeout,
        )
    except (OSError, ValidationError, ValueError, yaml.YAMLError) as exc:
        emit_error(f"Invalid configuration: {exception_hint(exc) or exc}", exception=exc)
        raise typer.Exit(code=1) from exc

    extensions = resolve_markdown_extensions(enable_extension, disable_extension)
    emitter = CliEmitter(state)
    try:
        result = convert_document(
            input_path,
            config=engine_config,
            emitter=emitter,
            markdown_extensions=extensions,
        )
    except RunsmithError as exc:
        if debug_enabled():
            raise
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc

    if output is None:
        typer.echo(result.html)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(result.html, encoding="utf-8")
    if state.verbosity >= 1:
        state.err_console.log(f"Wrote {output}")


def main() -> None:
    """Entry point compatible with console scripts."""
    try:
        app()
    except typer.Exit:
        raise
    except KeyboardInterrupt as exc:
        if debug_enabled():
            raise
        emit_error("Operation cancelled by user.", exception=exc)
        raise typer.Exit(code=1) from exc
    except SystemExit:
        raise
    except Exception as exc:  # pragma: no cover - last-resort reporting
        state = get_cli_state()
        if state.show_tracebacks:
            from rich.traceback import Traceback

            tb = Traceback.from_exception(
                type(exc),
                exc,
                exc.__traceback__,
                show_locals=state.verbosity >= 2,
            )
            state.err_console.print(tb)
        else:
            emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc


__all__ = ["app", "main"]
