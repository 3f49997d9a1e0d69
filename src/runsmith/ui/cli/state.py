"""Per-invocation CLI state and the stderr renderers built on it."""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass, field
import sys
from typing import TYPE_CHECKING

import click
import typer


if TYPE_CHECKING:
    from rich.console import Console


@dataclass(slots=True)
class CLIState:
    """Verbosity and traceback settings of the running command."""

    verbosity: int = 0
    show_tracebacks: bool = False
    _err_console: Console | None = field(default=None, init=False, repr=False)

    @property
    def err_console(self) -> Console:
        """Return the stderr console, rebuilt whenever ``sys.stderr`` is swapped."""
        from rich.console import Console

        if self._err_console is None or self._err_console.file is not sys.stderr:
            self._err_console = Console(file=sys.stderr, highlight=False)
        return self._err_console


_STATE_VAR: ContextVar[CLIState | None] = ContextVar("runsmith_cli_state", default=None)


def get_cli_state(
    ctx: typer.Context | click.Context | None = None,
    *,
    create: bool = True,
) -> CLIState:
    """Return the state attached to ``ctx``, or the one of the current invocation."""
    if ctx is None:
        ctx = click.get_current_context(silent=True)

    if ctx is not None:
        owner = ctx.find_object(CLIState)
        if owner is None and create:
            owner = ctx.ensure_object(CLIState)
        if owner is not None:
            _STATE_VAR.set(owner)
            return owner

    state = _STATE_VAR.get()
    if state is None:
        if not create:
            raise RuntimeError("CLI state is not initialised for this context.")
        state = CLIState()
        _STATE_VAR.set(state)
    return state


def set_cli_state(
    *,
    ctx: typer.Context | None = None,
    verbosity: int | None = None,
    debug: bool | None = None,
) -> CLIState:
    """Apply the diagnostics flags of the command line to the current state."""
    state = get_cli_state(ctx)
    if verbosity is not None:
        state.verbosity = max(0, verbosity)
    if debug is not None:
        state.show_tracebacks = debug
    return state


def _exception_details(exception: BaseException, verbosity: int) -> list[str]:
    details = [f"type: {type(exception).__name__}"]
    if verbosity < 2:
        return details

    # Build and session errors carry the tool's stderr.
    stderr = getattr(exception, "stderr", None)
    if stderr:
        details.append("stderr:")
        details.extend(f"  {line}" for line in str(stderr).splitlines())

    cause = exception.__cause__ or exception.__context__
    seen: set[int] = set()
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        details.append(f"caused by: {type(cause).__name__}: {cause}")
        cause = cause.__cause__ or cause.__context__
    return details


def _render(level: str, style: str, message: str, exception: BaseException | None) -> None:
    from rich.text import Text

    state = get_cli_state()
    text = Text.assemble((f"{level}: ", f"bold {style}"), (message, style))
    if exception is not None and state.verbosity >= 1:
        text.append("\n" + "\n".join(_exception_details(exception, state.verbosity)), style=style)
    state.err_console.print(text)


def emit_progress(message: str) -> None:
    """Log an engine progress line; shown from ``-v`` on."""
    state = get_cli_state()
    if state.verbosity >= 1:
        state.err_console.log(message, markup=False, highlight=False)


def emit_warning(message: str, *, exception: BaseException | None = None) -> None:
    """Print a warning to stderr, with exception details from ``-v`` on."""
    _render("warning", "yellow", message, exception)


def emit_error(message: str, *, exception: BaseException | None = None) -> None:
    """Print an error to stderr, with exception details from ``-v`` on."""
    _render("error", "red", message, exception)


def debug_enabled() -> bool:
    """Return whether full tracebacks should be displayed."""
    try:
        return get_cli_state(create=False).show_tracebacks
    except RuntimeError:
        return False


__all__ = [
    "CLIState",
    "debug_enabled",
    "emit_error",
    "emit_progress",
    "emit_warning",
    "get_cli_state",
    "set_cli_state",
]
