"""Fail-fast versus warn-and-continue decisions for failing fragments."""

from __future__ import annotations

from dataclasses import dataclass

from runsmith.core.diagnostics import DiagnosticEmitter
from runsmith.core.exceptions import ExecutionError, RunsmithError

from .fragments import SourceFragment
from .results import CellResult


@dataclass(slots=True)
class ErrorPolicy:
    """Apply a fragment's ``fail-on-error`` declaration to its failures."""

    emitter: DiagnosticEmitter

    def check_cell(self, fragment: SourceFragment, result: CellResult) -> None:
        """Warn about a failed cell, or abort the pass when it opted in."""
        if result.success:
            return
        if fragment.fail_on_error:
            raise ExecutionError(result.error_text, stderr=result.stderr, stdout=result.stdout)
        self.emitter.warning(f"Execution is unsuccessful! {result.stdout}")

    def check_run(
        self,
        fragment: SourceFragment,
        *,
        command: str,
        returncode: int,
        stdout: str,
        stderr: str,
    ) -> None:
        """Apply the policy to a compiled program that exited with an error."""
        if returncode == 0:
            return
        message = f"'{command}' exited with status {returncode}"
        if fragment.fail_on_error:
            raise ExecutionError(f"{message}: {stderr} {stdout}", stderr=stderr, stdout=stdout)
        self.emitter.warning(message)

    def fragment_failed(self, fragment: SourceFragment, exc: RunsmithError) -> None:
        """Record an error scoped to one fragment, re-raising when it opted in."""
        if fragment.fail_on_error:
            raise exc
        self.emitter.error(
            f"Fragment #{fragment.index} ({fragment.language}) failed: {exc}", exc
        )


__all__ = ["ErrorPolicy"]
