"""Custom exception hierarchy for the execution and embedding pipeline."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path


class RunsmithError(RuntimeError):
    """Base exception for runsmith failures."""


class CompilationError(RunsmithError):
    """Raised when a build tool fails or cannot be started."""

    def __init__(
        self,
        message: str,
        *,
        stderr: str = "",
        paths: Sequence[Path | str] = (),
    ) -> None:
        super().__init__(message)
        self.stderr = stderr
        self.paths = tuple(Path(path) for path in paths)


class ExecutionError(RunsmithError):
    """Raised when executed code cannot run or its results cannot be trusted."""

    def __init__(self, message: str, *, stderr: str = "", stdout: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr
        self.stdout = stdout


class ArtifactMissingError(ExecutionError):
    """Raised when a compiled artifact is absent at execution time."""

    def __init__(self, artifact: Path) -> None:
        super().__init__(f"Expected compiled executable not found at: {artifact}")
        self.artifact = artifact


class ProcessorOrderError(RunsmithError):
    """Raised when tree processor ordering constraints form a cycle."""


class MarkdownConversionError(RunsmithError):
    """Raised when Markdown cannot be converted into HTML."""


def exception_messages(exc: BaseException) -> list[str]:
    """Return the collected message chain for an exception and its causes."""
    messages: list[str] = []
    visited: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        text = str(current).strip()
        if text:
            first_line = text.splitlines()[0].strip()
            if first_line:
                messages.append(first_line)
        current = current.__cause__ or current.__context__
    return messages


def exception_hint(exc: BaseException) -> str | None:
    """Return the most specific message available for an exception chain."""
    messages = exception_messages(exc)
    return messages[-1] if messages else None


__all__ = [
    "ArtifactMissingError",
    "CompilationError",
    "ExecutionError",
    "MarkdownConversionError",
    "ProcessorOrderError",
    "RunsmithError",
    "exception_hint",
    "exception_messages",
]
