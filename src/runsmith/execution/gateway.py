"""Synchronous gateway for invoking external toolchains."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
import logging
from pathlib import Path
import shlex
import shutil
import subprocess

from runsmith.core.exceptions import CompilationError, ExecutionError, RunsmithError


logger = logging.getLogger(__name__)

DEFAULT_MAX_BUFFER = 50 * 1024 * 1024


@dataclass(frozen=True, slots=True)
class ExecutionRequest:
    """Full request payload for one external-process invocation."""

    command: str
    args: Sequence[str] = field(default_factory=tuple)
    cwd: Path | None = None
    stdin: str | None = None
    max_buffer: int = DEFAULT_MAX_BUFFER
    timeout: float | None = None

    @property
    def argv(self) -> list[str]:
        """Return the argument vector handed to the operating system."""
        return [self.command, *self.args]

    def display(self) -> str:
        """Return a shell-like rendering of the command line."""
        return shlex.join(self.argv)


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Captured outcome of an external process."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        """Return True when the process exited with status zero."""
        return self.returncode == 0


class ProcessRunner:
    """Spawn external processes and map their failures to typed errors."""

    def __init__(self) -> None:
        self._cached: dict[str, str] = {}

    def run(
        self,
        request: ExecutionRequest,
        *,
        error: type[RunsmithError] = ExecutionError,
        check: bool = False,
    ) -> ExecutionResult:
        """Execute ``request`` and return its captured output.

        Failures to start the process, timeouts and buffer overflows always
        raise ``error``. A non-zero exit status raises only when ``check`` is
        set; otherwise the caller inspects :attr:`ExecutionResult.success`.
        """
        executable = self._resolve_executable(request.command) or request.command
        argv = [executable, *request.args]
        logger.debug("spawning %s (cwd=%s)", shlex.join(argv), request.cwd)
        try:
            completed = subprocess.run(
                argv,
                check=False,
                capture_output=True,
                text=True,
                input=request.stdin,
                cwd=request.cwd,
                timeout=request.timeout,
            )
        except FileNotFoundError as exc:
            self._cached.pop(request.command, None)
            raise self._build_error(
                error, f"Executable '{request.command}' could not be located.", request
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise self._build_error(
                error,
                f"'{request.display()}' timed out after {request.timeout} seconds.",
                request,
                stdout=_decode(exc.stdout),
                stderr=_decode(exc.stderr),
            ) from exc
        except OSError as exc:
            raise self._build_error(
                error, f"Failed to invoke '{request.command}': {exc}", request
            ) from exc

        stdout = completed.stdout or ""
        stderr = completed.stderr or ""
        for stream, payload in (("stdout", stdout), ("stderr", stderr)):
            if len(payload) > request.max_buffer:
                raise self._build_error(
                    error,
                    f"'{request.display()}' exceeded the {request.max_buffer} character "
                    f"{stream} buffer.",
                    request,
                    stdout=stdout[: request.max_buffer],
                    stderr=stderr[: request.max_buffer],
                )

        result = ExecutionResult(returncode=completed.returncode, stdout=stdout, stderr=stderr)
        if check and not result.success:
            detail = stderr.strip() or stdout.strip()
            message = f"'{request.display()}' failed with exit code {result.returncode}"
            if detail:
                message = f"{message}: {detail}"
            raise self._build_error(error, message, request, stdout=stdout, stderr=stderr)
        return result

    def _build_error(
        self,
        error: type[RunsmithError],
        message: str,
        request: ExecutionRequest,
        *,
        stdout: str = "",
        stderr: str = "",
    ) -> RunsmithError:
        if issubclass(error, CompilationError):
            paths = [request.cwd] if request.cwd is not None else []
            return error(message, stderr=stderr, paths=paths)
        if issubclass(error, ExecutionError):
            return error(message, stderr=stderr, stdout=stdout)
        return error(message)

    def _resolve_executable(self, command: str) -> str | None:
        if command in self._cached:
            return self._cached[command]

        if "/" in command or "\\" in command:
            return None

        try:
            executable = shutil.which(command)
        except (AssertionError, OSError, ValueError):
            executable = None

        if executable:
            self._cached[command] = executable
        return executable


def _decode(payload: str | bytes | None) -> str:
    if payload is None:
        return ""
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace")
    return payload


__all__ = [
    "DEFAULT_MAX_BUFFER",
    "ExecutionRequest",
    "ExecutionResult",
    "ProcessRunner",
]
