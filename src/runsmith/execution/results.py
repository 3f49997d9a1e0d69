"""Decoding of the structured results reported by a notebook session."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
import json
from typing import Any

from runsmith.core.exceptions import ExecutionError


RESULT_FIELDS = ("success", "stderr", "stdout", "id", "code")


@dataclass(frozen=True, slots=True)
class CellResult:
    """Outcome of one cell executed inside a session."""

    success: bool
    stderr: str
    stdout: str
    id: str
    code: str

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> CellResult:
        """Build a result from one decoded protocol record."""
        missing = [name for name in RESULT_FIELDS if name not in payload]
        if missing:
            raise ExecutionError(
                f"Session result record is missing field(s): {', '.join(missing)}"
            )
        return cls(
            success=bool(payload["success"]),
            stderr=str(payload["stderr"] or ""),
            stdout=str(payload["stdout"] or ""),
            id=str(payload["id"]),
            code=str(payload["code"]),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the protocol record, fields in wire order."""
        return asdict(self)

    @property
    def error_text(self) -> str:
        """Return the payload reported when the cell fails."""
        return f"{self.stderr} {self.stdout}"


def parse_session_output(stderr: str, *, expected: int | None = None) -> list[CellResult]:
    """Decode the JSON result list the session script writes on stderr.

    The list is the last non-empty line of the stream; anything the interpreter
    printed to stderr before it is ignored.
    """
    payload_line = next(
        (line for line in reversed(stderr.splitlines()) if line.strip()),
        None,
    )
    if payload_line is None:
        raise ExecutionError("The notebook session did not report any result.", stderr=stderr)

    try:
        decoded = json.loads(payload_line)
    except json.JSONDecodeError as exc:
        raise ExecutionError(
            f"Unable to decode notebook session results: {exc}", stderr=stderr
        ) from exc

    if not isinstance(decoded, list) or not all(isinstance(item, dict) for item in decoded):
        raise ExecutionError(
            "Notebook session results must be a list of records.", stderr=stderr
        )

    results = [CellResult.from_mapping(item) for item in decoded]
    if expected is not None and len(results) != expected:
        raise ExecutionError(
            f"Expected {expected} cell result(s) but the session reported {len(results)}.",
            stderr=stderr,
        )
    return results


__all__ = ["RESULT_FIELDS", "CellResult", "parse_session_output"]
