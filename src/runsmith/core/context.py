"""Per-conversion context shared by every tree processor."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from slugify import slugify

from .config import EngineConfig
from .diagnostics import DiagnosticEmitter, NullEmitter


if TYPE_CHECKING:  # pragma: no cover - typing only
    from runsmith.execution.gateway import ProcessRunner
    from runsmith.execution.results import CellResult


def _default_runner() -> ProcessRunner:
    from runsmith.execution.gateway import ProcessRunner

    return ProcessRunner()


@dataclass(slots=True)
class EngineState:
    """Bookkeeping accumulated while a document is processed."""

    cells: list[CellResult] = field(default_factory=list)
    cell_failures: int = 0
    compiled: list[str] = field(default_factory=list)
    runs: int = 0
    run_failures: int = 0
    cache_files: list[Path] = field(default_factory=list)
    build_files: list[Path] = field(default_factory=list)

    @property
    def failures(self) -> int:
        """Return the number of fragments whose execution reported a failure."""
        return self.cell_failures + self.run_failures


@dataclass
class EngineContext:
    """Explicit context object constructed once per document conversion."""

    config: EngineConfig = field(default_factory=EngineConfig)
    attributes: Mapping[str, Any] = field(default_factory=dict)
    document_name: str = "document"
    base_dir: Path = field(default_factory=Path.cwd)
    emitter: DiagnosticEmitter = field(default_factory=NullEmitter)
    runner: ProcessRunner = field(default_factory=_default_runner)
    state: EngineState = field(default_factory=EngineState)

    @classmethod
    def for_source(
        cls,
        source: Path | None,
        *,
        attributes: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> EngineContext:
        """Build a context whose naming and relative paths follow ``source``."""
        if source is not None:
            kwargs.setdefault("document_name", source.stem)
            kwargs.setdefault("base_dir", source.parent)
        return cls(attributes=dict(attributes or {}), **kwargs)

    def has_attribute(self, name: str) -> bool:
        """Return True when the document declares ``name``."""
        return name in self.attributes

    def attribute(self, name: str, default: Any = None) -> Any:
        """Return a document attribute value."""
        return self.attributes.get(name, default)

    def resolve_path(self, path: Path | str) -> Path:
        """Resolve ``path`` against the document base directory."""
        candidate = Path(path).expanduser()
        if candidate.is_absolute():
            return candidate
        return self.base_dir / candidate

    @property
    def document_slug(self) -> str:
        """Return a filesystem-friendly identifier for the document."""
        return slugify(self.document_name, separator="-", lowercase=False) or "document"

    @property
    def document_workspace(self) -> Path:
        """Return the directory holding this document's sources and artifacts."""
        return self.resolve_path(self.config.workspace) / self.document_slug


__all__ = ["EngineContext", "EngineState"]
