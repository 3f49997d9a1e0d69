"""Audit cache persisting every cell result as a JSON document."""

from __future__ import annotations

from collections.abc import Mapping
import json
from pathlib import Path
from typing import Any

from .results import CellResult


class ResultCacheStore:
    """Write cell results to ``<root>/<id>.json``.

    Entries are overwritten on every conversion and are never read back to skip
    execution; the directory is a log of what ran and what it produced.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    @classmethod
    def from_attributes(
        cls,
        attributes: Mapping[str, Any],
        *,
        attribute: str,
        default: Path,
        base_dir: Path | None = None,
    ) -> ResultCacheStore | None:
        """Return a store when the document enables caching, otherwise ``None``."""
        if attribute not in attributes:
            return None
        value = attributes[attribute]
        if value is False:
            return None
        directory = Path(str(value)) if value not in (None, "", True) else default
        if base_dir is not None and not directory.is_absolute():
            directory = base_dir / directory
        return cls(directory)

    def ensure(self) -> Path:
        """Ensure the cache directory exists and return it."""
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    def path_for(self, result: CellResult) -> Path:
        """Return the file holding ``result``."""
        return self.root / f"{result.id}.json"

    def write(self, result: CellResult) -> Path:
        """Persist ``result``, replacing any previous entry."""
        self.ensure()
        target = self.path_for(result)
        target.write_text(json.dumps(result.to_dict()), encoding="utf-8")
        return target


__all__ = ["ResultCacheStore"]
