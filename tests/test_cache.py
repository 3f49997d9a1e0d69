from __future__ import annotations

import json
from pathlib import Path

from runsmith.execution.cache import ResultCacheStore
from runsmith.execution.results import CellResult


def _result() -> CellResult:
    return CellResult(success=True, stderr="", stdout="42\n", id="d41d8cd9-0", code="print(42)")


def test_cache_disabled_without_attribute(tmp_path: Path) -> None:
    store = ResultCacheStore.from_attributes(
        {}, attribute="dynamic-blocks-cache-result", default=Path(".cache"), base_dir=tmp_path
    )
    assert store is None


def test_cache_uses_default_directory_for_empty_value(tmp_path: Path) -> None:
    store = ResultCacheStore.from_attributes(
        {"dynamic-blocks-cache-result": ""},
        attribute="dynamic-blocks-cache-result",
        default=Path(".cache"),
        base_dir=tmp_path,
    )
    assert store is not None
    assert store.root == tmp_path / ".cache"


def test_cache_accepts_explicit_directory(tmp_path: Path) -> None:
    store = ResultCacheStore.from_attributes(
        {"dynamic-blocks-cache-result": "results"},
        attribute="dynamic-blocks-cache-result",
        default=Path(".cache"),
        base_dir=tmp_path,
    )
    assert store is not None
    assert store.root == tmp_path / "results"


def test_cache_write_is_deterministic(tmp_path: Path) -> None:
    store = ResultCacheStore(tmp_path / "cache")
    result = _result()

    first = store.write(result)
    content = first.read_text(encoding="utf-8")
    second = store.write(result)

    assert first == second == tmp_path / "cache" / "d41d8cd9-0.json"
    assert second.read_text(encoding="utf-8") == content
    assert json.loads(content) == {
        "success": True,
        "stderr": "",
        "stdout": "42\n",
        "id": "d41d8cd9-0",
        "code": "print(42)",
    }
