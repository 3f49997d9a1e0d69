from __future__ import annotations

from importlib import import_module
from pathlib import Path

import pytest
from typer.testing import CliRunner

from runsmith.core.exceptions import ExecutionError
from runsmith.ui.cli import app


# The package re-exports the Typer ``app`` object, which shadows the submodule attribute.
cli_app = import_module("runsmith.ui.cli.app")


def _write(tmp_path: Path, name: str, content: str) -> Path:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


def test_cli_writes_html_to_stdout(tmp_path: Path) -> None:
    source = _write(tmp_path, "doc.md", "# Title\n\nPlain text.\n")

    result = CliRunner().invoke(app, [str(source)])

    assert result.exit_code == 0, result.output
    assert "<h1>Title</h1>" in result.output


def test_cli_writes_output_file(tmp_path: Path) -> None:
    source = _write(tmp_path, "doc.md", "Plain *text*.\n")
    target = tmp_path / "out" / "doc.html"

    result = CliRunner().invoke(app, [str(source), "--output", str(target)])

    assert result.exit_code == 0, result.output
    assert target.read_text(encoding="utf-8") == "<p>Plain <em>text</em>.</p>"


def test_cli_forwards_engine_options(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    source = _write(tmp_path, "doc.md", "text\n")
    config = _write(tmp_path, "runsmith.yml", "runsmith:\n  default_compile: cmake\n")
    captured: dict[str, object] = {}

    class _Result:
        html = "<p>ok</p>"

    def fake_convert(path: Path, **kwargs: object) -> _Result:
        captured["path"] = path
        captured.update(kwargs)
        return _Result()

    monkeypatch.setattr(cli_app, "convert_document", fake_convert)

    result = CliRunner().invoke(
        app,
        [
            str(source),
            "--config",
            str(config),
            "--python",
            "/opt/py/bin/python",
            "--timeout",
            "12",
            "--workspace",
            str(tmp_path / "ws"),
        ],
    )

    assert result.exit_code == 0, result.output
    engine_config = captured["config"]
    assert captured["path"] == source.resolve()
    assert engine_config.python_executable == "/opt/py/bin/python"  # type: ignore[attr-defined]
    assert engine_config.timeout == 12.0  # type: ignore[attr-defined]
    assert engine_config.default_compile == "cmake"  # type: ignore[attr-defined]
    assert engine_config.workspace == tmp_path / "ws"  # type: ignore[attr-defined]


def test_cli_reports_engine_errors(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    source = _write(tmp_path, "doc.md", "text\n")

    def fake_convert(path: Path, **_: object) -> None:
        raise ExecutionError("Unable to execute python3! status: 1")

    monkeypatch.setattr(cli_app, "convert_document", fake_convert)

    result = CliRunner().invoke(app, [str(source)])

    assert result.exit_code == 1
    assert "Unable to execute python3" in result.output


def test_cli_rejects_invalid_configuration(tmp_path: Path) -> None:
    source = _write(tmp_path, "doc.md", "text\n")
    config = _write(tmp_path, "runsmith.yml", "default_compile: ninja\n")

    result = CliRunner().invoke(app, [str(source), "--config", str(config)])

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_cli_version() -> None:
    result = CliRunner().invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.strip()


def test_cli_resolves_markdown_extensions(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    source = _write(tmp_path, "doc.md", "text\n")
    captured: dict[str, object] = {}

    class _Result:
        html = "<p>ok</p>"

    def fake_convert(path: Path, **kwargs: object) -> _Result:
        captured.update(kwargs)
        return _Result()

    monkeypatch.setattr(cli_app, "convert_document", fake_convert)

    result = CliRunner().invoke(app, [str(source), "-x", "toc, tables", "-X", "footnotes"])

    assert result.exit_code == 0, result.output
    extensions = captured["markdown_extensions"]
    assert isinstance(extensions, list)
    assert extensions[0] == "fenced_code"
    assert "toc" in extensions
    assert extensions.count("tables") == 1
    assert "footnotes" not in extensions


def test_cli_disabled_extension_leaves_markup_untouched(tmp_path: Path) -> None:
    source = _write(tmp_path, "doc.md", "A ==marked== word.\n")

    enabled = CliRunner().invoke(app, [str(source)])
    disabled = CliRunner().invoke(app, [str(source), "--disable-extension", "pymdownx.mark"])

    assert enabled.exit_code == disabled.exit_code == 0
    assert "<mark>marked</mark>" in enabled.output
    assert "==marked==" in disabled.output
