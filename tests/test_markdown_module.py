from __future__ import annotations

import pytest

from runsmith.adapters.markdown import (
    DEFAULT_MARKDOWN_EXTENSIONS,
    MarkdownConversionError,
    normalize_markdown_extensions,
    render_markdown,
    resolve_markdown_extensions,
    split_front_matter,
)


def test_split_front_matter_extracts_metadata() -> None:
    metadata, body = split_front_matter("---\ndynamic-blocks:\ntitle: X\n---\n# Body\n")
    assert metadata == {"dynamic-blocks": None, "title": "X"}
    assert body == "# Body\n"


def test_split_front_matter_ignores_unterminated_block() -> None:
    source = "---\ntitle: X\n# Body\n"
    assert split_front_matter(source) == ({}, source)


def test_split_front_matter_ignores_invalid_yaml() -> None:
    source = "---\n: [\n---\nBody\n"
    assert split_front_matter(source) == ({}, source)


def test_fenced_attributes_are_rendered_on_pre_and_code() -> None:
    document = render_markdown(
        '```{.python .dynamic .open fail-on-error=""}\nprint(1)\n```\n'
    )
    assert '<pre class="dynamic open"><code class="language-python" fail-on-error="">' in (
        document.html
    )
    assert document.front_matter == {}


def test_resolve_extensions_applies_overrides() -> None:
    resolved = resolve_markdown_extensions(["toc", "tables"], ["footnotes"])
    assert "toc" in resolved
    assert "footnotes" not in resolved
    assert resolved.count("tables") == 1
    assert resolved[0] == DEFAULT_MARKDOWN_EXTENSIONS[0] == "fenced_code"


def test_normalize_extensions_flattens_option_values() -> None:
    assert normalize_markdown_extensions(None) == []
    assert normalize_markdown_extensions("toc, tables") == ["toc", "tables"]
    assert normalize_markdown_extensions(["toc", "abbr  def_list"]) == ["toc", "abbr", "def_list"]


def test_unknown_extension_raises_conversion_error() -> None:
    with pytest.raises(MarkdownConversionError, match="initialize Markdown processor"):
        render_markdown("text\n", ["fenced_code", "no_such_extension_xyz"])


def test_front_matter_keeps_byte_order_mark() -> None:
    metadata, body = split_front_matter("\ufeff---\ntitle: X\n---\nBody\n")
    assert metadata == {"title": "X"}
    assert body == "\ufeffBody\n"
