"""Markdown conversion utilities for runsmith.

Fenced blocks keep their attribute lists, so a fence opened with
``{.python .dynamic .open fail-on-error=""}`` renders as
``<pre class="dynamic open"><code class="language-python" fail-on-error="">``
which the fragment discoverer reads back.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
import re
from threading import Lock
from typing import Any

import markdown
import yaml

from runsmith.core.exceptions import MarkdownConversionError


__all__ = [
    "DEFAULT_MARKDOWN_EXTENSIONS",
    "MarkdownConversionError",
    "MarkdownDocument",
    "deduplicate_markdown_extensions",
    "normalize_markdown_extensions",
    "render_markdown",
    "resolve_markdown_extensions",
    "split_front_matter",
]


DEFAULT_MARKDOWN_EXTENSIONS = [
    "fenced_code",
    "attr_list",
    "abbr",
    "admonition",
    "def_list",
    "footnotes",
    "md_in_html",
    "tables",
    "pymdownx.betterem",
    "pymdownx.caret",
    "pymdownx.mark",
    "pymdownx.tasklist",
    "pymdownx.tilde",
]


@dataclass(slots=True)
class MarkdownDocument:
    """Result of converting Markdown into HTML."""

    html: str
    front_matter: dict[str, Any]


@dataclass(slots=True)
class _CachedProcessor:
    processor: markdown.Markdown
    lock: Lock = field(default_factory=Lock)


_PROCESSORS: dict[tuple[str, ...], _CachedProcessor] = {}
_PROCESSORS_GUARD = Lock()
_SEPARATORS = re.compile(r"[,\s]+")


def normalize_markdown_extensions(values: Iterable[str] | str | None) -> list[str]:
    """Flatten ``-x toc,tables``-style option values into extension names."""
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    return [name for value in values for name in _SEPARATORS.split(value) if name]


def deduplicate_markdown_extensions(values: Iterable[str]) -> list[str]:
    """Drop repeated extension names (case-insensitive), keeping the first spelling."""
    unique: dict[str, str] = {}
    for value in values:
        unique.setdefault(value.lower(), value)
    return list(unique.values())


def resolve_markdown_extensions(
    requested: Iterable[str] | None,
    disabled: Iterable[str] | None,
) -> list[str]:
    """Return the defaults plus ``requested``, minus anything in ``disabled``."""
    combined = deduplicate_markdown_extensions(
        [*DEFAULT_MARKDOWN_EXTENSIONS, *normalize_markdown_extensions(requested)]
    )
    dropped = {name.lower() for name in normalize_markdown_extensions(disabled)}
    return [name for name in combined if name.lower() not in dropped]


def render_markdown(
    source: str,
    extensions: Sequence[str] | None = None,
) -> MarkdownDocument:
    """Convert Markdown source into HTML while collecting front matter."""
    metadata, body = split_front_matter(source)
    cached = _processor_for(tuple(extensions or DEFAULT_MARKDOWN_EXTENSIONS))

    try:
        with cached.lock:
            html = cached.processor.reset().convert(body)
    except Exception as exc:  # pragma: no cover - library-controlled
        raise MarkdownConversionError(f"Failed to convert Markdown source: {exc}") from exc

    return MarkdownDocument(html=html, front_matter=metadata)


def split_front_matter(source: str) -> tuple[dict[str, Any], str]:
    """Split a leading ``---`` YAML block from ``source``, returning metadata and body.

    Unterminated or malformed blocks leave the source untouched.
    """
    text = source.lstrip("\ufeff")
    bom = source[: len(source) - len(text)]
    lines = text.splitlines()
    if not lines or lines[0].strip() != "---":
        return {}, source

    closing = next(
        (index for index, line in enumerate(lines[1:], start=1) if line.strip() in {"---", "..."}),
        None,
    )
    if closing is None:
        return {}, source

    try:
        metadata = yaml.safe_load("\n".join(lines[1:closing])) or {}
    except yaml.YAMLError:
        return {}, source

    body = "\n".join(lines[closing + 1 :])
    if source.endswith("\n"):
        body += "\n"
    return (metadata if isinstance(metadata, dict) else {}), bom + body


def _processor_for(extensions: tuple[str, ...]) -> _CachedProcessor:
    with _PROCESSORS_GUARD:
        cached = _PROCESSORS.get(extensions)
        if cached is None:
            try:
                processor = markdown.Markdown(extensions=list(extensions))
            except Exception as exc:
                raise MarkdownConversionError(
                    f"Failed to initialize Markdown processor: {exc}"
                ) from exc
            cached = _PROCESSORS[extensions] = _CachedProcessor(processor)
    return cached
