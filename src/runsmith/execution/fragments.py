"""Discovery of executable source fragments inside the document tree."""

from __future__ import annotations

from collections.abc import Collection, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from bs4 import BeautifulSoup
from bs4.element import Tag

from runsmith.core.tree import coerce_attribute, gather_classes


LANGUAGE_PREFIXES = ("language-", "lang-")
_IGNORED_ATTRIBUTES = frozenset({"class", "id", "style"})
_FALSE_VALUES = frozenset({"false", "no", "off", "0"})


@dataclass(frozen=True, slots=True)
class SourceFragment:
    """One executable code block read from the document.

    ``flags`` holds bare options (``dynamic``, ``open``, ``raw``); ``attributes``
    holds named options such as ``fail-on-error`` or ``args``. Both are read once
    from the tree and never change afterwards.
    """

    index: int
    language: str
    code: str
    node: Tag = field(compare=False, repr=False)
    flags: frozenset[str] = frozenset()
    attributes: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def is_option(self, name: str) -> bool:
        """Return True when the bare option ``name`` is set."""
        return name in self.flags

    def has_attribute(self, name: str) -> bool:
        """Return True when the named option ``name`` is declared, even empty."""
        return name in self.attributes

    def attribute(self, name: str, default: str | None = None) -> str | None:
        """Return the value of a named option."""
        return self.attributes.get(name, default)

    def flag_or_attribute(self, name: str) -> bool:
        """Return True for ``%name`` style flags or a ``name=`` attribute."""
        if self.is_option(name):
            return True
        value = self.attributes.get(name)
        if value is None:
            return False
        return value.strip().lower() not in _FALSE_VALUES

    @property
    def fail_on_error(self) -> bool:
        """Return True when failures of this fragment must abort the pass."""
        return self.is_option("fail-on-error") or self.has_attribute("fail-on-error")

    @property
    def opened(self) -> bool:
        """Return True when result containers should start expanded."""
        return self.is_option("open")

    @property
    def options(self) -> dict[str, str]:
        """Return the option surface forwarded onto generated containers."""
        merged = {flag: "" for flag in sorted(self.flags)}
        merged.update(self.attributes)
        return merged


def is_execution_enabled(attributes: Mapping[str, Any], marker: str) -> bool:
    """Return True when the document opts into dynamic execution.

    The marker only has to be present; an explicit ``false`` disables it.
    """
    if marker not in attributes:
        return False
    value = attributes[marker]
    if value is False:
        return False
    if isinstance(value, str) and value.strip().lower() in _FALSE_VALUES:
        return False
    return True


def fragment_language(node: Tag) -> str | None:
    """Return the language tag of a ``<pre>`` block, if any."""
    for element in _option_carriers(node):
        for cls in gather_classes(element.get("class")):
            for prefix in LANGUAGE_PREFIXES:
                if cls.startswith(prefix) and len(cls) > len(prefix):
                    return cls[len(prefix) :].lower()
        for key in ("data-lang", "data-language", "language"):
            value = coerce_attribute(element.get(key))
            if value:
                return value.strip().lower()
    return None


def read_options(node: Tag) -> tuple[frozenset[str], dict[str, str]]:
    """Collect bare flags and named options declared on a fragment."""
    flags: set[str] = set()
    attributes: dict[str, str] = {}
    for element in _option_carriers(node):
        for cls in gather_classes(element.get("class")):
            if cls.startswith(LANGUAGE_PREFIXES) or cls == "highlight":
                continue
            flags.add(cls)
        for key, value in element.attrs.items():
            if key in _IGNORED_ATTRIBUTES or key in {"data-lang", "data-language", "language"}:
                continue
            name = key[len("data-") :] if key.startswith("data-") else key
            attributes[name] = coerce_attribute(value) or ""
    return frozenset(flags), attributes


def iter_candidate_blocks(root: BeautifulSoup | Tag) -> Iterator[Tag]:
    """Yield ``<pre>`` blocks in document order."""
    for node in root.find_all("pre"):
        if isinstance(node, Tag):
            yield node


def discover_fragments(
    root: BeautifulSoup | Tag,
    languages: Collection[str],
    *,
    option: str = "dynamic",
) -> list[SourceFragment]:
    """Return executable fragments in document traversal order.

    A block qualifies when its language belongs to ``languages`` and it carries
    the execution ``option``. The tree is not modified.
    """
    wanted = {language.lower() for language in languages}
    fragments: list[SourceFragment] = []
    for node in iter_candidate_blocks(root):
        language = fragment_language(node)
        if language is None or language not in wanted:
            continue
        flags, attributes = read_options(node)
        if option not in flags and option not in attributes:
            continue
        fragments.append(
            SourceFragment(
                index=len(fragments),
                language=language,
                code=_fragment_code(node),
                node=node,
                flags=flags,
                attributes=MappingProxyType(attributes),
            )
        )
    return fragments


def _option_carriers(node: Tag) -> list[Tag]:
    carriers = [node]
    code = node.find("code", recursive=False)
    if isinstance(code, Tag):
        carriers.append(code)
    return carriers


def _fragment_code(node: Tag) -> str:
    code = node.find("code", recursive=False)
    target = code if isinstance(code, Tag) else node
    text = target.get_text()
    return text[:-1] if text.endswith("\n") else text


__all__ = [
    "LANGUAGE_PREFIXES",
    "SourceFragment",
    "discover_fragments",
    "fragment_language",
    "is_execution_enabled",
    "iter_candidate_blocks",
    "read_options",
]
