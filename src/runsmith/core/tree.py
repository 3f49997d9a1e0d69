"""Host tree primitives: node constructors and the document splicer.

The host document is a BeautifulSoup tree. Output nodes mirror the block
vocabulary of classic documentation toolchains:

`literal block`
: ``<div class="literalblock ROLE"><div class="content"><pre>TEXT</pre></div></div>``.
  Text is stored as a string node so markup-sensitive characters are
  entity-escaped when the tree is serialised.

`pass block`
: raw markup parsed and inserted as-is.

`example block`
: a titled container. Collapsible examples render as ``<details>`` with a
  ``<summary class="title">``; sidecar examples render as
  ``<div class="exampleblock sidecar">``.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, cast

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PageElement, Tag


def gather_classes(value: Any) -> list[str]:
    """Return a list of classes extracted from a BeautifulSoup attribute."""
    if isinstance(value, str):
        return value.split()
    if isinstance(value, Iterable) and not isinstance(value, (bytes, bytearray)):
        return [cast(str, item) for item in value if isinstance(item, str)]
    return []


def coerce_attribute(value: Any) -> str | None:
    """Normalise a BeautifulSoup attribute value to a string when possible."""
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if isinstance(value, Iterable):
        return " ".join(item for item in value if isinstance(item, str))
    return None


def add_role(node: Tag, *roles: str) -> Tag:
    """Append role classes to a node, keeping existing classes in order."""
    classes = gather_classes(node.get("class"))
    for role in roles:
        if role and role not in classes:
            classes.append(role)
    if classes:
        node["class"] = classes
    return node


def literal_block(soup: BeautifulSoup, text: str, *, role: str | None = None) -> Tag:
    """Create a pre-formatted literal block holding ``text`` verbatim."""
    wrapper = soup.new_tag("div")
    add_role(wrapper, "literalblock", role or "")
    content = soup.new_tag("div")
    content["class"] = ["content"]
    pre = soup.new_tag("pre")
    pre.append(NavigableString(text))
    content.append(pre)
    wrapper.append(content)
    return wrapper


def pass_block(markup: str) -> list[PageElement]:
    """Parse raw markup into detached nodes ready to be appended elsewhere."""
    fragment = BeautifulSoup(markup, "html.parser")
    return [node.extract() for node in list(fragment.contents)]


def example_block(
    soup: BeautifulSoup,
    title: str,
    *,
    roles: Iterable[str] = (),
    collapsible: bool = True,
    opened: bool = False,
) -> Tag:
    """Create a titled container whose children go into its content node."""
    if collapsible:
        block = soup.new_tag("details")
        if opened:
            block["open"] = ""
        heading = soup.new_tag("summary")
    else:
        block = soup.new_tag("div")
        add_role(block, "exampleblock")
        heading = soup.new_tag("div")
    add_role(block, *roles)
    heading["class"] = ["title"]
    heading.string = title
    content = soup.new_tag("div")
    content["class"] = ["content"]
    block.append(heading)
    block.append(content)
    return block


def block_content(block: Tag) -> Tag:
    """Return the content node of an example block."""
    content = block.find("div", class_="content", recursive=False)
    if not isinstance(content, Tag):
        raise ValueError(f"<{block.name}> is not an example block")
    return content


def append_content(block: Tag, nodes: Iterable[PageElement]) -> Tag:
    """Append nodes to the content node of an example block."""
    content = block_content(block)
    for node in nodes:
        content.append(node)
    return block


def insert_after(anchor: Tag, *nodes: PageElement) -> None:
    """Insert nodes directly after ``anchor`` among its siblings.

    The anchor's position is looked up when the call happens so insertions made
    earlier in the pass (which shift sibling indices) are accounted for.
    """
    parent = anchor.parent
    if parent is None:
        raise ValueError("Cannot splice nodes next to a detached element")
    index = parent.index(anchor)
    for offset, node in enumerate(nodes, start=1):
        parent.insert(index + offset, node)


__all__ = [
    "add_role",
    "append_content",
    "block_content",
    "coerce_attribute",
    "example_block",
    "gather_classes",
    "insert_after",
    "literal_block",
    "pass_block",
]
