"""
app/markup/parser.py

BeautifulSoup-backed parsing of serialized markup into immutable nodes.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import Comment, Declaration, Doctype, ProcessingInstruction

from app.markup.nodes import Element, MarkupNode, Text, root

MARKUP_HINT_RE = re.compile(r"<\s*/?\s*[a-zA-Z][a-zA-Z0-9]*(?:\s[^<>]*)?/?\s*>")

_DISCARDED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)


def looks_like_markup(value: str) -> bool:
    """
    Return True when ``value`` contains at least one tag-like token.
    """

    return bool(MARKUP_HINT_RE.search(value))


def parse_markup(html: str) -> Element:
    """
    Parse an HTML fragment into a synthetic root element.
    """

    soup = BeautifulSoup(html or "", "html.parser")
    return root(*_convert_children(soup))


def _convert_children(parent: Tag) -> list[MarkupNode]:
    nodes: list[MarkupNode] = []
    for child in parent.children:
        if isinstance(child, Tag):
            nodes.append(
                Element(
                    tag=child.name.lower(),
                    attributes=_convert_attributes(child),
                    children=tuple(_convert_children(child)),
                )
            )
        elif isinstance(child, _DISCARDED_STRINGS):
            continue
        elif isinstance(child, NavigableString):
            nodes.append(Text(str(child)))
    return nodes


def _convert_attributes(tag: Tag) -> dict[str, str]:
    attributes: dict[str, str] = {}
    for name, value in tag.attrs.items():
        if isinstance(value, (list, tuple)):
            value = " ".join(str(item) for item in value)
        attributes[str(name).lower()] = "" if value is None else str(value)
    return attributes
