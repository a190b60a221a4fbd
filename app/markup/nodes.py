"""
app/markup/nodes.py

Immutable markup tree used by the converter, parser, sanitizer and serializer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Union

ROOT_TAG = "#root"


@dataclass(frozen=True)
class Text:
    """
    Character data leaf.
    """

    value: str


@dataclass(frozen=True)
class Element:
    """
    Tagged element with attributes and ordered children.
    """

    tag: str
    attributes: Mapping[str, str] = field(default_factory=dict)
    children: tuple["MarkupNode", ...] = ()

    @property
    def is_root(self) -> bool:
        return self.tag == ROOT_TAG

    def text_content(self) -> str:
        return flatten_text(self)


MarkupNode = Union[Text, Element]


def root(*children: MarkupNode) -> Element:
    """
    Build a synthetic container element holding ``children``.
    """

    return Element(tag=ROOT_TAG, children=tuple(children))


def flatten_text(node: MarkupNode) -> str:
    """
    Concatenate all text below ``node`` in document order.

    Iterative so that degenerate, very deep trees can still be flattened.
    """

    parts: list[str] = []
    stack: list[object] = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, Text):
            parts.append(current.value)
        elif isinstance(current, Element):
            stack.extend(reversed(current.children))
        elif isinstance(current, str):
            parts.append(current)
    return "".join(parts)
