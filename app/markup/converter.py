"""
app/markup/converter.py

Heuristic plain-text to markup conversion for spreadsheet cell content.

Classification is purely syntactic. Lines are scanned once per paragraph
group and fed to a small state machine:

    NONE -> IN_ORDERED_LIST | IN_UNORDERED_LIST | IN_PARAGRAPH
    any  -> NONE            (heading, or end of group)

Known false positives are accepted: a short all-caps sentence, or a short
line where every word is capitalised, is emitted as a heading.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from app.markup.nodes import Element, MarkupNode, Text, root

NUMBERED_ITEM_RE = re.compile(r"^\d+[.)]\s")
NUMBERED_MARKER_RE = re.compile(r"^\d+[.)]\s+")
BULLET_GLYPHS: tuple[str, ...] = ("•", "·", "▪", "▫", "◦", "‣", "⁃", "-", "*")
BLANK_RUN_RE = re.compile(r"\n[ \t]*(?:\n[ \t]*){2,}\n")
GROUP_SPLIT_RE = re.compile(r"\n[ \t]*\n")

HEADING_MAX_LENGTH = 100
HEADING_MAX_WORDS = 8
PARAGRAPH_CONTINUATION_MAX_LENGTH = 50


class LineKind(str, Enum):
    NUMBERED = "numbered"
    BULLET = "bullet"
    HEADING = "heading"
    PARAGRAPH = "paragraph"


class ConverterState(str, Enum):
    NONE = "none"
    IN_ORDERED_LIST = "in_ordered_list"
    IN_UNORDERED_LIST = "in_unordered_list"
    IN_PARAGRAPH = "in_paragraph"


_LIST_STATE_BY_KIND = {
    LineKind.NUMBERED: ConverterState.IN_ORDERED_LIST,
    LineKind.BULLET: ConverterState.IN_UNORDERED_LIST,
}
_LIST_TAG_BY_STATE = {
    ConverterState.IN_ORDERED_LIST: "ol",
    ConverterState.IN_UNORDERED_LIST: "ul",
}


@dataclass(frozen=True)
class ClassifiedLine:
    kind: LineKind
    text: str


def normalize_text(text: str) -> str:
    """
    Normalise line endings and tabs, collapsing 3+ blank lines to one.
    """

    normalized = text.replace("\r\n", "\n").replace("\r", "\n").replace("\t", "  ")
    return BLANK_RUN_RE.sub("\n\n", normalized).strip()


def classify_line(line: str) -> ClassifiedLine:
    """
    Classify one stripped, non-empty line.

    Numbered items win over bullets; headings only apply to non-list lines.
    """

    if NUMBERED_ITEM_RE.match(line):
        return ClassifiedLine(LineKind.NUMBERED, NUMBERED_MARKER_RE.sub("", line, count=1).strip())

    bullet_text = _strip_bullet(line)
    if bullet_text is not None:
        return ClassifiedLine(LineKind.BULLET, bullet_text)

    if _is_heading(line):
        return ClassifiedLine(LineKind.HEADING, line[:-1].strip() if line.endswith(":") else line)

    return ClassifiedLine(LineKind.PARAGRAPH, line)


def _strip_bullet(line: str) -> str | None:
    for glyph in BULLET_GLYPHS:
        if line.startswith(glyph) and line[len(glyph) : len(glyph) + 1].isspace():
            return line[len(glyph) :].strip()
    return None


def _is_heading(line: str) -> bool:
    if len(line) >= HEADING_MAX_LENGTH:
        return False
    if line.isupper():
        return True
    if line.endswith(":"):
        return True
    words = line.split()
    return len(words) <= HEADING_MAX_WORDS and all(word[:1].isupper() for word in words)


@dataclass
class _GroupBuilder:
    """
    Line-driven state machine producing block nodes for one paragraph group.
    """

    blocks: list[MarkupNode] = field(default_factory=list)
    state: ConverterState = ConverterState.NONE
    _items: list[MarkupNode] = field(default_factory=list)
    _paragraph: list[str] = field(default_factory=list)

    def feed(self, line: ClassifiedLine) -> None:
        if line.kind in _LIST_STATE_BY_KIND:
            target = _LIST_STATE_BY_KIND[line.kind]
            if self.state is not target:
                self.close()
                self.state = target
            self._items.append(Element("li", children=_text_children(line.text)))
            return

        if line.kind is LineKind.HEADING:
            self.close()
            if line.text:
                self.blocks.append(Element("h3", children=(Text(line.text),)))
            return

        if (
            self.state is ConverterState.IN_PARAGRAPH
            and len(line.text) < PARAGRAPH_CONTINUATION_MAX_LENGTH
        ):
            self._paragraph.append(line.text)
            return

        self.close()
        self.state = ConverterState.IN_PARAGRAPH
        self._paragraph.append(line.text)

    def close(self) -> None:
        if self.state in _LIST_TAG_BY_STATE and self._items:
            self.blocks.append(Element(_LIST_TAG_BY_STATE[self.state], children=tuple(self._items)))
        elif self.state is ConverterState.IN_PARAGRAPH and self._paragraph:
            self.blocks.append(Element("p", children=(Text(" ".join(self._paragraph)),)))
        self._items = []
        self._paragraph = []
        self.state = ConverterState.NONE


def _text_children(value: str) -> tuple[MarkupNode, ...]:
    return (Text(value),) if value else ()


class TextToMarkupConverter:
    """
    Convert raw multi-line text into a markup tree of p/h3/ul/ol/li blocks.
    """

    def convert(self, text: str | None) -> Element:
        if not text or not text.strip():
            return root()

        blocks: list[MarkupNode] = []
        for group in GROUP_SPLIT_RE.split(normalize_text(text)):
            builder = _GroupBuilder()
            for raw_line in group.split("\n"):
                line = raw_line.strip()
                if line:
                    builder.feed(classify_line(line))
            builder.close()
            blocks.extend(builder.blocks)
        return root(*blocks)
