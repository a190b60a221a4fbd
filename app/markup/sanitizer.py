"""
app/markup/sanitizer.py

Allow-list sanitization of markup trees.

The transform is pure and runs bottom-up over immutable nodes:

    1. deny-listed elements are removed together with their subtree
    2. remaining tags are kept, substituted, or replaced by a div/span
       container that keeps every child
    3. attributes are filtered per tag; href schemes are checked
    4. the tree is normalised (empty elements collapsed, adjacent text
       merged, insignificant whitespace dropped, <br> runs capped)

Step 4 happens on the tree rather than on the output string so that
``sanitize(serialize(sanitize(x)))`` returns the same tree.
"""

from __future__ import annotations

import html as html_lib
import logging
import re
from dataclasses import dataclass
from typing import Mapping

from app.markup.nodes import Element, MarkupNode, Text, root
from app.markup.parser import parse_markup
from app.markup.serializer import is_block, serialize

logger = logging.getLogger(__name__)

DENY_TAGS: frozenset[str] = frozenset(
    {
        "script",
        "style",
        "iframe",
        "object",
        "embed",
        "form",
        "input",
        "button",
        "link",
        "meta",
        "base",
        "title",
    }
)

ALLOWED_TAGS: frozenset[str] = frozenset(
    {
        "p",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "ul",
        "ol",
        "li",
        "strong",
        "em",
        "br",
        "div",
        "span",
        "a",
        "table",
        "thead",
        "tbody",
        "tr",
        "td",
        "th",
        "blockquote",
        "code",
        "pre",
    }
)

# tag -> (replacement tag, style declaration or None)
TAG_SUBSTITUTIONS: dict[str, tuple[str, str | None]] = {
    "b": ("strong", None),
    "i": ("em", None),
    "u": ("span", "text-decoration: underline"),
    "center": ("div", "text-align: center"),
    "font": ("span", None),
    "big": ("span", "font-size: larger"),
    "small": ("span", "font-size: smaller"),
}

ATTRIBUTE_ALLOWLIST: dict[str, frozenset[str]] = {
    "a": frozenset({"href", "title"}),
    "img": frozenset({"src", "alt", "title"}),
    "table": frozenset({"border", "cellpadding", "cellspacing"}),
    "td": frozenset({"colspan", "rowspan"}),
    "th": frozenset({"colspan", "rowspan"}),
    "span": frozenset({"style"}),
    "div": frozenset({"style"}),
}

NUMERIC_ATTRIBUTES: frozenset[str] = frozenset(
    {"border", "cellpadding", "cellspacing", "colspan", "rowspan"}
)
URL_ATTRIBUTES: frozenset[str] = frozenset({"href", "src"})
SAFE_URL_SCHEMES: tuple[str, ...] = ("http:", "https:", "mailto:", "tel:")

# Only the declarations the substitution table produces survive.
SAFE_STYLE_VALUES: dict[str, frozenset[str]] = {
    "text-decoration": frozenset({"underline"}),
    "text-align": frozenset({"left", "right", "center", "justify"}),
    "font-size": frozenset({"larger", "smaller"}),
}

KEEP_WHEN_EMPTY: frozenset[str] = frozenset({"br", "td", "th"})
WHITESPACE_ONLY_PARENTS: frozenset[str] = frozenset(
    {"ul", "ol", "table", "thead", "tbody", "tfoot", "tr"}
)
MAX_CONSECUTIVE_LINE_BREAKS = 3
PRESERVE_WHITESPACE_TAGS: frozenset[str] = frozenset({"pre"})

_PARSER_SPACES = " \t\n\r\x0c"
_URL_NOISE_RE = re.compile(r"[\x00-\x20\x7f]+")
_DENY_BLOCK_RE = re.compile(
    r"<\s*(" + "|".join(sorted(DENY_TAGS)) + r")\b.*?(?:<\s*/\s*\1\s*>|$)",
    flags=re.IGNORECASE | re.DOTALL,
)
_TAG_RE = re.compile(r"<[^>]*>")
_SPACE_RUN_RE = re.compile(r"\s+")


class SanitizationAnomaly(ValueError):
    """
    Raised internally when a tree has an unexpected shape.
    """


@dataclass(frozen=True)
class SanitizedMarkup:
    """
    Sanitized tree plus its serialized HTML source.
    """

    tree: Element
    html: str
    degraded: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.tree.children

    @classmethod
    def empty(cls) -> "SanitizedMarkup":
        return cls(tree=root(), html="")


def is_safe_url(value: str, *, allow_fragment: bool = True) -> bool:
    """
    Return True when ``value`` is a fragment or uses an allowed scheme.
    """

    compact = _URL_NOISE_RE.sub("", value)
    if not compact:
        return False
    if compact.startswith("#"):
        return allow_fragment
    return compact.lower().startswith(SAFE_URL_SCHEMES)


def filter_style(value: str) -> str | None:
    declarations: list[str] = []
    for raw in value.split(";"):
        name, sep, declared = raw.partition(":")
        if not sep:
            continue
        prop = name.strip().lower()
        normalized = declared.strip().lower()
        if normalized in SAFE_STYLE_VALUES.get(prop, frozenset()):
            declarations.append(f"{prop}: {normalized}")
    return "; ".join(declarations) or None


def filter_attributes(tag: str, attributes: Mapping[str, str]) -> dict[str, str]:
    """
    Keep only allow-listed attributes with acceptable values for ``tag``.
    """

    allowed = ATTRIBUTE_ALLOWLIST.get(tag, frozenset())
    kept: dict[str, str] = {}
    for name, value in attributes.items():
        if name not in allowed:
            continue
        value = value.strip()
        if name in URL_ATTRIBUTES:
            if not is_safe_url(value, allow_fragment=name == "href"):
                continue
        elif name in NUMERIC_ATTRIBUTES:
            if not value.isdigit():
                continue
        elif name == "style":
            filtered = filter_style(value)
            if filtered is None:
                continue
            value = filtered
        kept[name] = value
    return kept


def rewrite_tag(tag: str, attributes: Mapping[str, str]) -> tuple[str, dict[str, str]]:
    """
    Map a non-denied tag onto the allow-list, returning (tag, attributes).
    """

    if tag in ALLOWED_TAGS:
        return tag, filter_attributes(tag, attributes)

    substitution = TAG_SUBSTITUTIONS.get(tag)
    if substitution is not None:
        new_tag, style = substitution
        return new_tag, ({"style": style} if style else {})

    return ("div" if is_block(Element(tag)) else "span"), {}


class MarkupSanitizer:
    """
    Rewrites arbitrary markup into an allow-listed, attribute-filtered tree.
    """

    def sanitize(self, value: str | MarkupNode | None) -> SanitizedMarkup:
        """
        Sanitize a tree or an HTML string.

        Unexpected shapes never propagate; they degrade to plain text.
        """

        if value is None:
            return SanitizedMarkup.empty()
        try:
            tree = parse_markup(value) if isinstance(value, str) else value
            if isinstance(tree, Text):
                tree = root(tree)
            if not isinstance(tree, Element):
                raise SanitizationAnomaly(f"Unsupported markup node type: {type(tree).__name__}")
            if not tree.is_root:
                tree = root(tree)
            clean = Element(
                tag=tree.tag,
                children=self._sanitize_children(tree.children, parent_tag=tree.tag, preserve_whitespace=False),
            )
            return SanitizedMarkup(tree=clean, html=serialize(clean))
        except (SanitizationAnomaly, RecursionError) as exc:
            logger.warning("Markup sanitization degraded to plain text: %s", exc)
            return self._degrade(value)

    def _sanitize_node(self, node: MarkupNode, *, preserve_whitespace: bool) -> MarkupNode | None:
        if isinstance(node, Text):
            return node
        if not isinstance(node, Element):
            raise SanitizationAnomaly(f"Unsupported markup node type: {type(node).__name__}")

        source_tag = (node.tag or "").lower()
        if source_tag in DENY_TAGS:
            return None

        tag, attributes = rewrite_tag(source_tag, node.attributes)
        children = self._sanitize_children(
            node.children,
            parent_tag=tag,
            preserve_whitespace=preserve_whitespace or tag in PRESERVE_WHITESPACE_TAGS,
        )
        if tag not in KEEP_WHEN_EMPTY and not any(_is_meaningful(child) for child in children):
            return None
        return Element(tag=tag, attributes=attributes, children=tuple(children))

    def _sanitize_children(
        self,
        children: tuple[MarkupNode, ...],
        *,
        parent_tag: str,
        preserve_whitespace: bool,
    ) -> tuple[MarkupNode, ...]:
        kept = [
            sanitized
            for sanitized in (
                self._sanitize_node(child, preserve_whitespace=preserve_whitespace) for child in children
            )
            if sanitized is not None
        ]
        kept = _cap_line_breaks(kept)
        kept = _merge_adjacent_text(kept)
        if not preserve_whitespace:
            kept = [_collapse_blank_text(node) for node in kept]
        return tuple(_drop_insignificant_whitespace(kept, parent_tag=parent_tag))

    def _degrade(self, value: object) -> SanitizedMarkup:
        if isinstance(value, str):
            text = html_lib.unescape(_TAG_RE.sub(" ", _DENY_BLOCK_RE.sub(" ", value)))
        else:
            text = _flatten_allowed_text(value)
        text = _SPACE_RUN_RE.sub(" ", text).strip()
        tree = root(Element("p", children=(Text(text),))) if text else root()
        return SanitizedMarkup(tree=tree, html=serialize(tree), degraded=True)


def _is_meaningful(node: MarkupNode) -> bool:
    if isinstance(node, Text):
        return bool(node.value.strip())
    return True


def _is_blank_text(node: MarkupNode) -> bool:
    return isinstance(node, Text) and not node.value.strip()


def _is_line_break(node: MarkupNode) -> bool:
    return isinstance(node, Element) and node.tag == "br"


def _cap_line_breaks(nodes: list[MarkupNode]) -> list[MarkupNode]:
    result: list[MarkupNode] = []
    pending_whitespace: list[MarkupNode] = []
    run = 0
    for node in nodes:
        if _is_line_break(node):
            run += 1
            if run <= MAX_CONSECUTIVE_LINE_BREAKS:
                result.extend(pending_whitespace)
                result.append(node)
            pending_whitespace = []
            continue
        if run and _is_blank_text(node):
            pending_whitespace.append(node)
            continue
        result.extend(pending_whitespace)
        pending_whitespace = []
        run = 0
        result.append(node)
    result.extend(pending_whitespace)
    return result


def _merge_adjacent_text(nodes: list[MarkupNode]) -> list[MarkupNode]:
    merged: list[MarkupNode] = []
    for node in nodes:
        if isinstance(node, Text) and merged and isinstance(merged[-1], Text):
            merged[-1] = Text(merged[-1].value + node.value)
        else:
            merged.append(node)
    return [node for node in merged if not (isinstance(node, Text) and node.value == "")]


def _collapse_blank_text(node: MarkupNode) -> MarkupNode:
    # Same rule html.parser applies to whitespace-only strings on re-parse.
    if isinstance(node, Text) and node.value and not node.value.strip(_PARSER_SPACES):
        return Text("\n" if "\n" in node.value else " ")
    return node


def _drop_insignificant_whitespace(
    nodes: list[MarkupNode],
    *,
    parent_tag: str,
) -> list[MarkupNode]:
    kept: list[MarkupNode] = []
    for index, node in enumerate(nodes):
        if _is_blank_text(node):
            previous = nodes[index - 1] if index > 0 else None
            following = nodes[index + 1] if index + 1 < len(nodes) else None
            if (
                parent_tag in WHITESPACE_ONLY_PARENTS
                or (previous is not None and is_block(previous))
                or (following is not None and is_block(following))
            ):
                continue
        kept.append(node)
    return kept


def _flatten_allowed_text(node: object) -> str:
    parts: list[str] = []
    stack: list[object] = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, Text):
            parts.append(current.value)
        elif isinstance(current, Element):
            if (current.tag or "").lower() in DENY_TAGS:
                continue
            stack.append(" ")
            stack.extend(reversed(current.children))
        elif isinstance(current, str):
            parts.append(current)
    return "".join(parts)
