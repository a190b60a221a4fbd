"""
app/markup/serializer.py

Serialize markup trees into stored HTML source.

Block elements whose children are all block elements are laid out one per
line; list items and table rows are indented one level per nesting depth.
Anything with inline content is written inline so re-parsing the output
yields the same tree.
"""

from __future__ import annotations

from html import escape

from app.markup.nodes import Element, MarkupNode, Text

BLOCK_LEVEL_TAGS: frozenset[str] = frozenset(
    {
        "address",
        "article",
        "aside",
        "blockquote",
        "caption",
        "center",
        "dd",
        "details",
        "dialog",
        "dir",
        "div",
        "dl",
        "dt",
        "fieldset",
        "figcaption",
        "figure",
        "footer",
        "form",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "header",
        "hgroup",
        "hr",
        "li",
        "main",
        "menu",
        "nav",
        "ol",
        "p",
        "pre",
        "section",
        "summary",
        "table",
        "tbody",
        "td",
        "tfoot",
        "th",
        "thead",
        "tr",
        "ul",
    }
)
VOID_TAGS: frozenset[str] = frozenset({"br", "hr", "img", "wbr"})
INDENT = "  "


def is_block(node: MarkupNode) -> bool:
    return isinstance(node, Element) and node.tag in BLOCK_LEVEL_TAGS


def serialize(tree: MarkupNode) -> str:
    """
    Serialize a node (or a synthetic root's children) to HTML source.
    """

    if isinstance(tree, Element) and tree.is_root:
        return _render_children(tree.children, depth=0)
    return _render(tree, depth=0)


def _render(node: MarkupNode, *, depth: int) -> str:
    if isinstance(node, Text):
        return escape(node.value, quote=False)

    open_tag = _open_tag(node)
    if node.tag in VOID_TAGS:
        return open_tag
    if _has_block_layout(node.children):
        inner = _render_children(node.children, depth=depth + 1)
        pad = INDENT * depth
        return f"{open_tag}\n{inner}\n{pad}</{node.tag}>"
    inner = "".join(_render(child, depth=depth) for child in node.children)
    return f"{open_tag}{inner}</{node.tag}>"


def _render_children(children: tuple[MarkupNode, ...], *, depth: int) -> str:
    if not _has_block_layout(children):
        return "".join(_render(child, depth=depth) for child in children)
    pad = INDENT * depth
    return "\n".join(f"{pad}{_render(child, depth=depth)}" for child in children)


def _has_block_layout(children: tuple[MarkupNode, ...]) -> bool:
    return bool(children) and all(is_block(child) for child in children)


def _open_tag(node: Element) -> str:
    if not node.attributes:
        return f"<{node.tag}>"
    rendered = " ".join(
        f'{name}="{escape(value, quote=True)}"' for name, value in node.attributes.items()
    )
    return f"<{node.tag} {rendered}>"
