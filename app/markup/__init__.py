"""
app/markup package marker.
"""

from app.markup.converter import TextToMarkupConverter
from app.markup.nodes import Element, MarkupNode, Text
from app.markup.parser import looks_like_markup, parse_markup
from app.markup.sanitizer import MarkupSanitizer, SanitizedMarkup
from app.markup.serializer import serialize

__all__ = [
    "Element",
    "MarkupNode",
    "MarkupSanitizer",
    "SanitizedMarkup",
    "Text",
    "TextToMarkupConverter",
    "looks_like_markup",
    "parse_markup",
    "serialize",
]
