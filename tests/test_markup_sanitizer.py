from __future__ import annotations

import unittest

from app.markup.converter import TextToMarkupConverter
from app.markup.nodes import Element, Text, root
from app.markup.sanitizer import MarkupSanitizer, filter_style, is_safe_url

IDEMPOTENCE_SAMPLES = (
    "<p>Hello <b>World</b></p>\n<ul><li>One</li> <li>Two</li></ul>",
    '<div onclick="x()"><center>Centered</center><font color="red">red</font></div>',
    "<p>a &lt; b &amp; c<br><br><br><br>d</p>",
    '<table border="1"><tr><td colspan="2">Cell</td></tr></table>',
    "<custom><p>inside</p></custom> trailing text",
    "<p><em>a</em> <script>x</script> <em>b</em></p>",
    "<table><tr><td> <script>x</script>\n</td></tr></table>",
    "<p>one <style>p {}</style>\n <span></span> two</p>",
    "<pre><b>a</b>   <b>b</b></pre>",
)


class TestMarkupSanitizer(unittest.TestCase):
    def setUp(self) -> None:
        self.sanitizer = MarkupSanitizer()

    def test_deny_listed_elements_are_removed_with_content(self) -> None:
        result = self.sanitizer.sanitize("<p>Hello<script>alert(1)</script></p><SCRIPT>x</SCRIPT>")

        self.assertEqual(result.html, "<p>Hello</p>")
        self.assertFalse(result.degraded)

    def test_script_only_input_is_empty(self) -> None:
        result = self.sanitizer.sanitize("<script>alert(1)</script>")

        self.assertTrue(result.is_empty)
        self.assertEqual(result.html, "")

    def test_sanitizing_converted_text_twice_is_stable(self) -> None:
        tree = TextToMarkupConverter().convert("MARKET OVERVIEW\nDemand & supply < 5%\n\n1. First\n2. Second\n- a\n- b")

        once = self.sanitizer.sanitize(tree)
        twice = self.sanitizer.sanitize(once.tree)

        self.assertEqual(twice.tree, once.tree)
        self.assertEqual(self.sanitizer.sanitize(once.html).tree, once.tree)

    def test_whitespace_left_by_removed_elements_is_collapsed(self) -> None:
        result = self.sanitizer.sanitize("<p><em>a</em> <script>x</script> <em>b</em></p>")

        self.assertEqual(result.html, "<p><em>a</em> <em>b</em></p>")

    def test_whitespace_inside_pre_is_preserved(self) -> None:
        result = self.sanitizer.sanitize("<pre><b>a</b>   <b>b</b></pre>")

        self.assertEqual(result.html, "<pre><strong>a</strong>   <strong>b</strong></pre>")

    def test_unsafe_href_is_dropped_but_text_kept(self) -> None:
        self.assertEqual(
            self.sanitizer.sanitize('<a href="javascript:alert(1)">click</a>').html,
            "<a>click</a>",
        )
        self.assertEqual(
            self.sanitizer.sanitize('<a href=" java\tscript:alert(1)">x</a>').html,
            "<a>x</a>",
        )

    def test_safe_href_kept_and_event_handlers_dropped(self) -> None:
        result = self.sanitizer.sanitize('<a href="https://example.com" onclick="steal()">site</a>')

        self.assertEqual(result.html, '<a href="https://example.com">site</a>')

    def test_substitutions(self) -> None:
        self.assertEqual(
            self.sanitizer.sanitize("<b>bold</b> <i>it</i>").html,
            "<strong>bold</strong> <em>it</em>",
        )
        self.assertEqual(
            self.sanitizer.sanitize("<u>under</u>").html,
            '<span style="text-decoration: underline">under</span>',
        )
        self.assertEqual(self.sanitizer.sanitize("<mark>hi</mark>").html, "<span>hi</span>")

    def test_empty_elements_collapse(self) -> None:
        self.assertEqual(self.sanitizer.sanitize("<p></p><p>  </p><p>x</p>").html, "<p>x</p>")

    def test_line_break_runs_are_capped(self) -> None:
        result = self.sanitizer.sanitize("<p>a<br><br><br><br><br>b</p>")

        self.assertEqual(result.html, "<p>a<br><br><br>b</p>")

    def test_table_attributes_filtered(self) -> None:
        result = self.sanitizer.sanitize('<table><tr><td colspan="2" rowspan="x" style="color:red">a</td></tr></table>')

        self.assertEqual(
            result.html,
            '<table>\n  <tr>\n    <td colspan="2">a</td>\n  </tr>\n</table>',
        )

    def test_sanitize_is_idempotent_through_serialization(self) -> None:
        for sample in IDEMPOTENCE_SAMPLES:
            with self.subTest(sample=sample):
                first = self.sanitizer.sanitize(sample)
                second = self.sanitizer.sanitize(first.html)
                self.assertEqual(second.tree, first.tree)
                self.assertEqual(second.html, first.html)

    def test_unexpected_node_degrades_to_plain_text(self) -> None:
        tree = root(Element("p", children=(Text("keep"), object())))  # type: ignore[arg-type]

        result = self.sanitizer.sanitize(tree)

        self.assertTrue(result.degraded)
        self.assertEqual(result.html, "<p>keep</p>")

    def test_very_deep_tree_degrades_instead_of_raising(self) -> None:
        node = Element("div", children=(Text("deep"),))
        for _ in range(5000):
            node = Element("div", children=(node,))

        result = self.sanitizer.sanitize(node)

        self.assertTrue(result.degraded)
        self.assertEqual(result.html, "<p>deep</p>")

    def test_none_is_empty(self) -> None:
        result = self.sanitizer.sanitize(None)
        self.assertTrue(result.is_empty)
        self.assertEqual(result.html, "")


class TestAttributeHelpers(unittest.TestCase):
    def test_is_safe_url(self) -> None:
        self.assertTrue(is_safe_url("#section-2"))
        self.assertTrue(is_safe_url("MAILTO:team@example.com"))
        self.assertFalse(is_safe_url("/relative/path"))
        self.assertFalse(is_safe_url("data:text/html;base64,xx"))
        self.assertFalse(is_safe_url("#top", allow_fragment=False))

    def test_filter_style_keeps_known_declarations_only(self) -> None:
        self.assertEqual(filter_style("Text-Align: CENTER; color: red"), "text-align: center")
        self.assertIsNone(filter_style("background: url(javascript:x)"))


if __name__ == "__main__":
    unittest.main()
