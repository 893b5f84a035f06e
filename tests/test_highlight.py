import unittest

from s3n.highlight import HIGHLIGHT_STYLE, ContentFilter, find_matches, highlight


class TestFindMatches(unittest.TestCase):
    def test_case_insensitive(self) -> None:
        self.assertEqual(find_matches("Error error ERROR", "error"), [(0, 5), (6, 11), (12, 17)])

    def test_non_overlapping(self) -> None:
        self.assertEqual(find_matches("aaaa", "aa"), [(0, 2), (2, 4)])

    def test_empty_needle(self) -> None:
        self.assertEqual(find_matches("abc", ""), [])

    def test_no_match(self) -> None:
        self.assertEqual(find_matches("abc", "z"), [])

    def test_offsets_survive_expanding_lowercase(self) -> None:
        # "İ" lowercases to two code points; offsets must still line up.
        text = "İx needle"
        matches = find_matches(text, "NEEDLE")
        self.assertEqual(matches, [(3, 9)])
        self.assertEqual(text[3:9], "needle")


class TestHighlight(unittest.TestCase):
    def test_styles_each_match(self) -> None:
        rendered = highlight("foo bar foo", "FOO")
        self.assertEqual(rendered.plain, "foo bar foo")
        spans = [(span.start, span.end, str(span.style)) for span in rendered.spans]
        self.assertEqual(spans, [(0, 3, HIGHLIGHT_STYLE), (8, 11, HIGHLIGHT_STYLE)])

    def test_no_spans_without_matches(self) -> None:
        self.assertEqual(highlight("foo", "bar").spans, [])


class TestContentFilter(unittest.TestCase):
    def test_disabled_filter_renders_plain(self) -> None:
        content = ContentFilter("alpha beta")
        content.set_query("alpha")
        self.assertEqual(content.query, "")
        self.assertEqual(content.render().spans, [])
        self.assertEqual(content.match_count, 0)

    def test_enable_query_and_disable(self) -> None:
        content = ContentFilter("alpha beta alpha")
        content.enable()
        content.set_query("ALPHA")
        self.assertEqual(content.match_count, 2)
        self.assertEqual(len(content.render().spans), 2)
        content.disable()
        self.assertFalse(content.enabled)
        self.assertEqual(content.query, "")
        self.assertEqual(content.render().spans, [])

    def test_empty_query_renders_plain(self) -> None:
        content = ContentFilter("alpha")
        content.enable()
        self.assertEqual(content.render().spans, [])

    def test_toggle(self) -> None:
        content = ContentFilter("x")
        self.assertTrue(content.toggle())
        content.set_query("x")
        self.assertFalse(content.toggle())
        self.assertEqual(content.query, "")


if __name__ == "__main__":
    unittest.main()
