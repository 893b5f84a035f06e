from __future__ import annotations

from typing import Union

from rich.style import Style
from rich.text import Text

HIGHLIGHT_STYLE = "bold #ff5fd7"


def _fold(text: str) -> str:
    # Lowercase per character, keeping offsets aligned with the original text.
    folded = []
    for char in text:
        lowered = char.lower()
        folded.append(lowered if len(lowered) == 1 else char)
    return "".join(folded)


def find_matches(text: str, needle: str) -> list[tuple[int, int]]:
    if not needle:
        return []
    haystack = _fold(text)
    target = _fold(needle)
    matches: list[tuple[int, int]] = []
    start = 0
    while True:
        index = haystack.find(target, start)
        if index == -1:
            break
        end = index + len(target)
        matches.append((index, end))
        start = end
    return matches


def highlight(
    text: str, needle: str, style: Union[str, Style] = HIGHLIGHT_STYLE
) -> Text:
    rendered = Text(text, end="")
    # Text drops some control characters; match against what it kept.
    for start, end in find_matches(rendered.plain, needle):
        rendered.stylize(style, start, end)
    return rendered


class ContentFilter:
    """Interactive filter state for a block of viewed text."""

    def __init__(self, text: str = "") -> None:
        self.text = text
        self.enabled = False
        self.query = ""

    def enable(self) -> None:
        self.enabled = True

    def disable(self) -> None:
        self.enabled = False
        self.query = ""

    def toggle(self) -> bool:
        if self.enabled:
            self.disable()
        else:
            self.enable()
        return self.enabled

    def set_query(self, query: str) -> None:
        if not self.enabled:
            return
        self.query = query

    @property
    def match_count(self) -> int:
        if not self.enabled:
            return 0
        return len(find_matches(self.text, self.query))

    def render(self) -> Text:
        if not self.enabled or not self.query:
            return Text(self.text, end="")
        return highlight(self.text, self.query)
