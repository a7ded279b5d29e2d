"""Markdown rendering for question prompts.

Architecture note:
    Prompts are stored as plain markdown and rendered on every read. Pre-rendering
    at import time would save work per request, but then an edited question would
    need its cached HTML invalidated as well. One question a day makes the render
    cost irrelevant, so the stored text stays the single source of truth.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt


@dataclass(slots=True)
class MarkdownRenderer:
    """Converts prompt markdown into an HTML fragment."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str) -> str:
        """Render a markdown string into an HTML fragment."""

        sanitized = (markdown_text or "").strip()
        if not sanitized:
            return "<p><em>No question text.</em></p>"
        return self._markdown.render(sanitized)

    def render_inline(self, markdown_text: str) -> str:
        """Render without the wrapping paragraph, for choice labels."""

        return self._markdown.renderInline((markdown_text or "").strip())


renderer = MarkdownRenderer()
