import html
import re

import markdown as md

from app.schemas.diary import DiaryEntry
from app.schemas.homework import QuizDocument

MARKDOWN_EXTENSIONS = ["extra", "sane_lists", "nl2br"]
DIARY_PREVIEW_CHARS = 50

# $$...$$ before $...$ so display math is not split into two inline spans.
# Inline math stays on one line and may not close right before a digit ("$5 and $10").
_MATH_PATTERN = re.compile(r"\$\$([\s\S]+?)\$\$|(?<!\\)\$(?!\s)([^$\n]+?)(?<!\s)(?<!\\)\$(?!\d)")
_PLACEHOLDER = "MATHSPAN{}X"


def _protect_math(text: str) -> tuple[str, list[str]]:
    spans: list[str] = []

    def _stash(match: re.Match) -> str:
        if match.group(1) is not None:
            rendered = f'<div class="math display">\\[{html.escape(match.group(1).strip())}\\]</div>'
        else:
            rendered = f'<span class="math inline">\\({html.escape(match.group(2))}\\)</span>'
        spans.append(rendered)
        return _PLACEHOLDER.format(len(spans) - 1)

    return _MATH_PATTERN.sub(_stash, text), spans


def render_markdown(text: str) -> str:
    """Markdown to HTML, leaving TeX math intact for KaTeX auto-render on the page."""
    protected, spans = _protect_math(text or "")
    rendered = md.markdown(protected, extensions=MARKDOWN_EXTENSIONS)
    for index, span in enumerate(spans):
        rendered = rendered.replace(_PLACEHOLDER.format(index), span)
    return rendered


def option_label(index: int) -> str:
    return chr(ord("A") + index)


def render_quiz(quiz: QuizDocument, answered: int | None = None) -> str:
    lines = ['<div class="quiz">', f"<p><strong>{html.escape(quiz.question)}</strong></p>", "<ol>"]
    for index, option in enumerate(quiz.options):
        css = "option"
        if answered == index:
            css += " correct" if index == quiz.correct_index else " wrong"
        lines.append(f'<li class="{css}">{option_label(index)}. {html.escape(option)}</li>')
    lines.append("</ol>")
    if answered is not None:
        lines.append(f'<p class="explanation">Explanation: {html.escape(quiz.explanation)}</p>')
    lines.append("</div>")
    return "\n".join(lines)


def render_diary_entry(entry: DiaryEntry) -> str:
    stamp = entry.timestamp.strftime("%Y-%m-%d %H:%M")
    preview = entry.input_text[:DIARY_PREVIEW_CHARS]
    return "\n".join(
        [
            '<article class="diary-entry">',
            f"<header>{html.escape(stamp)} - {html.escape(entry.subject.value)}</header>",
            f"<p><strong>Question:</strong> {html.escape(preview)}...</p>",
            f'<section class="result">{render_markdown(entry.result_content)}</section>',
            "</article>",
        ]
    )
