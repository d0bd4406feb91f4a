# /mediscript/utils/treatment_formatter.py
"""
Turns free-form treatment text into display blocks.

Lines become paragraphs or list items (when they start with '• ', '- ' or
'* '), blank lines become line breaks, and text between pairs of asterisks
becomes bold.
"""
import re
from dataclasses import dataclass, field
from typing import List, Union

BULLET_MARKERS = ('• ', '- ', '* ')
# Any whitespace after the marker, tab included
_BULLET_LINE_RE = re.compile(r'^[•\-*]\s')


@dataclass(frozen=True)
class PlainText:
    text: str


@dataclass(frozen=True)
class Bold:
    text: str


Span = Union[PlainText, Bold]


@dataclass(frozen=True)
class Paragraph:
    spans: List[Span] = field(default_factory=list)


@dataclass(frozen=True)
class ListItem:
    spans: List[Span] = field(default_factory=list)


@dataclass(frozen=True)
class LineBreak:
    pass


Block = Union[Paragraph, ListItem, LineBreak]


def has_bullet_points(text):
    """Document-level check deciding whether blocks render inside a list."""
    if not text:
        return False
    return any(marker in text for marker in BULLET_MARKERS)


def _append_plain(spans, text):
    if not text:
        return
    if spans and isinstance(spans[-1], PlainText):
        spans[-1] = PlainText(spans[-1].text + text)
    else:
        spans.append(PlainText(text))


def parse_spans(line):
    """Split one line into plain and bold spans on '*' pairs."""
    spans = []
    current = 0
    bold_start = line.find('*')

    while bold_start != -1:
        _append_plain(spans, line[current:bold_start])

        bold_end = line.find('*', bold_start + 1)
        if bold_end == -1:
            # Unmatched opener: the rest of the line is literal text
            _append_plain(spans, line[bold_start:])
            current = len(line)
            break

        bold_text = line[bold_start + 1:bold_end]
        if bold_text:
            spans.append(Bold(bold_text))

        current = bold_end + 1
        bold_start = line.find('*', current)

    _append_plain(spans, line[current:])
    return spans


def format_treatment(text) -> List[Block]:
    if not text:
        return []

    blocks = []
    for line in text.split('\n'):
        stripped = line.strip()
        if not stripped:
            blocks.append(LineBreak())
            continue

        is_bullet = bool(_BULLET_LINE_RE.match(stripped))
        content = stripped[2:] if is_bullet and len(stripped) >= 2 else stripped
        spans = parse_spans(content)
        blocks.append(ListItem(spans) if is_bullet else Paragraph(spans))

    return blocks


def _span_to_dict(span):
    return {'type': 'bold' if isinstance(span, Bold) else 'text', 'text': span.text}


def block_to_dict(block):
    if isinstance(block, LineBreak):
        return {'type': 'line_break'}
    kind = 'list_item' if isinstance(block, ListItem) else 'paragraph'
    return {'type': kind, 'spans': [_span_to_dict(s) for s in block.spans]}


def formatted_treatment(text):
    """JSON-ready rendering: container kind plus serialized blocks."""
    return {
        'container': 'list' if has_bullet_points(text) else 'block',
        'blocks': [block_to_dict(b) for b in format_treatment(text)],
    }
