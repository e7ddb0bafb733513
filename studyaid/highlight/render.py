from __future__ import annotations

from typing import Optional, Sequence

from markupsafe import Markup

from .matcher import HighlightError, KeywordEntry, Segment
from .selection import POPUP_WIDTH, SelectionState


def _render_segment(segment: Segment, active: Optional[KeywordEntry]) -> Markup:
    if segment.kind == 'text':
        return Markup('<span>{}</span>').format(segment.content)
    if segment.kind == 'keyword':
        classes = 'keyword-highlight'
        if active is not None and active.keyword == segment.keyword.keyword:
            classes += ' is-active'
        return Markup('<button type="button" class="{}" data-keyword="{}">{}</button>').format(
            classes, segment.keyword.keyword, segment.content
        )
    raise HighlightError(f'unknown segment kind: {segment.kind!r}')


def render_segments_html(segments: Sequence[Segment], active: Optional[KeywordEntry] = None) -> str:
    body = Markup('').join(_render_segment(s, active) for s in segments)
    return str(Markup('<div class="keyword-text" style="white-space: pre-wrap">{}</div>').format(body))


def render_tooltip_html(state: SelectionState) -> str:
    if not state.is_showing:
        return ''
    style = f'top: {state.anchor.top}px; left: {state.anchor.left}px; width: {POPUP_WIDTH}px'
    return str(Markup(
        '<div class="keyword-tooltip" style="{}">'
        '<h4>{}</h4>'
        '<p>{}</p>'
        '<span class="badge">Key Concept</span>'
        '</div>'
    ).format(style, state.active_keyword.keyword, state.active_keyword.detail))
