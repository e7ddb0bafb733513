from types import SimpleNamespace

import pytest

from studyaid.highlight import (
    IDLE,
    AnchorPosition,
    HighlightError,
    KeywordEntry,
    activate,
    match_keywords,
    render_segments_html,
    render_tooltip_html,
)

ACID = KeywordEntry(keyword='acid', detail='Donates <protons>')


@pytest.mark.unit
def test_render_segments_html_escapes_text():
    segments = match_keywords('<b>acid</b>', [ACID])
    html = render_segments_html(segments)
    assert html.startswith('<div class="keyword-text" style="white-space: pre-wrap">')
    assert '<span>&lt;b&gt;</span>' in html
    assert '<button type="button" class="keyword-highlight" data-keyword="acid">acid</button>' in html
    assert '<b>' not in html


@pytest.mark.unit
def test_render_marks_active_keyword():
    segments = match_keywords('acid rain', [ACID])
    html = render_segments_html(segments, active=ACID)
    assert 'class="keyword-highlight is-active"' in html


@pytest.mark.unit
def test_tooltip_empty_when_idle():
    assert render_tooltip_html(IDLE) == ''


@pytest.mark.unit
def test_tooltip_shows_keyword_detail():
    state = activate(IDLE, ACID, AnchorPosition(top=88, left=40))
    html = render_tooltip_html(state)
    assert 'class="keyword-tooltip"' in html
    assert 'top: 88px; left: 40px; width: 320px' in html
    assert '<h4>acid</h4>' in html
    assert '<p>Donates &lt;protons&gt;</p>' in html
    assert 'Key Concept' in html


@pytest.mark.unit
def test_unknown_segment_kind_rejected():
    with pytest.raises(HighlightError):
        render_segments_html([SimpleNamespace(kind='image', content='x')])


@pytest.mark.unit
def test_newlines_survive_rendering():
    html = render_segments_html(match_keywords('acid\nbase', [ACID]))
    assert 'white-space: pre-wrap' in html
    assert '<span>\nbase</span>' in html
