"""Keyword span matching for highlighted study text.

Splits a source text into an ordered, lossless partition of plain text and
keyword segments:

- longer keywords are tried first, so "amino acid" wins over "acid"
- matching is case-insensitive, segment content keeps the source casing
- keywords are escaped and always matched verbatim
- a keyword segment refers to the first caller entry with the same text
"""
from __future__ import annotations

import re
from typing import List, Optional, Sequence, Union, Dict, Any, Annotated, Literal

from pydantic import BaseModel, Field


class HighlightError(ValueError):
    pass


class KeywordEntry(BaseModel):
    keyword: str = Field(..., min_length=1)
    detail: str = ''


class TextSegment(BaseModel):
    kind: Literal['text'] = 'text'
    content: str


class KeywordSegment(BaseModel):
    kind: Literal['keyword'] = 'keyword'
    content: str
    keyword: KeywordEntry


Segment = Annotated[Union[TextSegment, KeywordSegment], Field(discriminator='kind')]


def _build_pattern(ordered: Sequence[KeywordEntry]) -> re.Pattern:
    # one group per alternative so the matching entry is known without a lookup
    alternatives = '|'.join(f'({re.escape(k.keyword)})' for k in ordered)
    return re.compile(alternatives, re.IGNORECASE)


def _canonical_entries(keywords: Sequence[KeywordEntry]) -> Dict[str, KeywordEntry]:
    canonical: Dict[str, KeywordEntry] = {}
    for entry in keywords:
        canonical.setdefault(entry.keyword.lower(), entry)
    return canonical


def match_keywords(source_text: str, keywords: Sequence[KeywordEntry]) -> List[Segment]:
    if not keywords:
        return [TextSegment(content=source_text)] if source_text else []

    for entry in keywords:
        if not entry.keyword:
            raise HighlightError('keyword must be a non-empty string')

    # sorted() is stable: equal lengths keep caller order
    ordered = sorted(keywords, key=lambda k: len(k.keyword), reverse=True)
    pattern = _build_pattern(ordered)
    canonical = _canonical_entries(keywords)

    segments: List[Segment] = []
    last_index = 0
    for m in pattern.finditer(source_text):
        if m.start() > last_index:
            segments.append(TextSegment(content=source_text[last_index:m.start()]))
        matched = m.group(0)
        entry = canonical.get(matched.lower())
        if entry is None:
            # IGNORECASE folds a few characters that str.lower() does not
            entry = ordered[m.lastindex - 1]
        segments.append(KeywordSegment(content=matched, keyword=entry))
        last_index = m.end()

    if last_index < len(source_text):
        segments.append(TextSegment(content=source_text[last_index:]))
    return segments


def segment_stats(segments: Sequence[Segment]) -> Dict[str, Any]:
    keyword_segments = [s for s in segments if s.kind == 'keyword']
    return {
        'segment_count': len(segments),
        'text_segments': len(segments) - len(keyword_segments),
        'keyword_segments': len(keyword_segments),
        'distinct_keywords': len({s.keyword.keyword.lower() for s in keyword_segments}),
    }


def find_segment(segments: Sequence[Segment], keyword: str) -> Optional[KeywordSegment]:
    """First keyword segment whose entry keyword equals `keyword` (case-insensitive)."""
    wanted = keyword.lower()
    for s in segments:
        if s.kind == 'keyword' and s.keyword.keyword.lower() == wanted:
            return s
    return None
