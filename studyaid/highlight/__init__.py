"""
Keyword highlighting: span matching over study text, the active-selection
state machine for the detail popup, and HTML rendering of segments.
"""
from .matcher import HighlightError, KeywordEntry, TextSegment, KeywordSegment, Segment, match_keywords, segment_stats, find_segment
from .selection import AnchorPosition, Box, SelectionState, IDLE, activate, dismiss, outside_interaction, handle_interaction, compute_anchor
from .render import render_segments_html, render_tooltip_html

__all__ = [
	'HighlightError', 'KeywordEntry', 'TextSegment', 'KeywordSegment', 'Segment',
	'match_keywords', 'segment_stats', 'find_segment',
	'AnchorPosition', 'Box', 'SelectionState', 'IDLE',
	'activate', 'dismiss', 'outside_interaction', 'handle_interaction', 'compute_anchor',
	'render_segments_html', 'render_tooltip_html',
]
