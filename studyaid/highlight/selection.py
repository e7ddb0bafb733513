"""Active keyword selection for the detail popup.

States are Idle (no active keyword) and Showing(keyword, anchor). Every
transition takes the current state and returns the next one; nothing here
holds state between calls.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .matcher import KeywordEntry

POPUP_WIDTH = 320
ANCHOR_OFFSET = 8


@dataclass(frozen=True)
class AnchorPosition:
    top: float
    left: float


@dataclass(frozen=True)
class Box:
    """On-screen rectangle reported by the presentation layer."""
    top: float
    left: float
    bottom: float
    width: float


@dataclass(frozen=True)
class SelectionState:
    active_keyword: Optional[KeywordEntry] = None
    anchor: Optional[AnchorPosition] = None

    @property
    def is_showing(self) -> bool:
        return self.active_keyword is not None

    def is_active(self, keyword: KeywordEntry) -> bool:
        return self.is_showing and self.active_keyword.keyword == keyword.keyword


IDLE = SelectionState()


def activate(state: SelectionState, keyword: KeywordEntry, anchor: AnchorPosition) -> SelectionState:
    if state.is_active(keyword):
        return IDLE
    return SelectionState(active_keyword=keyword, anchor=anchor)


def dismiss(state: SelectionState) -> SelectionState:
    return IDLE


def outside_interaction(state: SelectionState) -> SelectionState:
    return IDLE


def handle_interaction(state: SelectionState, target: Any, *regions: Callable[[Any], bool]) -> SelectionState:
    """Close the popup when `target` falls in none of the given regions.

    Each region is a predicate answering "is this target inside me", typically
    one for the highlighted keyword spans and one for the popup itself.
    """
    if not state.is_showing:
        return state
    if any(inside(target) for inside in regions):
        return state
    return outside_interaction(state)


def compute_anchor(segment: Box, container: Box, popup_width: float = POPUP_WIDTH, offset: float = ANCHOR_OFFSET) -> AnchorPosition:
    top = segment.bottom - container.top + offset
    left = min(segment.left - container.left, container.width - popup_width)
    return AnchorPosition(top=top, left=max(0, left))
