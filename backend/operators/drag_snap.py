"""
Drag-to-reposition state machine.

idle -> dragging -> idle. Pointer moves only recompute the candidate start
through the pure ``compute_candidate`` transition; the single mutation
happens at ``end_drag`` through the commit callable the caller supplies
(normally the modification path). Ephemeral items can be dragged but are
never committed.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable

from models.timeline_models import TimelineData
from operators.timeline_operator import ItemNotFoundError, TimelineError
from operators.timeline_utils import pixels_to_time

logger = logging.getLogger(__name__)


NEIGHBOR_SNAP_THRESHOLD = 0.5
GRID_SNAP_THRESHOLD = 0.25


class DragPhase(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


@dataclass(frozen=True)
class DragState:
    phase: DragPhase = DragPhase.IDLE
    item_id: str | None = None
    track_id: str | None = None
    origin_start: float = 0.0
    duration: float = 0.0
    candidate_start: float = 0.0
    on_main_track: bool = False
    is_ephemeral: bool = False

    @property
    def candidate_end(self) -> float:
        return self.candidate_start + self.duration


IDLE = DragState()


@dataclass(frozen=True)
class DragOutcome:
    """
    Result of ending a drag.

    On a failed commit ``committed`` is False, ``error`` holds the reason and
    ``candidate_start`` is kept so the caller can retry.
    """
    state: DragState
    committed: bool
    candidate_start: float | None = None
    error: str | None = None


def begin_drag(timeline: TimelineData, item_id: str) -> DragState:
    located = timeline.find_item(item_id)
    if located is None:
        raise ItemNotFoundError(item_id)
    track, item = located
    main = timeline.main_track
    return DragState(
        phase=DragPhase.DRAGGING,
        item_id=item.id,
        track_id=track.id,
        origin_start=item.start_time,
        duration=item.duration,
        candidate_start=item.start_time,
        on_main_track=main is not None and main.id == track.id,
        is_ephemeral=item.is_ephemeral,
    )


def snap_to_neighbor(
    candidate: float,
    duration: float,
    neighbors: list[tuple[float, float]],
    threshold: float = NEIGHBOR_SNAP_THRESHOLD,
) -> float | None:
    """
    Snap against each neighbor in order; the first boundary within range wins.

    Per neighbor the checks are: its start, its end, then the candidate's end
    landing on its start.
    """
    for n_start, n_end in neighbors:
        if abs(candidate - n_start) <= threshold:
            return n_start
        if abs(candidate - n_end) <= threshold:
            return n_end
        if abs(candidate + duration - n_start) <= threshold:
            return max(0.0, n_start - duration)
    return None


def snap_to_grid(candidate: float, threshold: float = GRID_SNAP_THRESHOLD) -> float:
    nearest = math.floor(candidate + 0.5)
    if abs(candidate - nearest) <= threshold:
        return float(nearest)
    return candidate


def compute_candidate(
    state: DragState,
    timeline: TimelineData,
    pointer_delta_px: float,
) -> DragState:
    """
    Pure transition for one pointer-move event.

    ``pointer_delta_px`` is the total horizontal offset since the drag began.
    """
    if state.phase != DragPhase.DRAGGING:
        return state

    candidate = max(
        0.0, state.origin_start + pixels_to_time(pointer_delta_px, timeline.timeline_scale)
    )

    if state.on_main_track:
        track = timeline.get_track(state.track_id)
        neighbors = [
            (item.start_time, item.end_time)
            for item in (track.items if track is not None else [])
            if item.id != state.item_id
        ]
        snapped = snap_to_neighbor(candidate, state.duration, neighbors)
        candidate = snapped if snapped is not None else snap_to_grid(candidate)

    return replace(state, candidate_start=candidate)


def cancel_drag(state: DragState) -> DragState:
    return IDLE


def end_drag(
    state: DragState,
    commit: Callable[[str, float], object] | None = None,
) -> DragOutcome:
    """
    Finish the drag and commit the candidate start through ``commit``.

    Nothing is committed for ephemeral items, for an unchanged position or
    when no commit callable is given.
    """
    if state.phase != DragPhase.DRAGGING:
        return DragOutcome(state=IDLE, committed=False)

    if state.is_ephemeral or commit is None or state.candidate_start == state.origin_start:
        return DragOutcome(state=IDLE, committed=False, candidate_start=state.candidate_start)

    try:
        commit(state.item_id, state.candidate_start)
    except TimelineError as e:
        logger.warning(f"Drag commit for {state.item_id} failed: {e}")
        return DragOutcome(
            state=state,
            committed=False,
            candidate_start=state.candidate_start,
            error=str(e),
        )

    return DragOutcome(state=IDLE, committed=True, candidate_start=state.candidate_start)
