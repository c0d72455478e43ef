"""
Reorder items within one track or across tracks.

Timing modes:
- maintain_original: times are left alone; overlaps may appear and are
  reported
- sequential: items are packed from 0 with ``gap_duration`` after each item
- preserve_gaps: the original spacing between consecutive items (by start
  time) is re-applied in the new order starting from 0; a zero gap falls
  back to ``gap_duration``

Conflicts (overlaps on affected tracks) are returned as readable strings and
never resolved here.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field

from models.timeline_models import (
    TimelineData,
    TimelineItem,
    TimelineTrack,
    TimingMode,
    TrackAssignment,
)
from operators.timeline_operator import (
    DuplicateAssignmentError,
    InvalidOperationError,
    ItemNotFoundError,
    TrackNotFoundError,
)
from operators.timeline_utils import detect_track_overlaps, ensure_kind_compatible

logger = logging.getLogger(__name__)


@dataclass
class ReorderResult:
    reordered_items: list[TimelineItem] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    message: str = ""


def _original_gaps(items: list[TimelineItem]) -> list[float]:
    ordered = sorted(items, key=lambda item: item.start_time)
    return [
        max(0.0, nxt.start_time - prev.end_time)
        for prev, nxt in zip(ordered, ordered[1:])
    ]


def _apply_timing(
    items: list[TimelineItem],
    timing_mode: TimingMode,
    gap_duration: float,
    original_items: list[TimelineItem],
) -> None:
    """Retime ``items`` in list order from 0; ``original_items`` supplies the gaps."""
    if timing_mode == TimingMode.MAINTAIN_ORIGINAL or not items:
        return

    if timing_mode == TimingMode.SEQUENTIAL:
        current = 0.0
        for item in items:
            duration = item.duration
            item.start_time = current
            item.end_time = current + duration
            current = item.end_time + gap_duration
        return

    reference = original_items or items
    gaps = _original_gaps(reference)
    current = 0.0
    for i, item in enumerate(items):
        duration = item.duration
        item.start_time = current
        item.end_time = current + duration
        gap = gaps[i] if i < len(gaps) else 0.0
        if gap == 0:
            gap = gap_duration
        current = item.end_time + gap


def _find_duplicates(ids: list[str]) -> list[str]:
    return [item_id for item_id, count in Counter(ids).items() if count > 1]


def _summarize(count: int, where: str, timing_mode: TimingMode, conflicts: list[str]) -> str:
    message = f"Reordered {count} item{'s' if count != 1 else ''} {where} ({timing_mode.value})"
    if conflicts:
        message += f"; {len(conflicts)} conflict{'s' if len(conflicts) != 1 else ''} detected"
    return message


def reorder_within_track(
    timeline: TimelineData,
    track_id: str,
    item_order: list[str],
    timing_mode: TimingMode = TimingMode.MAINTAIN_ORIGINAL,
    gap_duration: float = 0.0,
) -> ReorderResult:
    """
    Put the items of ``track_id`` in ``item_order`` and retime them.

    ``item_order`` must name every item of the track exactly once.
    """
    track = timeline.get_track(track_id)
    if track is None:
        raise TrackNotFoundError(track_id)
    if gap_duration < 0:
        raise InvalidOperationError("Gap duration must be non-negative")

    duplicates = _find_duplicates(item_order)
    if duplicates:
        raise DuplicateAssignmentError(duplicates)

    by_id = {item.id: item for item in track.items}
    for item_id in item_order:
        if item_id not in by_id:
            raise ItemNotFoundError(item_id)
    missing = [item_id for item_id in by_id if item_id not in item_order]
    if missing:
        raise InvalidOperationError(
            f"Item order for {track.name} must list every item; missing: {', '.join(missing)}"
        )

    original = [item.model_copy() for item in track.items]
    ordered = [by_id[item_id] for item_id in item_order]
    _apply_timing(ordered, timing_mode, gap_duration, original)
    track.items = ordered
    timeline.recompute_duration()

    conflicts = detect_track_overlaps(track)
    message = _summarize(len(ordered), f"on {track.name}", timing_mode, conflicts)
    if conflicts:
        logger.warning(message)
    else:
        logger.info(message)
    return ReorderResult(reordered_items=list(ordered), conflicts=conflicts, message=message)


def reorder_across_tracks(
    timeline: TimelineData,
    assignments: list[TrackAssignment],
    timing_mode: TimingMode = TimingMode.MAINTAIN_ORIGINAL,
    gap_duration: float = 0.0,
) -> ReorderResult:
    """
    Move items to target tracks at ordinal positions, then retime each
    destination track.
    """
    if not assignments:
        raise InvalidOperationError("At least one track assignment is required")
    if gap_duration < 0:
        raise InvalidOperationError("Gap duration must be non-negative")

    duplicates = _find_duplicates([a.item_id for a in assignments])
    if duplicates:
        raise DuplicateAssignmentError(duplicates)

    # validate everything before moving anything
    located: dict[str, tuple[TimelineTrack, TimelineItem]] = {}
    targets: dict[str, TimelineTrack] = {}
    for assignment in assignments:
        found = timeline.find_item(assignment.item_id)
        if found is None:
            raise ItemNotFoundError(assignment.item_id)
        target = timeline.get_track(assignment.track_id)
        if target is None:
            raise TrackNotFoundError(assignment.track_id)
        ensure_kind_compatible(found[1].kind, target.kind)
        if assignment.position < 0:
            raise InvalidOperationError("Track positions must be non-negative")
        located[assignment.item_id] = found
        targets[target.id] = target

    originals = {
        track_id: [item.model_copy() for item in track.items]
        for track_id, track in targets.items()
    }

    affected: dict[str, TimelineTrack] = dict(targets)
    for source, item in located.values():
        source.items.remove(item)
        affected[source.id] = source

    reordered: list[TimelineItem] = []
    for track_id, track in targets.items():
        incoming = sorted(
            (a for a in assignments if a.track_id == track_id),
            key=lambda a: a.position,
        )
        items = sorted(track.items, key=lambda item: item.start_time)
        for assignment in incoming:
            item = located[assignment.item_id][1]
            item.track_id = track_id
            items.insert(min(assignment.position, len(items)), item)
        _apply_timing(items, timing_mode, gap_duration, originals[track_id])
        track.items = items
        reordered.extend(items)

    timeline.recompute_duration()

    conflicts: list[str] = []
    for track in affected.values():
        conflicts.extend(detect_track_overlaps(track))

    message = _summarize(
        len(assignments), f"across {len(targets)} track{'s' if len(targets) != 1 else ''}",
        timing_mode, conflicts,
    )
    if conflicts:
        logger.warning(message)
    else:
        logger.info(message)
    return ReorderResult(reordered_items=reordered, conflicts=conflicts, message=message)
