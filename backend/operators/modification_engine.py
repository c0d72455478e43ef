"""
Patch or remove an existing persisted item.

Every requested change is validated against the final state of the item
before any field is written, so a rejected request leaves the timeline
untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from models.timeline_models import (
    ModifyItemRequest,
    Overlay,
    TimelineData,
    TimelineItem,
    TimelineTrack,
    TrackKind,
)
from operators.timeline_operator import (
    InvalidOperationError,
    ItemNotFoundError,
    TrackConflictError,
    TrackNotFoundError,
)
from operators.timeline_utils import (
    ensure_kind_compatible,
    find_free_track,
    next_track,
    validate_opacity,
    validate_overlay_bounds,
    validate_time_range,
    validate_trim_window,
    validate_volume,
)

logger = logging.getLogger(__name__)


@dataclass
class ModificationResult:
    item: TimelineItem
    changes: list[str] = field(default_factory=list)
    message: str = ""


def _merge_overlay(current: Overlay | None, request: ModifyItemRequest) -> Overlay | None:
    patch = request.overlay
    if patch is None:
        return current

    values = patch.model_dump(exclude_none=True)
    if current is not None:
        return Overlay(**{**current.model_dump(), **values})

    if patch.width is None or patch.height is None:
        raise InvalidOperationError("A new overlay requires both width and height")
    return Overlay(
        x=values.get("x", 0.0),
        y=values.get("y", 0.0),
        width=patch.width,
        height=patch.height,
        z_index=patch.z_index,
    )


def _resolve_destination(
    timeline: TimelineData,
    source: TimelineTrack,
    item: TimelineItem,
    request: ModifyItemRequest,
    start_time: float,
    end_time: float,
) -> TimelineTrack | TrackKind:
    """
    Track the item should end up on.

    Returns a TrackKind when a new track of that kind has to be created;
    the caller does so only after all validation passed.
    """
    if request.move_to_track_id is not None:
        target = timeline.get_track(request.move_to_track_id)
        if target is None:
            raise TrackNotFoundError(request.move_to_track_id)
        ensure_kind_compatible(item.kind, target.kind)
        conflicts = target.overlapping_items(start_time, end_time, exclude_id=item.id)
        if conflicts:
            raise TrackConflictError(
                target.id,
                [c.id for c in conflicts],
                f"Cannot move to track {target.id}: time conflict detected",
            )
        return target

    if request.move_to_track_kind is not None:
        kind = request.move_to_track_kind
        ensure_kind_compatible(item.kind, kind)
        free = find_free_track(timeline, kind, start_time, end_time, exclude_id=item.id)
        return free if free is not None else kind

    if not source.is_free(start_time, end_time, exclude_id=item.id):
        conflicts = source.overlapping_items(start_time, end_time, exclude_id=item.id)
        raise TrackConflictError(
            source.id,
            [c.id for c in conflicts],
            f"Cannot move to {start_time:g}s-{end_time:g}s on track {source.id}: "
            f"time conflict detected",
        )
    return source


def modify_item(
    timeline: TimelineData,
    item_id: str,
    request: ModifyItemRequest,
) -> ModificationResult:
    """
    Apply ``request`` to item ``item_id`` in place.

    Raises:
        ItemNotFoundError, TrackNotFoundError: unknown ids
        InvalidOperationError / OverlayBoundsError: validation failures
        TrackConflictError: the new interval overlaps another item
    """
    located = timeline.find_item(item_id)
    if located is None:
        raise ItemNotFoundError(item_id)
    source, item = located
    if item.is_ephemeral:
        raise InvalidOperationError(
            f"Item {item_id} is derived from the graph; sync the graph to the "
            f"timeline before editing it"
        )

    start_time = request.start_time if request.start_time is not None else item.start_time
    end_time = request.end_time if request.end_time is not None else item.end_time
    validate_time_range(start_time, end_time)

    asset_start = (
        request.asset_start_time if request.asset_start_time is not None
        else item.asset_start_time
    )
    asset_end = (
        request.asset_end_time if request.asset_end_time is not None
        else item.asset_end_time
    )
    validate_trim_window(asset_start, asset_end)

    validate_volume(request.volume)
    validate_opacity(request.opacity)

    overlay = _merge_overlay(item.overlay, request)
    destination = _resolve_destination(timeline, source, item, request, start_time, end_time)
    destination_kind = destination if isinstance(destination, TrackKind) else destination.kind
    if request.overlay is not None:
        if destination_kind != TrackKind.VIDEO:
            raise InvalidOperationError("Overlays are only supported on video tracks")
        validate_overlay_bounds(overlay)

    # validation complete; write the changes
    changes: list[str] = []
    if start_time != item.start_time or end_time != item.end_time:
        changes.append(f"time {start_time:g}s-{end_time:g}s")
    if asset_start != item.asset_start_time or asset_end != item.asset_end_time:
        changes.append(f"trim {asset_start:g}s-{asset_end:g}s")
    if request.overlay is not None:
        changes.append("overlay")
    if request.volume is not None and request.volume != item.volume:
        changes.append(f"volume {request.volume:g}")
    if request.opacity is not None and request.opacity != item.opacity:
        changes.append(f"opacity {request.opacity:g}")

    if isinstance(destination, TrackKind):
        destination = next_track(timeline, destination)

    item.start_time = start_time
    item.end_time = end_time
    item.asset_start_time = asset_start
    item.asset_end_time = asset_end
    item.overlay = overlay
    if request.volume is not None:
        item.volume = request.volume
    if request.opacity is not None:
        item.opacity = request.opacity

    if destination.id != source.id:
        source.items.remove(item)
        item.track_id = destination.id
        destination.items.append(item)
        changes.append(f"moved to {destination.name}")
    destination.items.sort(key=lambda i: i.start_time)
    timeline.recompute_duration()

    summary = ", ".join(changes) if changes else "no changes"
    message = f'Successfully modified "{item.label}": {summary}'
    logger.info(message)
    return ModificationResult(item=item, changes=changes, message=message)


def remove_item(timeline: TimelineData, item_id: str) -> TimelineItem:
    """Delete ``item_id``; only the duration is recomputed."""
    located = timeline.find_item(item_id)
    if located is None:
        raise ItemNotFoundError(item_id)
    track, item = located
    track.items.remove(item)
    timeline.recompute_duration()
    logger.info(f'Removed "{item.label}" from {track.name}')
    return item
