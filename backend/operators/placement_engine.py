"""
Place a single asset onto a timeline.

Validation runs to completion before anything is touched. Track choice:
the preferred track if it is free on the requested interval, else the first
free track of the requested kind, else a newly created track.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import uuid4

from models.timeline_models import (
    AssetReference,
    PlaceAssetRequest,
    TimelineData,
    TimelineItem,
    TimelineTrack,
    TrackKind,
)
from operators.timeline_operator import InvalidOperationError
from operators.timeline_utils import (
    FALLBACK_ASSET_DURATION,
    ensure_kind_compatible,
    find_free_track,
    item_kind_for_asset,
    next_track,
    track_id_for,
    validate_opacity,
    validate_overlay_bounds,
    validate_trim_window,
    validate_volume,
)

logger = logging.getLogger(__name__)


@dataclass
class PlacementResult:
    item: TimelineItem
    track_id: str
    created_track: bool
    message: str


def new_item_id() -> str:
    return f"item-{uuid4().hex[:12]}"


def _resolve_track(
    timeline: TimelineData,
    kind: TrackKind,
    track_index: int | None,
    start_time: float,
    end_time: float,
) -> tuple[TimelineTrack, bool]:
    if track_index is not None:
        preferred = timeline.get_track(track_id_for(kind, track_index))
        if (
            preferred is not None
            and preferred.kind == kind
            and preferred.is_free(start_time, end_time)
        ):
            return preferred, False

    free = find_free_track(timeline, kind, start_time, end_time)
    if free is not None:
        return free, False

    return next_track(timeline, kind), True


def place_asset(
    timeline: TimelineData,
    asset: AssetReference,
    request: PlaceAssetRequest,
) -> PlacementResult:
    """
    Place ``asset`` on ``timeline`` in place.

    Raises:
        InvalidOperationError: bad timing, ranges, kind mismatch or trim window
        OverlayBoundsError: overlay outside the canvas
    """
    if request.start_time < 0:
        raise InvalidOperationError("Start time must be non-negative")
    validate_volume(request.volume)
    validate_opacity(request.opacity)

    item_kind = item_kind_for_asset(asset.kind)
    ensure_kind_compatible(item_kind, request.track_kind)

    asset_start = request.asset_start_time if request.asset_start_time is not None else 0.0
    if request.asset_end_time is not None:
        asset_end = request.asset_end_time
    else:
        asset_end = asset.metadata.duration or FALLBACK_ASSET_DURATION

    start_time = request.start_time
    if request.end_time is not None:
        end_time = request.end_time
    else:
        end_time = start_time + (asset_end - asset_start)

    if end_time <= start_time:
        raise InvalidOperationError("End time must be greater than start time")

    if request.overlay is not None:
        if request.track_kind != TrackKind.VIDEO:
            raise InvalidOperationError("Overlays are only supported on video tracks")
        validate_overlay_bounds(request.overlay)

    validate_trim_window(asset_start, asset_end)

    track, created = _resolve_track(
        timeline, request.track_kind, request.track_index, start_time, end_time
    )

    item = TimelineItem(
        id=new_item_id(),
        asset_id=asset.id,
        kind=item_kind,
        name=asset.name,
        url=asset.url,
        start_time=start_time,
        end_time=end_time,
        asset_start_time=asset_start,
        asset_end_time=asset_end,
        track_id=track.id,
        metadata=asset.metadata,
        overlay=request.overlay,
        volume=request.volume,
        opacity=request.opacity,
    )
    track.items.append(item)
    track.items.sort(key=lambda i: i.start_time)
    timeline.recompute_duration()

    message = (
        f'Placed "{item.label}" on {track.name} '
        f"at {start_time:g}s-{end_time:g}s"
    )
    if created:
        message += " (new track created)"
    logger.info(message)

    return PlacementResult(item=item, track_id=track.id, created_track=created, message=message)
