"""
Shared timeline helpers used by every engine.

- overlap and track-availability checks
- canvas bounds validation for overlays
- track/item kind compatibility
- ephemeral (graph-derived) id conventions
- default track set and new-track allocation
- renderer wire payload and display-scale conversions
"""

from __future__ import annotations

from typing import Any

from models.timeline_models import (
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    EPHEMERAL_ID_PREFIX,
    MAX_OPACITY,
    MAX_VOLUME,
    MIN_OPACITY,
    MIN_VOLUME,
    AssetKind,
    CompositionFilters,
    ItemKind,
    Overlay,
    TimelineData,
    TimelineTrack,
    TrackKind,
)
from operators.timeline_operator import InvalidOperationError, OverlayBoundsError


FALLBACK_ASSET_DURATION = 10.0

IDENTITY_FILTER_VALUES: dict[str, float] = {
    "contrast": 1.0,
    "saturation": 1.0,
    "brightness": 1.0,
    "hue_rotate": 0.0,
    "sepia": 0.0,
    "blur": 0.0,
    "grayscale": 0.0,
    "invert": 0.0,
}


# =============================================================================
# OVERLAP / AVAILABILITY
# =============================================================================


def intervals_overlap(
    a_start: float, a_end: float, b_start: float, b_end: float
) -> bool:
    """Half-open: touching intervals ([0, 5) and [5, 8)) do not overlap."""
    return a_start < b_end and a_end > b_start


def find_free_track(
    timeline: TimelineData,
    kind: TrackKind,
    start_time: float,
    end_time: float,
    exclude_id: str | None = None,
) -> TimelineTrack | None:
    """First track of ``kind`` (in track order) with room for the interval."""
    for track in timeline.tracks_of_kind(kind):
        if track.is_free(start_time, end_time, exclude_id):
            return track
    return None


def detect_track_overlaps(track: TimelineTrack) -> list[str]:
    """Readable descriptions of every overlapping pair on a track."""
    ordered = sorted(track.items, key=lambda item: item.start_time)
    conflicts = []
    for i, current in enumerate(ordered):
        for other in ordered[i + 1:]:
            if other.start_time >= current.end_time:
                break
            conflicts.append(
                f"Detected overlaps in {track.name}: {current.label} and {other.label}"
            )
    return conflicts


# =============================================================================
# VALIDATION
# =============================================================================


def validate_time_range(start_time: float, end_time: float) -> None:
    if start_time < 0:
        raise InvalidOperationError("Start time must be non-negative")
    if end_time <= start_time:
        raise InvalidOperationError("End time must be greater than start time")


def validate_trim_window(asset_start_time: float, asset_end_time: float) -> None:
    if asset_start_time < 0:
        raise InvalidOperationError("Asset start time must be non-negative")
    if asset_end_time <= asset_start_time:
        raise InvalidOperationError(
            "Asset end time must be greater than asset start time"
        )


def validate_volume(volume: float | None) -> None:
    if volume is not None and not MIN_VOLUME <= volume <= MAX_VOLUME:
        raise InvalidOperationError(
            f"Volume must be between {MIN_VOLUME:g} and {MAX_VOLUME:g}"
        )


def validate_opacity(opacity: float | None) -> None:
    if opacity is not None and not MIN_OPACITY <= opacity <= MAX_OPACITY:
        raise InvalidOperationError(
            f"Opacity must be between {MIN_OPACITY:g} and {MAX_OPACITY:g}"
        )


def validate_overlay_bounds(overlay: Overlay) -> None:
    """Overlay must lie entirely inside the 1920x1080 canvas."""
    if overlay.x < 0 or overlay.y < 0:
        raise OverlayBoundsError(
            f"Overlay position ({overlay.x:g}, {overlay.y:g}) must be non-negative"
        )
    if overlay.x + overlay.width > CANVAS_WIDTH:
        raise OverlayBoundsError(
            f"Overlay exceeds canvas width: x + width = "
            f"{overlay.x + overlay.width:g} > {CANVAS_WIDTH}"
        )
    if overlay.y + overlay.height > CANVAS_HEIGHT:
        raise OverlayBoundsError(
            f"Overlay exceeds canvas height: y + height = "
            f"{overlay.y + overlay.height:g} > {CANVAS_HEIGHT}"
        )


def item_kind_for_asset(asset_kind: AssetKind) -> ItemKind:
    if asset_kind == AssetKind.AUDIO:
        return ItemKind.AUDIO
    if asset_kind == AssetKind.IMAGE:
        return ItemKind.IMAGE
    if asset_kind == AssetKind.VIDEO:
        return ItemKind.VIDEO
    raise InvalidOperationError(
        f"Assets of type {asset_kind.value} cannot be placed on the timeline"
    )


def ensure_kind_compatible(item_kind: ItemKind, track_kind: TrackKind) -> None:
    if item_kind.track_kind != track_kind:
        raise InvalidOperationError(
            f"A {item_kind.value} item cannot be placed on a {track_kind.value} track"
        )


# =============================================================================
# EPHEMERAL IDS
# =============================================================================


def ephemeral_id(node_id: str) -> str:
    return f"{EPHEMERAL_ID_PREFIX}{node_id}"


def is_ephemeral_id(item_id: str) -> bool:
    return item_id.startswith(EPHEMERAL_ID_PREFIX)


def stable_id(item_id: str) -> str:
    """The id a graph-derived item is persisted under once promoted."""
    if is_ephemeral_id(item_id):
        return item_id[len(EPHEMERAL_ID_PREFIX):]
    return item_id


def ephemeral_aliases(item_id: str) -> set[str]:
    """Every persisted id that counts as already representing ``item_id``."""
    return {item_id, ephemeral_id(item_id), stable_id(item_id)}


# =============================================================================
# TRACKS
# =============================================================================


def create_default_tracks() -> list[TimelineTrack]:
    """Track set used when populating a timeline from the graph."""
    return [
        TimelineTrack(id="video-1", kind=TrackKind.VIDEO, name="Video 1"),
        TimelineTrack(id="video-2", kind=TrackKind.VIDEO, name="Video 2"),
        TimelineTrack(id="audio-1", kind=TrackKind.AUDIO, name="Audio 1"),
    ]


def track_id_for(kind: TrackKind, index: int) -> str:
    return f"{kind.value}-{index}"


def next_track(timeline: TimelineData, kind: TrackKind) -> TimelineTrack:
    """
    Append a new track of ``kind`` using the first unused number.

    Returns the new track; the caller places items on it.
    """
    existing = {t.id for t in timeline.tracks}
    n = 1
    while track_id_for(kind, n) in existing:
        n += 1
    track = TimelineTrack(
        id=track_id_for(kind, n),
        kind=kind,
        name=f"{kind.value.capitalize()} {n}",
    )
    timeline.tracks.append(track)
    return track


# =============================================================================
# WIRE FORMAT / DISPLAY
# =============================================================================


def filters_are_identity(filters: CompositionFilters | None) -> bool:
    """Missing fields count as identity."""
    if filters is None:
        return True
    return all(
        getattr(filters, name) in (None, identity)
        for name, identity in IDENTITY_FILTER_VALUES.items()
    )


def build_render_payload(timeline: TimelineData) -> dict[str, Any]:
    """
    Serialize a timeline for the rendering collaborator.

    Tracks keep their order, items are sorted by start time, the first video
    track is flagged ``main`` and the filter block is dropped when every
    filter is at identity.
    """
    payload = timeline.to_wire()
    main = timeline.main_track
    for track_payload in payload["tracks"]:
        track_payload["items"].sort(key=lambda item: item["startTime"])
        track_payload["main"] = main is not None and track_payload["id"] == main.id
    if filters_are_identity(timeline.composition_filters):
        payload.pop("compositionFilters", None)
    return payload


def format_duration(seconds: float) -> str:
    """M:SS display string, e.g. 75.4 -> '1:15'."""
    total = max(0, int(seconds))
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"


def time_to_pixels(seconds: float, timeline_scale: float) -> float:
    return seconds * timeline_scale


def pixels_to_time(pixels: float, timeline_scale: float) -> float:
    return pixels / timeline_scale
