"""
Pydantic models for the multi-track timeline.

This module holds the canonical timeline data structures shared by every
engine and by the persistence layer:
- TimelineItem / TimelineTrack / TimelineData: the placed clips and lanes
- Overlay and CompositionFilters: visual adjustments
- Request / response models used by the REST and tool layers

Attributes are snake_case in Python. The wire format (checkpoint snapshots and
the renderer payload) uses camelCase aliases; both spellings are accepted on
input.
"""

from __future__ import annotations

from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


# =============================================================================
# CONSTANTS
# =============================================================================


CANVAS_WIDTH = 1920
CANVAS_HEIGHT = 1080

EPHEMERAL_ID_PREFIX = "graph-"
DEFAULT_TIMELINE_SCALE = 50.0

MIN_VOLUME, MAX_VOLUME = 0.0, 2.0
MIN_OPACITY, MAX_OPACITY = 0.0, 1.0


class WireModel(BaseModel):
    """Base model with camelCase aliases for the wire format."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# ENUMS
# =============================================================================


class TrackKind(str, Enum):
    """Type of track content."""
    VIDEO = "video"
    AUDIO = "audio"


class ItemKind(str, Enum):
    """Type of a placed timeline item."""
    VIDEO = "video"
    IMAGE = "image"
    AUDIO = "audio"
    DRAFT = "draft"

    @property
    def track_kind(self) -> TrackKind:
        """Images and drafts are composited like video."""
        if self == ItemKind.AUDIO:
            return TrackKind.AUDIO
        return TrackKind.VIDEO


class TimingMode(str, Enum):
    """How item times are recomputed after a reorder."""
    MAINTAIN_ORIGINAL = "maintain_original"
    SEQUENTIAL = "sequential"
    PRESERVE_GAPS = "preserve_gaps"


class ReorderingType(str, Enum):
    WITHIN_TRACK = "within_track"
    ACROSS_TRACKS = "across_tracks"


# =============================================================================
# ITEM COMPONENTS
# =============================================================================


class MediaMetadata(WireModel):
    """Source asset facts carried alongside an item."""
    duration: float | None = Field(default=None, ge=0)
    width: int | None = None
    height: int | None = None
    size: int | None = None
    mime_type: str | None = None


class Overlay(WireModel):
    """
    Pixel-space placement of a visual item inside the composed frame.

    Canvas bounds are checked by the engines (see timeline_utils), so an
    out-of-frame overlay produces a descriptive rejection instead of a schema
    error.
    """
    x: float = Field(description="Pixels from the left edge")
    y: float = Field(description="Pixels from the top edge")
    width: float = Field(gt=0, description="Pixels wide")
    height: float = Field(gt=0, description="Pixels tall")
    z_index: int | None = Field(default=None, description="Layer order")


class OverlayPatch(WireModel):
    """Partial overlay update; unset fields keep their current value."""
    x: float | None = None
    y: float | None = None
    width: float | None = Field(default=None, gt=0)
    height: float | None = Field(default=None, gt=0)
    z_index: int | None = None


class CompositionFilters(WireModel):
    """
    Whole-composition visual adjustments.

    A missing field means no adjustment. Ranges are enforced by
    operators.composition_filters so callers get the exact offending field.
    """
    contrast: float | None = None
    saturation: float | None = None
    brightness: float | None = None
    hue_rotate: float | None = None
    sepia: float | None = None
    blur: float | None = None
    grayscale: float | None = None
    invert: float | None = None


# =============================================================================
# TIMELINE STRUCTURE
# =============================================================================


class TimelineItem(WireModel):
    """
    One placed clip.

    start_time/end_time position the item on the timeline (seconds);
    asset_start_time/asset_end_time select the trimmed window of the source.
    """
    id: str
    asset_id: str | None = None
    kind: ItemKind
    name: str = ""
    url: str | None = None
    start_time: float = Field(ge=0)
    end_time: float
    asset_start_time: float = Field(default=0.0, ge=0)
    asset_end_time: float
    track_id: str
    metadata: MediaMetadata | None = None
    overlay: Overlay | None = None
    volume: float | None = Field(default=None, ge=MIN_VOLUME, le=MAX_VOLUME)
    opacity: float | None = Field(default=None, ge=MIN_OPACITY, le=MAX_OPACITY)

    @model_validator(mode="after")
    def _check_ordering(self) -> TimelineItem:
        if self.end_time <= self.start_time:
            raise ValueError(
                f"Item {self.id}: end time must be greater than start time"
            )
        if self.asset_end_time <= self.asset_start_time:
            raise ValueError(
                f"Item {self.id}: asset end time must be greater than asset start time"
            )
        return self

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def is_ephemeral(self) -> bool:
        return self.id.startswith(EPHEMERAL_ID_PREFIX)

    @property
    def label(self) -> str:
        return self.name or self.id

    def overlaps(self, start_time: float, end_time: float) -> bool:
        """Half-open interval test against [start_time, end_time)."""
        return start_time < self.end_time and end_time > self.start_time


class TimelineTrack(WireModel):
    """An ordered lane of items of one medium."""
    id: str
    kind: TrackKind
    name: str
    items: list[TimelineItem] = Field(default_factory=list)
    muted: bool | None = None
    locked: bool | None = None

    def find_item(self, item_id: str) -> TimelineItem | None:
        return next((item for item in self.items if item.id == item_id), None)

    def overlapping_items(
        self,
        start_time: float,
        end_time: float,
        exclude_id: str | None = None,
    ) -> list[TimelineItem]:
        return [
            item for item in self.items
            if item.id != exclude_id and item.overlaps(start_time, end_time)
        ]

    def is_free(
        self,
        start_time: float,
        end_time: float,
        exclude_id: str | None = None,
    ) -> bool:
        return not self.overlapping_items(start_time, end_time, exclude_id)


class TimelineData(WireModel):
    """
    Top-level timeline aggregate.

    duration is derived from the items; call recompute_duration() after any
    structural change.
    """
    tracks: list[TimelineTrack] = Field(default_factory=list)
    duration: float = Field(default=0.0, ge=0)
    timeline_scale: float = Field(
        default=DEFAULT_TIMELINE_SCALE,
        gt=0,
        description="Display pixels per second",
    )
    composition_filters: CompositionFilters | None = None

    def recompute_duration(self) -> float:
        self.duration = max(
            (item.end_time for track in self.tracks for item in track.items),
            default=0.0,
        )
        return self.duration

    def get_track(self, track_id: str) -> TimelineTrack | None:
        return next((t for t in self.tracks if t.id == track_id), None)

    def tracks_of_kind(self, kind: TrackKind) -> list[TimelineTrack]:
        return [t for t in self.tracks if t.kind == kind]

    def find_item(
        self, item_id: str
    ) -> tuple[TimelineTrack, TimelineItem] | None:
        for track in self.tracks:
            item = track.find_item(item_id)
            if item is not None:
                return track, item
        return None

    def all_items(self) -> list[TimelineItem]:
        return [item for track in self.tracks for item in track.items]

    @property
    def main_track(self) -> TimelineTrack | None:
        """The first video track; drag snapping applies only there."""
        return next((t for t in self.tracks if t.kind == TrackKind.VIDEO), None)

    @classmethod
    def create_empty(cls) -> TimelineData:
        """Default two-track skeleton used when nothing is persisted yet."""
        return cls(
            tracks=[
                TimelineTrack(id="video-1", kind=TrackKind.VIDEO, name="Video 1"),
                TimelineTrack(id="audio-1", kind=TrackKind.AUDIO, name="Audio 1"),
            ],
        )


# =============================================================================
# ASSET REFERENCE
# =============================================================================


class AssetKind(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"
    IMAGE = "image"
    TEXT = "text"
    OTHER = "other"


class AssetReference(BaseModel):
    """Opaque source asset; only kind, duration and dimensions matter here."""
    id: str
    kind: AssetKind
    name: str = ""
    url: str | None = None
    metadata: MediaMetadata = Field(default_factory=MediaMetadata)


# =============================================================================
# API RESPONSE MODELS
# =============================================================================


class CheckpointSummary(BaseModel):
    """Summary of a timeline checkpoint (for history lists)."""
    checkpoint_id: UUID
    version: int
    parent_version: int | None
    description: str
    created_by: str
    created_at: str  # ISO format


class TimelineWithVersion(BaseModel):
    """Timeline snapshot with version info."""
    timeline: TimelineData
    version: int
    checkpoint_id: UUID | None = None


# =============================================================================
# REQUEST MODELS
# =============================================================================


class PlaceAssetRequest(BaseModel):
    """Request to place an asset on the timeline."""
    asset_id: str
    start_time: float = Field(description="Timeline start time in seconds")
    end_time: float | None = Field(
        default=None,
        description="Timeline end time (derived from the trim window if omitted)",
    )
    track_kind: TrackKind
    track_index: int | None = Field(
        default=None,
        description="Preferred track number, e.g. 2 for 'video-2'",
    )
    overlay: Overlay | None = None
    volume: float | None = None
    opacity: float | None = None
    asset_start_time: float | None = None
    asset_end_time: float | None = None


class ModifyItemRequest(BaseModel):
    """Request to patch an existing timeline item; every field is optional."""
    start_time: float | None = None
    end_time: float | None = None
    overlay: OverlayPatch | None = None
    volume: float | None = None
    opacity: float | None = None
    asset_start_time: float | None = None
    asset_end_time: float | None = None
    move_to_track_id: str | None = None
    move_to_track_kind: TrackKind | None = None


class TrackAssignment(BaseModel):
    item_id: str
    track_id: str
    position: int = Field(ge=0, description="0-based position within the track")


class ReorderRequest(BaseModel):
    """Request to reorder items within one track or across tracks."""
    reordering_type: ReorderingType
    track_id: str | None = Field(default=None, description="Required for within_track")
    item_order: list[str] | None = Field(default=None, description="Required for within_track")
    track_assignments: list[TrackAssignment] | None = Field(
        default=None,
        description="Required for across_tracks",
    )
    timing_mode: TimingMode = TimingMode.MAINTAIN_ORIGINAL
    gap_duration: float = Field(default=0.0, ge=0)


class DragRequest(BaseModel):
    """Final pointer offset of a completed drag gesture."""
    pointer_delta_px: float = Field(description="Horizontal offset in display pixels")


# =============================================================================
# RESPONSE MODELS
# =============================================================================


class TimelineResponse(BaseModel):
    """Response containing timeline data."""
    ok: bool = True
    timeline: TimelineData
    version: int
    checkpoint_id: UUID | None = None


class TimelineMutationResponse(BaseModel):
    """Response after mutating the timeline."""
    ok: bool = True
    message: str
    checkpoint: CheckpointSummary
    timeline: TimelineData


class PlaceAssetResponse(TimelineMutationResponse):
    item_id: str
    track_id: str


class ModifyItemResponse(TimelineMutationResponse):
    updated_item: TimelineItem


class ReorderResponse(TimelineMutationResponse):
    reordered_items: list[TimelineItem] = Field(default_factory=list)
    conflicts: list[str] = Field(default_factory=list)


class SyncGraphResponse(TimelineMutationResponse):
    checkpoint: CheckpointSummary | None = None  # None when nothing was promoted
    promoted_item_ids: list[str] = Field(default_factory=list)


class DragResponse(BaseModel):
    ok: bool = True
    committed: bool
    candidate_start: float | None = None
    error: str | None = None
    version: int
    timeline: TimelineData


class CheckpointListResponse(BaseModel):
    """Response containing checkpoint history."""
    ok: bool = True
    checkpoints: list[CheckpointSummary]
    total: int
