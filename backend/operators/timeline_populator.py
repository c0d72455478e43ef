"""
Build an ephemeral timeline from a sequenced node list.

Items are laid back-to-back from 0 on the first video track. Every generated
id carries the ephemeral prefix; nothing here is persisted.
"""

from __future__ import annotations

import logging

from models.graph_models import (
    DraftNode,
    GraphNode,
    ImageAssetNode,
    VideoAssetNode,
)
from models.timeline_models import (
    DEFAULT_TIMELINE_SCALE,
    ItemKind,
    TimelineData,
    TimelineItem,
    TimelineTrack,
    TrackKind,
)
from operators.timeline_utils import create_default_tracks, ephemeral_id

logger = logging.getLogger(__name__)


DEFAULT_VIDEO_DURATION = 10.0
DEFAULT_IMAGE_DURATION = 5.0
DEFAULT_DRAFT_DURATION = 8.0


def node_duration(node: GraphNode) -> float | None:
    """Logical length of a content node, or None if it produces no item."""
    if isinstance(node, VideoAssetNode):
        metadata = node.data.metadata
        if metadata is not None and metadata.duration:
            return metadata.duration
        return DEFAULT_VIDEO_DURATION
    if isinstance(node, ImageAssetNode):
        return DEFAULT_IMAGE_DURATION
    if isinstance(node, DraftNode):
        return node.data.estimated_duration or DEFAULT_DRAFT_DURATION
    # starting and generating nodes have nothing to show yet
    return None


def create_timeline_item_from_node(
    node: GraphNode,
    track_id: str,
    start_time: float,
) -> TimelineItem | None:
    duration = node_duration(node)
    if duration is None:
        return None

    if isinstance(node, DraftNode):
        return TimelineItem(
            id=ephemeral_id(node.id),
            kind=ItemKind.DRAFT,
            name=node.data.title,
            start_time=start_time,
            end_time=start_time + duration,
            asset_start_time=0.0,
            asset_end_time=duration,
            track_id=track_id,
            volume=1.0,
            opacity=1.0,
        )

    kind = ItemKind.VIDEO if isinstance(node, VideoAssetNode) else ItemKind.IMAGE
    return TimelineItem(
        id=ephemeral_id(node.id),
        asset_id=node.data.asset_id,
        kind=kind,
        name=node.data.name,
        url=node.data.url,
        start_time=start_time,
        end_time=start_time + duration,
        asset_start_time=0.0,
        asset_end_time=duration,
        track_id=track_id,
        metadata=node.data.metadata,
        volume=1.0,
        opacity=1.0,
    )


def populate_timeline_from_graph(
    sequence: list[GraphNode],
    tracks: list[TimelineTrack] | None = None,
) -> TimelineData:
    """
    Lay out ``sequence`` sequentially on the first video track.

    ``tracks`` defaults to video-1, video-2 and audio-1. The given tracks are
    copied, never mutated.
    """
    source_tracks = tracks if tracks is not None else create_default_tracks()
    result_tracks = [track.model_copy(deep=True) for track in source_tracks]

    timeline = TimelineData(tracks=result_tracks, timeline_scale=DEFAULT_TIMELINE_SCALE)

    target = next((t for t in result_tracks if t.kind == TrackKind.VIDEO), None)
    if target is None or not sequence:
        timeline.recompute_duration()
        return timeline

    current_time = 0.0
    for node in sequence:
        item = create_timeline_item_from_node(node, target.id, current_time)
        if item is None:
            continue
        target.items.append(item)
        current_time = item.end_time

    timeline.recompute_duration()
    logger.debug(
        f"Populated {len(target.items)} graph items on {target.id} "
        f"({timeline.duration:g}s)"
    )
    return timeline
