"""
Reconcile the persisted timeline with the graph-derived ephemeral one.

The persisted timeline is the source of truth. An ephemeral item is shown
only while no persisted item represents it; graph sync promotes ephemeral
items by persisting them under their stable id, after which the merge stops
showing them.
"""

from __future__ import annotations

import logging

from models.timeline_models import TimelineData, TimelineItem, TimelineTrack
from operators.timeline_utils import ephemeral_aliases, stable_id

logger = logging.getLogger(__name__)


def _persisted_ids(timeline: TimelineData) -> set[str]:
    return {item.id for item in timeline.all_items()}


def is_represented(item_id: str, persisted_ids: set[str]) -> bool:
    return not ephemeral_aliases(item_id).isdisjoint(persisted_ids)


def _track_for(result: TimelineData, template: TimelineTrack) -> TimelineTrack:
    track = result.get_track(template.id)
    if track is None:
        track = template.model_copy(update={"items": []}, deep=True)
        result.tracks.append(track)
    return track


def merge_timelines(
    persisted: TimelineData | None,
    ephemeral: TimelineData,
) -> TimelineData:
    """
    Display view of ``persisted`` plus unrepresented ephemeral items.

    Pure and idempotent: neither input is mutated, and merging the same
    ephemeral timeline again yields the same result.
    """
    base = persisted if persisted is not None else TimelineData.create_empty()
    result = base.model_copy(deep=True)
    persisted_ids = _persisted_ids(result)

    for ephemeral_track in ephemeral.tracks:
        track = _track_for(result, ephemeral_track)
        for item in ephemeral_track.items:
            if is_represented(item.id, persisted_ids):
                continue
            track.items.append(item.model_copy(update={"track_id": track.id}, deep=True))

    for track in result.tracks:
        # list.sort is stable, so persisted items win ties
        track.items.sort(key=lambda item: item.start_time)

    result.recompute_duration()
    return result


def promote_ephemeral_items(
    persisted: TimelineData | None,
    ephemeral: TimelineData,
) -> tuple[TimelineData, list[TimelineItem]]:
    """
    Copy unrepresented ephemeral items into the persisted timeline.

    Promoted items take their stable id (prefix removed). Returns the new
    timeline and the promoted items; a second call with the same input
    promotes nothing.
    """
    base = persisted if persisted is not None else TimelineData.create_empty()
    result = base.model_copy(deep=True)
    persisted_ids = _persisted_ids(result)

    promoted: list[TimelineItem] = []
    for ephemeral_track in ephemeral.tracks:
        pending = [
            item for item in ephemeral_track.items
            if not is_represented(item.id, persisted_ids)
        ]
        if not pending:
            continue
        track = _track_for(result, ephemeral_track)
        for item in pending:
            new_item = item.model_copy(
                update={"id": stable_id(item.id), "track_id": track.id},
                deep=True,
            )
            track.items.append(new_item)
            persisted_ids.add(new_item.id)
            promoted.append(new_item)
        track.items.sort(key=lambda item: item.start_time)

    result.recompute_duration()
    if promoted:
        logger.info(f"Promoted {len(promoted)} graph items into the timeline")
    return result, promoted
