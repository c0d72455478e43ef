"""
Persisted timeline mutations.

Every mutation follows the same shape: load the latest snapshot for the
project, run the engine on a deep copy, and write a new checkpoint. A failing
engine or store call leaves the stored timeline untouched.
"""

import logging
from copy import deepcopy
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session as DBSession

from database.models import TimelineCheckpoint as TimelineCheckpointModel
from models.graph_models import NodeGraph
from models.timeline_models import (
    CompositionFilters,
    ModifyItemRequest,
    PlaceAssetRequest,
    ReorderingType,
    ReorderRequest,
    TimelineData,
)
from operators.composition_filters import apply_filters, clear_filters
from operators.drag_snap import DragOutcome, DragState, end_drag
from operators.graph_sequencer import build_timeline_sequence
from operators.modification_engine import modify_item, remove_item as remove_timeline_item
from operators.placement_engine import place_asset as place_asset_on_timeline
from operators.reorder_engine import reorder_across_tracks, reorder_within_track
from operators.timeline_merge import merge_timelines, promote_ephemeral_items
from operators.timeline_operator import (
    InvalidOperationError,
    create_checkpoint,
    get_asset_reference,
    get_or_create_timeline,
    get_timeline_by_project,
    get_timeline_snapshot,
    get_timeline_snapshot_by_project,
)
from operators.timeline_populator import populate_timeline_from_graph
from operators.timeline_utils import build_render_payload

logger = logging.getLogger(__name__)


@dataclass
class AppliedEdit:
    """A committed mutation: the new checkpoint, the new timeline and engine output."""
    checkpoint: TimelineCheckpointModel | None
    timeline: TimelineData
    message: str
    result: Any = None


def _load_for_edit(
    db: DBSession,
    project_id: UUID,
    actor: str,
) -> tuple[UUID, TimelineData]:
    timeline_model = get_or_create_timeline(db, project_id, created_by=actor)
    current = get_timeline_snapshot(db, timeline_model.timeline_id)
    return timeline_model.timeline_id, deepcopy(current.timeline)


def _commit(
    db: DBSession,
    timeline_id: UUID,
    timeline: TimelineData,
    message: str,
    actor: str,
    expected_version: int | None,
    operation_type: str,
    operation_data: dict[str, Any],
    result: Any = None,
) -> AppliedEdit:
    checkpoint = create_checkpoint(
        db=db,
        timeline_id=timeline_id,
        snapshot=timeline,
        description=message,
        created_by=actor,
        expected_version=expected_version,
        operation_type=operation_type,
        operation_data=operation_data,
    )
    return AppliedEdit(checkpoint=checkpoint, timeline=timeline, message=message, result=result)


# =============================================================================
# ITEM OPERATIONS
# =============================================================================


def place_asset(
    db: DBSession,
    project_id: UUID,
    request: PlaceAssetRequest,
    actor: str = "system",
    expected_version: int | None = None,
) -> AppliedEdit:
    asset = get_asset_reference(db, project_id, request.asset_id)
    timeline_id, timeline = _load_for_edit(db, project_id, actor)
    placement = place_asset_on_timeline(timeline, asset, request)
    return _commit(
        db, timeline_id, timeline, placement.message, actor, expected_version,
        operation_type="place_asset",
        operation_data={
            **request.model_dump(mode="json", exclude_none=True),
            "item_id": placement.item.id,
            "track_id": placement.track_id,
        },
        result=placement,
    )


def modify_asset(
    db: DBSession,
    project_id: UUID,
    item_id: str,
    request: ModifyItemRequest,
    actor: str = "system",
    expected_version: int | None = None,
) -> AppliedEdit:
    timeline_id, timeline = _load_for_edit(db, project_id, actor)
    modification = modify_item(timeline, item_id, request)
    return _commit(
        db, timeline_id, timeline, modification.message, actor, expected_version,
        operation_type="modify_asset",
        operation_data={
            "item_id": item_id,
            **request.model_dump(mode="json", exclude_none=True),
        },
        result=modification,
    )


def remove_item(
    db: DBSession,
    project_id: UUID,
    item_id: str,
    actor: str = "system",
    expected_version: int | None = None,
) -> AppliedEdit:
    timeline_id, timeline = _load_for_edit(db, project_id, actor)
    removed = remove_timeline_item(timeline, item_id)
    return _commit(
        db, timeline_id, timeline, f'Removed "{removed.label}"', actor, expected_version,
        operation_type="remove_item",
        operation_data={"item_id": item_id, "track_id": removed.track_id},
        result=removed,
    )


def reorder_items(
    db: DBSession,
    project_id: UUID,
    request: ReorderRequest,
    actor: str = "system",
    expected_version: int | None = None,
) -> AppliedEdit:
    timeline_id, timeline = _load_for_edit(db, project_id, actor)

    if request.reordering_type == ReorderingType.WITHIN_TRACK:
        if not request.track_id or request.item_order is None:
            raise InvalidOperationError(
                "within_track reordering requires track_id and item_order"
            )
        result = reorder_within_track(
            timeline,
            request.track_id,
            request.item_order,
            request.timing_mode,
            request.gap_duration,
        )
    else:
        if not request.track_assignments:
            raise InvalidOperationError(
                "across_tracks reordering requires track_assignments"
            )
        result = reorder_across_tracks(
            timeline,
            request.track_assignments,
            request.timing_mode,
            request.gap_duration,
        )

    return _commit(
        db, timeline_id, timeline, result.message, actor, expected_version,
        operation_type="reorder",
        operation_data={
            **request.model_dump(mode="json", exclude_none=True),
            "conflicts": result.conflicts,
        },
        result=result,
    )


def commit_drag(
    db: DBSession,
    project_id: UUID,
    state: DragState,
    actor: str = "system",
    expected_version: int | None = None,
) -> DragOutcome:
    """
    End a drag, persisting the candidate start through modify_asset.

    A failed commit is returned as a pending DragOutcome so the caller can
    retry with the same state.
    """
    def _persist(item_id: str, start_time: float) -> AppliedEdit:
        # the dragged item keeps its length
        return modify_asset(
            db,
            project_id,
            item_id,
            ModifyItemRequest(start_time=start_time, end_time=start_time + state.duration),
            actor=actor,
            expected_version=expected_version,
        )

    return end_drag(state, commit=_persist)


# =============================================================================
# COMPOSITION FILTERS
# =============================================================================


def apply_composition_filters(
    db: DBSession,
    project_id: UUID,
    filters: CompositionFilters,
    actor: str = "system",
    expected_version: int | None = None,
) -> AppliedEdit:
    timeline_id, timeline = _load_for_edit(db, project_id, actor)
    message = apply_filters(timeline, filters)
    return _commit(
        db, timeline_id, timeline, message, actor, expected_version,
        operation_type="apply_composition_filters",
        operation_data=filters.model_dump(mode="json", exclude_none=True),
    )


def clear_composition_filters(
    db: DBSession,
    project_id: UUID,
    actor: str = "system",
    expected_version: int | None = None,
) -> AppliedEdit:
    timeline_id, timeline = _load_for_edit(db, project_id, actor)
    message = clear_filters(timeline)
    return _commit(
        db, timeline_id, timeline, message, actor, expected_version,
        operation_type="clear_composition_filters",
        operation_data={},
    )


# =============================================================================
# GRAPH RECONCILIATION
# =============================================================================


def build_ephemeral_timeline(graph: NodeGraph) -> TimelineData:
    return populate_timeline_from_graph(build_timeline_sequence(graph))


def sync_graph(
    db: DBSession,
    project_id: UUID,
    graph: NodeGraph,
    actor: str = "system",
    expected_version: int | None = None,
) -> AppliedEdit:
    """
    Persist every graph-derived item not yet on the timeline.

    When everything is already represented no checkpoint is written and
    ``checkpoint`` is None.
    """
    timeline_id, timeline = _load_for_edit(db, project_id, actor)
    synced, promoted = promote_ephemeral_items(timeline, build_ephemeral_timeline(graph))

    if not promoted:
        logger.info(f"Graph sync for project {project_id}: nothing to promote")
        return AppliedEdit(
            checkpoint=None,
            timeline=timeline,
            message="Timeline already contains every graph item",
            result=[],
        )

    message = f"Synced {len(promoted)} graph item{'s' if len(promoted) != 1 else ''} to the timeline"
    return _commit(
        db, timeline_id, synced, message, actor, expected_version,
        operation_type="sync_graph",
        operation_data={"item_ids": [item.id for item in promoted]},
        result=promoted,
    )


# =============================================================================
# READS
# =============================================================================


def get_display_timeline(
    db: DBSession,
    project_id: UUID,
    graph: NodeGraph | None = None,
) -> TimelineData:
    """Persisted timeline merged with the graph-derived items."""
    timeline_model = get_timeline_by_project(db, project_id)
    persisted = None
    if timeline_model is not None:
        persisted = get_timeline_snapshot(db, timeline_model.timeline_id).timeline
    if graph is None:
        return persisted if persisted is not None else TimelineData.create_empty()
    return merge_timelines(persisted, build_ephemeral_timeline(graph))


def get_render_payload(db: DBSession, project_id: UUID) -> dict[str, Any]:
    return build_render_payload(get_timeline_snapshot_by_project(db, project_id).timeline)
