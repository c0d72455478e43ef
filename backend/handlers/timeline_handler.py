"""
Timeline Handler - REST API endpoints for timeline operations.

Mutating endpoints accept an optional X-Expected-Version header for
optimistic locking. Without it the last write wins.

Header format:
    X-Expected-Version: <int>

On version conflict, returns 409 Conflict with:
{
    "detail": {
        "error": "version_conflict",
        "expected_version": <int>,
        "current_version": <int>,
        "message": "Timeline was modified. Please refresh and retry."
    }
}

Timeline payloads are serialized with camelCase keys (startTime, trackId, ...).
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, HTTPException, Path, Query
from sqlalchemy.orm import Session

from database.base import get_db
from database.models import Project
from dependencies.project import require_project
from models.graph_models import NodeGraph
from models.timeline_models import (
    CheckpointListResponse,
    CompositionFilters,
    DragRequest,
    DragResponse,
    ModifyItemRequest,
    ModifyItemResponse,
    PlaceAssetRequest,
    PlaceAssetResponse,
    ReorderRequest,
    ReorderResponse,
    SyncGraphResponse,
    TimelineMutationResponse,
    TimelineResponse,
)
from operators.drag_snap import begin_drag, compute_candidate
from operators.timeline_editor import (
    AppliedEdit,
    apply_composition_filters,
    clear_composition_filters,
    commit_drag,
    get_display_timeline,
    get_render_payload,
    modify_asset,
    place_asset,
    remove_item,
    reorder_items,
    sync_graph,
)
from operators.timeline_operator import (
    AssetNotFoundError,
    CheckpointNotFoundError,
    InvalidOperationError,
    ItemNotFoundError,
    TimelineNotFoundError,
    TimelineStoreError,
    TrackConflictError,
    TrackNotFoundError,
    VersionConflictError,
    checkpoint_to_summary,
    get_timeline_by_project,
    get_timeline_snapshot_by_project,
    list_checkpoints,
    rollback_to_version,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects/{project_id}/timeline", tags=["timeline"])


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def get_expected_version(
    x_expected_version: Annotated[int | None, Header()] = None
) -> int | None:
    """Extract expected version from header."""
    return x_expected_version


def get_actor(
    x_actor: Annotated[str | None, Header()] = None
) -> str:
    """Actor recorded on checkpoints; defaults to a generic user."""
    return x_actor or "user"


def handle_timeline_error(e: Exception):
    """Convert timeline exceptions to HTTP exceptions."""
    if isinstance(e, HTTPException):
        raise e
    if isinstance(
        e,
        (
            TimelineNotFoundError,
            CheckpointNotFoundError,
            ItemNotFoundError,
            TrackNotFoundError,
            AssetNotFoundError,
        ),
    ):
        raise HTTPException(status_code=404, detail=str(e))
    elif isinstance(e, VersionConflictError):
        raise HTTPException(
            status_code=409,
            detail={
                "error": "version_conflict",
                "expected_version": e.expected_version,
                "current_version": e.current_version,
                "message": "Timeline was modified. Please refresh and retry."
            }
        )
    elif isinstance(e, TrackConflictError):
        raise HTTPException(
            status_code=409,
            detail={
                "error": "track_conflict",
                "track_id": e.track_id,
                "conflicting_ids": e.conflicting_ids,
                "message": str(e),
            }
        )
    elif isinstance(e, InvalidOperationError):
        raise HTTPException(status_code=400, detail=str(e))
    elif isinstance(e, TimelineStoreError):
        raise HTTPException(status_code=503, detail=str(e))
    else:
        logger.exception("Unhandled timeline error")
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


def _mutation_fields(edit: AppliedEdit) -> dict[str, Any]:
    return {
        "ok": True,
        "message": edit.message,
        "checkpoint": checkpoint_to_summary(edit.checkpoint) if edit.checkpoint else None,
        "timeline": edit.timeline,
    }


# =============================================================================
# READS
# =============================================================================


@router.get("", response_model=TimelineResponse)
async def timeline_get(
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
    version: int | None = Query(default=None, description="Specific version to retrieve"),
):
    """
    Get the current timeline (or a specific version).

    A project that was never edited returns the empty video/audio skeleton at
    version 0.
    """
    try:
        result = get_timeline_snapshot_by_project(db, project.project_id, version)
        return TimelineResponse(
            ok=True,
            timeline=result.timeline,
            version=result.version,
            checkpoint_id=result.checkpoint_id,
        )
    except Exception as e:
        handle_timeline_error(e)


@router.post("/view", response_model=TimelineResponse)
async def timeline_view(
    graph: NodeGraph,
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
):
    """
    Display timeline: the persisted timeline merged with the items derived
    from the posted node graph. Nothing is written.
    """
    try:
        current = get_timeline_snapshot_by_project(db, project.project_id)
        display = get_display_timeline(db, project.project_id, graph)
        return TimelineResponse(
            ok=True,
            timeline=display,
            version=current.version,
            checkpoint_id=current.checkpoint_id,
        )
    except Exception as e:
        handle_timeline_error(e)


@router.get("/render")
async def timeline_render_payload(
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Timeline in the renderer wire format."""
    try:
        return get_render_payload(db, project.project_id)
    except Exception as e:
        handle_timeline_error(e)


# =============================================================================
# ITEM OPERATIONS
# =============================================================================


@router.post("/items", response_model=PlaceAssetResponse)
async def item_place(
    request: PlaceAssetRequest,
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
    expected_version: int | None = Depends(get_expected_version),
):
    """Place an asset; a new track is created when no track of the kind is free."""
    try:
        edit = place_asset(db, project.project_id, request, actor, expected_version)
        return PlaceAssetResponse(
            **_mutation_fields(edit),
            item_id=edit.result.item.id,
            track_id=edit.result.track_id,
        )
    except Exception as e:
        handle_timeline_error(e)


@router.patch("/items/{item_id}", response_model=ModifyItemResponse)
async def item_modify(
    request: ModifyItemRequest,
    item_id: str = Path(..., description="Timeline item ID"),
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
    expected_version: int | None = Depends(get_expected_version),
):
    """Patch timing, trim, overlay, volume, opacity or track of an item."""
    try:
        edit = modify_asset(db, project.project_id, item_id, request, actor, expected_version)
        return ModifyItemResponse(
            **_mutation_fields(edit),
            updated_item=edit.result.item,
        )
    except Exception as e:
        handle_timeline_error(e)


@router.delete("/items/{item_id}", response_model=TimelineMutationResponse)
async def item_remove(
    item_id: str = Path(..., description="Timeline item ID"),
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
    expected_version: int | None = Depends(get_expected_version),
):
    try:
        edit = remove_item(db, project.project_id, item_id, actor, expected_version)
        return TimelineMutationResponse(**_mutation_fields(edit))
    except Exception as e:
        handle_timeline_error(e)


@router.post("/items/{item_id}/drag", response_model=DragResponse)
async def item_drag(
    request: DragRequest,
    item_id: str = Path(..., description="Timeline item ID"),
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
    expected_version: int | None = Depends(get_expected_version),
):
    """
    Apply a completed drag gesture.

    The pointer offset is converted with the timeline scale and snapped like
    a live drag, then committed. A failed commit is reported with
    committed=false and the candidate start so the client can retry.
    """
    try:
        current = get_timeline_snapshot_by_project(db, project.project_id)
        state = begin_drag(current.timeline, item_id)
        state = compute_candidate(state, current.timeline, request.pointer_delta_px)
        outcome = commit_drag(db, project.project_id, state, actor, expected_version)

        latest = get_timeline_snapshot_by_project(db, project.project_id)
        return DragResponse(
            ok=outcome.error is None,
            committed=outcome.committed,
            candidate_start=outcome.candidate_start,
            error=outcome.error,
            version=latest.version,
            timeline=latest.timeline,
        )
    except Exception as e:
        handle_timeline_error(e)


@router.post("/reorder", response_model=ReorderResponse)
async def items_reorder(
    request: ReorderRequest,
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
    expected_version: int | None = Depends(get_expected_version),
):
    """
    Reorder items within a track or across tracks.

    Overlaps are not resolved; they are returned in ``conflicts``.
    """
    try:
        edit = reorder_items(db, project.project_id, request, actor, expected_version)
        return ReorderResponse(
            **_mutation_fields(edit),
            reordered_items=edit.result.reordered_items,
            conflicts=edit.result.conflicts,
        )
    except Exception as e:
        handle_timeline_error(e)


# =============================================================================
# COMPOSITION FILTERS
# =============================================================================


@router.put("/filters", response_model=TimelineMutationResponse)
async def filters_apply(
    filters: CompositionFilters,
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
    expected_version: int | None = Depends(get_expected_version),
):
    try:
        edit = apply_composition_filters(db, project.project_id, filters, actor, expected_version)
        return TimelineMutationResponse(**_mutation_fields(edit))
    except Exception as e:
        handle_timeline_error(e)


@router.delete("/filters", response_model=TimelineMutationResponse)
async def filters_clear(
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
    expected_version: int | None = Depends(get_expected_version),
):
    try:
        edit = clear_composition_filters(db, project.project_id, actor, expected_version)
        return TimelineMutationResponse(**_mutation_fields(edit))
    except Exception as e:
        handle_timeline_error(e)


# =============================================================================
# GRAPH SYNC
# =============================================================================


@router.post("/sync", response_model=SyncGraphResponse)
async def graph_sync(
    graph: NodeGraph,
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
    expected_version: int | None = Depends(get_expected_version),
):
    """Persist the graph-derived items that are not on the timeline yet."""
    try:
        edit = sync_graph(db, project.project_id, graph, actor, expected_version)
        return SyncGraphResponse(
            **_mutation_fields(edit),
            promoted_item_ids=[item.id for item in edit.result],
        )
    except Exception as e:
        handle_timeline_error(e)


# =============================================================================
# HISTORY
# =============================================================================


@router.get("/history", response_model=CheckpointListResponse)
async def timeline_history(
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
    limit: int = Query(default=50, le=100),
    offset: int = Query(default=0, ge=0),
):
    """List checkpoint history for the timeline, newest first."""
    try:
        timeline_model = get_timeline_by_project(db, project.project_id)
        if not timeline_model:
            return CheckpointListResponse(ok=True, checkpoints=[], total=0)

        checkpoints, total = list_checkpoints(
            db=db,
            timeline_id=timeline_model.timeline_id,
            limit=limit,
            offset=offset,
        )

        return CheckpointListResponse(
            ok=True,
            checkpoints=checkpoints,
            total=total,
        )
    except Exception as e:
        handle_timeline_error(e)


@router.post("/rollback/{version}", response_model=TimelineMutationResponse)
async def timeline_rollback(
    version: int = Path(..., description="Version to rollback to"),
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
    expected_version: int | None = Depends(get_expected_version),
):
    """
    Rollback to a previous version.

    Creates a new checkpoint with the content from the target version.
    """
    try:
        timeline_model = get_timeline_by_project(db, project.project_id)
        if not timeline_model:
            raise TimelineNotFoundError(project_id=project.project_id)

        checkpoint = rollback_to_version(
            db=db,
            timeline_id=timeline_model.timeline_id,
            target_version=version,
            rollback_by=actor,
            expected_version=expected_version,
        )

        result = get_timeline_snapshot_by_project(db, project.project_id)

        return TimelineMutationResponse(
            ok=True,
            message=checkpoint.description,
            checkpoint=checkpoint_to_summary(checkpoint),
            timeline=result.timeline,
        )
    except Exception as e:
        handle_timeline_error(e)
