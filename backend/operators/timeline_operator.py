"""
Timeline Operator - Core persistence with versioning and optimistic locking.

This module provides the foundation for timeline storage:
- Create/read timelines (one per project)
- Checkpoint-based versioning; every mutation writes a full snapshot
- Optional optimistic locking via expected_version (None = last write wins)
- Rollback to previous versions
- Asset lookup for placement
- The exception hierarchy shared by all timeline engines

Store failures are wrapped in TimelineStoreError after rolling the session
back, so callers can surface them without touching their in-memory state.
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from database.models import (
    Assets as AssetsModel,
    Timeline as TimelineModel,
    TimelineCheckpoint as TimelineCheckpointModel,
    TimelineOperation as TimelineOperationModel,
)
from models.timeline_models import (
    AssetKind,
    AssetReference,
    CheckpointSummary,
    MediaMetadata,
    TimelineData,
    TimelineWithVersion,
)

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================


class TimelineError(Exception):
    """Base exception for timeline operations."""
    pass


class TimelineNotFoundError(TimelineError):
    """Raised when timeline is not found."""
    def __init__(self, timeline_id: UUID | None = None, project_id: UUID | None = None):
        self.timeline_id = timeline_id
        self.project_id = project_id
        if timeline_id:
            super().__init__(f"Timeline not found: {timeline_id}")
        elif project_id:
            super().__init__(f"No timeline found for project: {project_id}")
        else:
            super().__init__("Timeline not found")


class CheckpointNotFoundError(TimelineError):
    """Raised when checkpoint is not found."""
    def __init__(self, version: int | None = None):
        self.version = version
        if version is not None:
            super().__init__(f"Checkpoint version not found: {version}")
        else:
            super().__init__("Checkpoint not found")


class ItemNotFoundError(TimelineError):
    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Timeline item with ID {item_id} not found")


class TrackNotFoundError(TimelineError):
    def __init__(self, track_id: str):
        self.track_id = track_id
        super().__init__(f"Track {track_id} not found")


class AssetNotFoundError(TimelineError):
    def __init__(self, asset_id: str, reason: str | None = None):
        self.asset_id = asset_id
        super().__init__(reason or f"Asset with ID {asset_id} not found")


class VersionConflictError(TimelineError):
    """
    Raised when optimistic locking fails.

    This occurs when the expected_version doesn't match the current_version,
    indicating that another editor modified the timeline in between.
    """
    def __init__(self, expected_version: int, current_version: int):
        self.expected_version = expected_version
        self.current_version = current_version
        super().__init__(
            f"Version conflict: expected {expected_version}, "
            f"but current version is {current_version}. "
            f"Please refresh and retry."
        )


class InvalidOperationError(TimelineError):
    """Raised when an operation fails validation (nothing is mutated)."""
    pass


class OverlayBoundsError(InvalidOperationError):
    """Raised when an overlay would extend past the canvas frame."""
    pass


class DuplicateAssignmentError(InvalidOperationError):
    """Raised when a reorder names the same item more than once."""
    def __init__(self, item_ids: list[str]):
        self.item_ids = item_ids
        super().__init__(
            f"Each item may be assigned only once; duplicated: {', '.join(item_ids)}"
        )


class TrackConflictError(TimelineError):
    """Raised when a move or placement would overlap items on a track."""
    def __init__(self, track_id: str, conflicting_ids: list[str], message: str | None = None):
        self.track_id = track_id
        self.conflicting_ids = conflicting_ids
        super().__init__(
            message
            or f"Cannot move to track {track_id}: time conflict detected "
            f"with {', '.join(conflicting_ids)}"
        )


class TimelineStoreError(TimelineError):
    """Raised when the persistence layer fails; the caller may retry."""
    pass


# =============================================================================
# CREATE OPERATIONS
# =============================================================================


def create_timeline(
    db: DBSession,
    project_id: UUID,
    initial: TimelineData | None = None,
    created_by: str = "system",
) -> TimelineModel:
    """
    Create a new timeline for a project with an initial checkpoint.

    Args:
        db: Database session
        project_id: Project UUID (must be unique per timeline)
        initial: Starting content (defaults to the video/audio skeleton)
        created_by: Actor identifier (e.g., "user", "agent:timeline_tools")

    Returns:
        The created Timeline database model

    Raises:
        TimelineError: If a timeline already exists for this project
        TimelineStoreError: If the database write fails
    """
    existing = get_timeline_by_project(db, project_id)
    if existing:
        raise TimelineError(f"Timeline already exists for project {project_id}")

    snapshot = initial if initial is not None else TimelineData.create_empty()
    snapshot.recompute_duration()

    try:
        timeline = TimelineModel(project_id=project_id, current_version=0)
        db.add(timeline)
        db.flush()  # Get the timeline_id

        checkpoint = TimelineCheckpointModel(
            timeline_id=timeline.timeline_id,
            version=0,
            parent_version=None,
            snapshot=snapshot.to_wire(),
            description="Initial timeline",
            created_by=created_by,
        )
        db.add(checkpoint)
        db.flush()

        db.add(TimelineOperationModel(
            checkpoint_id=checkpoint.checkpoint_id,
            operation_type="create_timeline",
            operation_data={"tracks": [t.id for t in snapshot.tracks]},
        ))

        db.commit()
        db.refresh(timeline)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to create timeline for project {project_id}: {e}")
        raise TimelineStoreError(f"Could not create timeline: {e}") from e

    logger.info(f"Created timeline {timeline.timeline_id} for project {project_id}")
    return timeline


# =============================================================================
# READ OPERATIONS
# =============================================================================


def get_timeline(db: DBSession, timeline_id: UUID) -> TimelineModel | None:
    """
    Get timeline metadata by ID.

    Note: This returns the database model, not the snapshot.
    Use get_timeline_snapshot() to get the actual timeline content.
    """
    return db.query(TimelineModel).filter(
        TimelineModel.timeline_id == timeline_id
    ).first()


def get_timeline_by_project(db: DBSession, project_id: UUID) -> TimelineModel | None:
    """Get timeline for a project."""
    return db.query(TimelineModel).filter(
        TimelineModel.project_id == project_id
    ).first()


def get_or_create_timeline(
    db: DBSession,
    project_id: UUID,
    created_by: str = "system",
) -> TimelineModel:
    """Absent timelines start as the default skeleton at version 0."""
    timeline = get_timeline_by_project(db, project_id)
    if timeline is None:
        timeline = create_timeline(db, project_id, created_by=created_by)
    return timeline


def get_timeline_snapshot(
    db: DBSession,
    timeline_id: UUID,
    version: int | None = None,
) -> TimelineWithVersion:
    """
    Get the timeline snapshot at a specific version (or latest).

    Raises:
        TimelineNotFoundError: If timeline doesn't exist
        CheckpointNotFoundError: If specified version doesn't exist
    """
    timeline = get_timeline(db, timeline_id)
    if not timeline:
        raise TimelineNotFoundError(timeline_id=timeline_id)

    target_version = version if version is not None else timeline.current_version

    checkpoint = get_checkpoint_by_version(db, timeline_id, target_version)
    if not checkpoint:
        raise CheckpointNotFoundError(version=target_version)

    return TimelineWithVersion(
        timeline=TimelineData.model_validate(checkpoint.snapshot),
        version=checkpoint.version,
        checkpoint_id=checkpoint.checkpoint_id,
    )


def get_timeline_snapshot_by_project(
    db: DBSession,
    project_id: UUID,
    version: int | None = None,
) -> TimelineWithVersion:
    """
    Get timeline snapshot for a project.

    A project without a stored timeline reads as the default skeleton at
    version 0; nothing is written until the first mutation.
    """
    timeline = get_timeline_by_project(db, project_id)
    if not timeline:
        if version not in (None, 0):
            raise CheckpointNotFoundError(version=version)
        return TimelineWithVersion(timeline=TimelineData.create_empty(), version=0)

    return get_timeline_snapshot(db, timeline.timeline_id, version)


def get_checkpoint_by_version(
    db: DBSession,
    timeline_id: UUID,
    version: int,
) -> TimelineCheckpointModel | None:
    """Get a checkpoint by timeline and version number."""
    return db.query(TimelineCheckpointModel).filter(
        TimelineCheckpointModel.timeline_id == timeline_id,
        TimelineCheckpointModel.version == version,
    ).first()


def list_checkpoints(
    db: DBSession,
    timeline_id: UUID,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[CheckpointSummary], int]:
    """
    List checkpoint history for a timeline, newest first.

    Returns:
        Tuple of (list of CheckpointSummary, total count)
    """
    query = db.query(TimelineCheckpointModel).filter(
        TimelineCheckpointModel.timeline_id == timeline_id
    )

    total = query.count()

    checkpoints = query.order_by(
        TimelineCheckpointModel.version.desc()
    ).offset(offset).limit(limit).all()

    return [checkpoint_to_summary(cp) for cp in checkpoints], total


def checkpoint_to_summary(checkpoint: TimelineCheckpointModel) -> CheckpointSummary:
    """Convert checkpoint model to summary."""
    return CheckpointSummary(
        checkpoint_id=checkpoint.checkpoint_id,
        version=checkpoint.version,
        parent_version=checkpoint.parent_version,
        description=checkpoint.description,
        created_by=checkpoint.created_by,
        created_at=checkpoint.created_at.isoformat(),
    )


def get_asset_reference(
    db: DBSession,
    project_id: UUID,
    asset_id: str,
) -> AssetReference:
    """
    Load a project asset as an AssetReference.

    Raises:
        AssetNotFoundError: If the asset doesn't exist or belongs to another project
    """
    try:
        asset_uuid = UUID(str(asset_id))
    except ValueError:
        raise AssetNotFoundError(asset_id)

    asset = db.query(AssetsModel).filter(AssetsModel.asset_id == asset_uuid).first()
    if not asset:
        raise AssetNotFoundError(asset_id)
    if asset.project_id != project_id:
        raise AssetNotFoundError(asset_id, "Asset does not belong to this project")

    try:
        kind = AssetKind(asset.asset_type)
    except ValueError:
        kind = AssetKind.OTHER

    return AssetReference(
        id=str(asset.asset_id),
        kind=kind,
        name=asset.asset_name,
        url=asset.asset_url,
        metadata=MediaMetadata.model_validate(asset.asset_metadata or {}),
    )


# =============================================================================
# CHECKPOINT CREATION (with optimistic locking)
# =============================================================================


def create_checkpoint(
    db: DBSession,
    timeline_id: UUID,
    snapshot: TimelineData,
    description: str,
    created_by: str,
    operation_type: str,
    operation_data: dict[str, Any],
    expected_version: int | None = None,
) -> TimelineCheckpointModel:
    """
    Create a new checkpoint, optionally with optimistic locking.

    This is the core function for all timeline mutations. It:
    1. Verifies expected_version matches current_version when one is given
    2. Recomputes the snapshot duration
    3. Creates a new checkpoint with version = current_version + 1
    4. Logs the operation

    Raises:
        TimelineNotFoundError: If timeline doesn't exist
        VersionConflictError: If expected_version doesn't match current_version
        TimelineStoreError: If the database write fails
    """
    timeline = db.query(TimelineModel).filter(
        TimelineModel.timeline_id == timeline_id
    ).with_for_update().first()

    if not timeline:
        raise TimelineNotFoundError(timeline_id=timeline_id)

    if expected_version is not None and timeline.current_version != expected_version:
        raise VersionConflictError(
            expected_version=expected_version,
            current_version=timeline.current_version,
        )

    snapshot.recompute_duration()
    new_version = timeline.current_version + 1

    try:
        checkpoint = TimelineCheckpointModel(
            timeline_id=timeline_id,
            version=new_version,
            parent_version=timeline.current_version,
            snapshot=snapshot.to_wire(),
            description=description,
            created_by=created_by,
        )
        db.add(checkpoint)
        db.flush()  # Get checkpoint_id

        db.add(TimelineOperationModel(
            checkpoint_id=checkpoint.checkpoint_id,
            operation_type=operation_type,
            operation_data=operation_data,
        ))

        timeline.current_version = new_version

        db.commit()
        db.refresh(checkpoint)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to write {operation_type} checkpoint for timeline {timeline_id}: {e}")
        raise TimelineStoreError(f"Could not save timeline change: {e}") from e

    logger.info(
        f"Timeline {timeline_id} v{new_version} ({operation_type}) by {created_by}: {description}"
    )
    return checkpoint


# =============================================================================
# ROLLBACK
# =============================================================================


def rollback_to_version(
    db: DBSession,
    timeline_id: UUID,
    target_version: int,
    rollback_by: str,
    expected_version: int | None = None,
) -> TimelineCheckpointModel:
    """
    Rollback to a previous version by creating a new checkpoint.

    This doesn't delete history - it creates a new checkpoint that
    contains the snapshot from the target version.

    Raises:
        CheckpointNotFoundError: If target_version doesn't exist
        VersionConflictError: If expected_version doesn't match
    """
    target_checkpoint = get_checkpoint_by_version(db, timeline_id, target_version)
    if not target_checkpoint:
        raise CheckpointNotFoundError(version=target_version)

    target_snapshot = TimelineData.model_validate(target_checkpoint.snapshot)

    return create_checkpoint(
        db=db,
        timeline_id=timeline_id,
        snapshot=target_snapshot,
        description=f"Rolled back to version {target_version}",
        created_by=rollback_by,
        expected_version=expected_version,
        operation_type="rollback",
        operation_data={"target_version": target_version},
    )
