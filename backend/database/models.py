from uuid import uuid4
from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from database.base import Base

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Project(Base):
    __tablename__ = "projects"

    project_id = Column(
        Uuid, unique=True, index=True, nullable=False, primary_key=True, default=uuid4
    )
    project_name = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self):
        return f"<Project project_id={self.project_id} project_name={self.project_name}>"


class Assets(Base):
    """Source media uploaded to or generated for a project."""

    __tablename__ = "assets"

    asset_id = Column(
        Uuid, unique=True, index=True, nullable=False, primary_key=True, default=uuid4
    )
    project_id = Column(
        Uuid, ForeignKey("projects.project_id", ondelete="CASCADE"), nullable=False
    )
    asset_name = Column(String, nullable=False)
    asset_type = Column(String, nullable=False)  # video, audio, image, text, other
    asset_url = Column(String, nullable=False)
    # duration, width, height, size, mimeType
    asset_metadata = Column(JSONType, nullable=False, default=dict)
    uploaded_at = Column(DateTime, nullable=False, server_default=func.now())

    __table_args__ = (Index("ix_assets_project_id", project_id),)

    def __repr__(self):
        return (
            f"<Assets asset_id={self.asset_id} asset_name={self.asset_name} "
            f"asset_type={self.asset_type}>"
        )


class Timeline(Base):
    """
    Timeline container - one per project.

    Stores the current version pointer. The actual timeline content is stored
    in TimelineCheckpoint snapshots.
    """

    __tablename__ = "timelines"

    timeline_id = Column(
        Uuid, unique=True, index=True, nullable=False, primary_key=True, default=uuid4
    )
    project_id = Column(
        Uuid,
        ForeignKey("projects.project_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,  # One timeline per project
    )
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )
    current_version = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return (
            f"<Timeline timeline_id={self.timeline_id} "
            f"project_id={self.project_id} "
            f"current_version={self.current_version}>"
        )


class TimelineCheckpoint(Base):
    """
    Versioned timeline snapshot.

    Each checkpoint stores the complete TimelineData in its wire format, which
    gives a full history of changes and rollback to any previous version.
    """

    __tablename__ = "timeline_checkpoints"

    checkpoint_id = Column(
        Uuid, unique=True, index=True, nullable=False, primary_key=True, default=uuid4
    )
    timeline_id = Column(
        Uuid,
        ForeignKey("timelines.timeline_id", ondelete="CASCADE"),
        nullable=False,
    )
    version = Column(Integer, nullable=False)
    parent_version = Column(Integer, nullable=True)
    snapshot = Column(JSONType, nullable=False)
    description = Column(String, nullable=False)  # Human-readable change description
    created_by = Column(String, nullable=False)  # "user", "agent:<name>", "system"
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        # One version number per timeline
        Index(
            "ix_timeline_checkpoints_timeline_version",
            timeline_id,
            version,
            unique=True,
        ),
        Index("ix_timeline_checkpoints_created_at", created_at),
    )

    def __repr__(self):
        return (
            f"<TimelineCheckpoint checkpoint_id={self.checkpoint_id} "
            f"timeline_id={self.timeline_id} version={self.version} "
            f"description={self.description[:50]}...>"
        )


class TimelineOperation(Base):
    """Audit log entry: the operation type and parameters behind a checkpoint."""

    __tablename__ = "timeline_operations"

    operation_id = Column(
        Uuid, unique=True, index=True, nullable=False, primary_key=True, default=uuid4
    )
    checkpoint_id = Column(
        Uuid,
        ForeignKey("timeline_checkpoints.checkpoint_id", ondelete="CASCADE"),
        nullable=False,
    )
    operation_type = Column(String, nullable=False)  # place_asset, reorder, ...
    operation_data = Column(JSONType, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_timeline_operations_checkpoint_id", checkpoint_id),
        Index("ix_timeline_operations_operation_type", operation_type),
    )
