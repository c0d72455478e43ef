"""create_timeline_tables

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "1a2b3c4d5e6f"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "projects",
        sa.Column("project_id", sa.UUID(), nullable=False),
        sa.Column("project_name", sa.String(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.PrimaryKeyConstraint("project_id"),
    )
    op.create_index("ix_projects_project_id", "projects", ["project_id"], unique=True)

    op.create_table(
        "assets",
        sa.Column("asset_id", sa.UUID(), nullable=False),
        sa.Column("project_id", sa.UUID(), nullable=False),
        sa.Column("asset_name", sa.String(), nullable=False),
        sa.Column("asset_type", sa.String(), nullable=False),
        sa.Column("asset_url", sa.String(), nullable=False),
        sa.Column(
            "asset_metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=False
        ),
        sa.Column(
            "uploaded_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.ForeignKeyConstraint(
            ["project_id"], ["projects.project_id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("asset_id"),
    )
    op.create_index("ix_assets_asset_id", "assets", ["asset_id"], unique=True)
    op.create_index("ix_assets_project_id", "assets", ["project_id"])

    op.create_table(
        "timelines",
        sa.Column("timeline_id", sa.UUID(), nullable=False),
        sa.Column("project_id", sa.UUID(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column("current_version", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["project_id"], ["projects.project_id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("timeline_id"),
        sa.UniqueConstraint("project_id"),
    )
    op.create_index("ix_timelines_timeline_id", "timelines", ["timeline_id"], unique=True)

    op.create_table(
        "timeline_checkpoints",
        sa.Column("checkpoint_id", sa.UUID(), nullable=False),
        sa.Column("timeline_id", sa.UUID(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("parent_version", sa.Integer(), nullable=True),
        sa.Column("snapshot", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.ForeignKeyConstraint(
            ["timeline_id"], ["timelines.timeline_id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("checkpoint_id"),
    )
    op.create_index(
        "ix_timeline_checkpoints_checkpoint_id",
        "timeline_checkpoints",
        ["checkpoint_id"],
        unique=True,
    )
    op.create_index(
        "ix_timeline_checkpoints_timeline_version",
        "timeline_checkpoints",
        ["timeline_id", "version"],
        unique=True,
    )
    op.create_index(
        "ix_timeline_checkpoints_created_at", "timeline_checkpoints", ["created_at"]
    )

    op.create_table(
        "timeline_operations",
        sa.Column("operation_id", sa.UUID(), nullable=False),
        sa.Column("checkpoint_id", sa.UUID(), nullable=False),
        sa.Column("operation_type", sa.String(), nullable=False),
        sa.Column(
            "operation_data", postgresql.JSONB(astext_type=sa.Text()), nullable=False
        ),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.ForeignKeyConstraint(
            ["checkpoint_id"],
            ["timeline_checkpoints.checkpoint_id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("operation_id"),
    )
    op.create_index(
        "ix_timeline_operations_operation_id",
        "timeline_operations",
        ["operation_id"],
        unique=True,
    )
    op.create_index(
        "ix_timeline_operations_checkpoint_id", "timeline_operations", ["checkpoint_id"]
    )
    op.create_index(
        "ix_timeline_operations_operation_type", "timeline_operations", ["operation_type"]
    )


def downgrade() -> None:
    op.drop_table("timeline_operations")
    op.drop_table("timeline_checkpoints")
    op.drop_table("timelines")
    op.drop_table("assets")
    op.drop_table("projects")
