"""Initial schema — hierarchy with cached snapshots, assessments, catalog, baselines.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _snapshot_columns() -> list[sa.Column]:
    return [
        sa.Column("cached_compliance_score", sa.Integer, nullable=False, server_default="0"),
        sa.Column("cached_total_assessments", sa.Integer, nullable=False, server_default="0"),
        sa.Column("cached_compliant_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("cached_partial_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("cached_non_compliant_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("cached_not_assessed_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("score_last_computed_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Capability centres
    op.create_table(
        "capability_centres",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        *_snapshot_columns(),
        *_timestamps(),
    )

    # Frameworks
    op.create_table(
        "frameworks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column(
            "capability_centre_id",
            sa.String(36),
            sa.ForeignKey("capability_centres.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_snapshot_columns(),
        *_timestamps(),
    )
    op.create_index("ix_frameworks_capability_centre_id", "frameworks", ["capability_centre_id"])

    # Products
    op.create_table(
        "products",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("criticality", sa.String(20), nullable=True, server_default="MEDIUM"),
        sa.Column(
            "framework_id",
            sa.String(36),
            sa.ForeignKey("frameworks.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_snapshot_columns(),
        *_timestamps(),
    )
    op.create_index("ix_products_framework_id", "products", ["framework_id"])

    # Systems
    op.create_table(
        "systems",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("criticality", sa.String(20), nullable=True, server_default="MEDIUM"),
        sa.Column(
            "product_id",
            sa.String(36),
            sa.ForeignKey("products.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_snapshot_columns(),
        *_timestamps(),
    )
    op.create_index("ix_systems_product_id", "systems", ["product_id"])

    # Assessments
    op.create_table(
        "compliance_assessments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "system_id",
            sa.String(36),
            sa.ForeignKey("systems.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("control_id", sa.String(20), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="NOT_ASSESSED"),
        sa.Column("details", sa.Text, nullable=True),
        sa.Column("assessor", sa.String(255), nullable=True),
        sa.Column("assessed_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("system_id", "control_id", name="uq_assessment_system_control"),
    )
    op.create_index("ix_compliance_assessments_system_id", "compliance_assessments", ["system_id"])

    # Control catalog
    op.create_table(
        "csf_controls",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("control_id", sa.String(20), nullable=False),
        sa.Column("function_code", sa.String(2), nullable=False),
        sa.Column("category_code", sa.String(10), nullable=True),
        sa.Column("title", sa.String(500), nullable=True),
        sa.Column("text", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_csf_controls_control_id", "csf_controls", ["control_id"], unique=True)

    # Product baselines
    op.create_table(
        "csf_baselines",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "product_id",
            sa.String(36),
            sa.ForeignKey("products.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("control_id", sa.String(20), nullable=False),
        sa.Column("applicable", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("category_level", sa.String(20), nullable=False, server_default="SHOULD_HAVE"),
        sa.Column("justification", sa.Text, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("product_id", "control_id", name="uq_baseline_product_control"),
    )
    op.create_index("ix_csf_baselines_product_id", "csf_baselines", ["product_id"])


def downgrade() -> None:
    op.drop_table("csf_baselines")
    op.drop_table("csf_controls")
    op.drop_table("compliance_assessments")
    op.drop_table("systems")
    op.drop_table("products")
    op.drop_table("frameworks")
    op.drop_table("capability_centres")
