"""Initial lead sync schema.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa

revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Campaign
    op.create_table(
        "campaign",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("platform", sa.String(20), nullable=False, server_default="facebook"),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("objective", sa.String(100)),
        sa.Column("start_date", sa.DateTime(timezone=True)),
        sa.Column("end_date", sa.DateTime(timezone=True)),
        sa.Column("budget", sa.Float, nullable=False, server_default="0"),
        sa.Column("provider", sa.String(20), nullable=False, server_default="none"),
        sa.Column("external_id", sa.String(100), unique=True),
        sa.Column("ad_account_id", sa.String(100)),
        sa.Column("last_sync_at", sa.DateTime(timezone=True)),
        sa.Column("impressions", sa.Integer, nullable=False, server_default="0"),
        sa.Column("clicks", sa.Integer, nullable=False, server_default="0"),
        sa.Column("spend", sa.Float, nullable=False, server_default="0"),
        sa.Column("leads", sa.Integer, nullable=False, server_default="0"),
        sa.Column("ctr", sa.Float, nullable=False, server_default="0"),
        sa.Column("cpc", sa.Float, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_campaign_ad_account_id", "campaign", ["ad_account_id"])

    # Campaign roster
    op.create_table(
        "campaign_caller",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("campaign_id", sa.Uuid, sa.ForeignKey("campaign.id", ondelete="CASCADE"), nullable=False),
        sa.Column("operator_id", sa.String(100), nullable=False),
        sa.Column("percentage", sa.Float, nullable=False, server_default="0"),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
    )
    op.create_index("ix_campaign_caller_campaign_id", "campaign_caller", ["campaign_id"])

    # Lead
    op.create_table(
        "lead",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("legacy_id", sa.String(100), nullable=False, unique=True),
        sa.Column("external_lead_id", sa.String(100), unique=True),
        sa.Column("platform", sa.String(20), nullable=False, server_default=""),
        sa.Column("source", sa.String(50), nullable=False, server_default=""),
        sa.Column("form_id", sa.String(100)),
        sa.Column("ad_id", sa.String(100)),
        sa.Column("adset_id", sa.String(100)),
        sa.Column("campaign_id", sa.String(100)),
        sa.Column("ad_creative_id", sa.String(100)),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("fields", sa.JSON, nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="new"),
        sa.Column("assigned_operator_id", sa.String(100)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_lead_form_id", "lead", ["form_id"])
    op.create_index("ix_lead_status", "lead", ["status"])
    op.create_index("ix_lead_assigned_operator_id", "lead", ["assigned_operator_id"])
    op.create_index("ix_lead_campaign_submitted", "lead", ["campaign_id", "submitted_at"])
    op.create_index("ix_lead_platform_submitted", "lead", ["platform", "submitted_at"])


def downgrade() -> None:
    op.drop_table("lead")
    op.drop_table("campaign_caller")
    op.drop_table("campaign")
