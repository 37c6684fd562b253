"""campaign_engine_baseline

Creates the campaign engine tables:
  - businesses, playbooks         — tenant chain
  - campaigns, content            — lifecycle unit + launch-gate content
  - tasks                         — work items with one optional prerequisite
  - escalations                   — severity-ordered issues per campaign
  - activity_log                  — append-only audit trail

Tables created conditionally (IF NOT EXISTS semantics) so the revision can
be stamped onto databases that already received them via db.create_all().

Revision ID: 3f1c9a2e7b40
Revises:
Create Date: 2026-10-19 09:12:41.551203
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '3f1c9a2e7b40'
down_revision = None
branch_labels = None
depends_on = None


def _ts(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade():
    bind = op.get_bind()
    existing = set(sa_inspect(bind).get_table_names())

    # ── Business / Playbook ───────────────────────────────────────────────
    if "businesses" not in existing:
        op.create_table(
            "businesses",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("slug", sa.String(length=100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("website_url", sa.String(length=500), nullable=True),
            sa.Column("brand_colors", sa.JSON(), nullable=True),
            sa.Column("settings", sa.JSON(), nullable=True),
            _ts("created_at"),
            _ts("updated_at", nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_businesses_slug", "businesses", ["slug"], unique=True)

    if "playbooks" not in existing:
        op.create_table(
            "playbooks",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("business_id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("version", sa.Integer(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=True,
                      comment="draft | active | archived"),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_playbooks_business_id", "playbooks", ["business_id"])

    # ── Campaign / Content ────────────────────────────────────────────────
    if "campaigns" not in existing:
        op.create_table(
            "campaigns",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("playbook_id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False),
            sa.Column("target_audience", sa.String(length=100), nullable=True),
            sa.Column("target_markets", sa.JSON(), nullable=True),
            sa.Column("channels", sa.JSON(), nullable=True),
            sa.Column("budget_daily", sa.Numeric(10, 2), nullable=True),
            sa.Column("budget_total", sa.Numeric(10, 2), nullable=True),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("end_date", sa.Date(), nullable=True),
            sa.Column("success_metrics", sa.JSON(), nullable=True),
            sa.Column("performance_thresholds", sa.JSON(), nullable=True),
            sa.Column("auto_optimize", sa.Boolean(), nullable=False,
                      server_default=sa.true()),
            _ts("approved_at", nullable=True),
            sa.Column("approved_by", sa.String(length=255), nullable=True),
            _ts("created_at"),
            _ts("updated_at", nullable=True),
            sa.ForeignKeyConstraint(["playbook_id"], ["playbooks.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_campaigns_playbook_id", "campaigns", ["playbook_id"])
        op.create_index("ix_campaigns_status", "campaigns", ["status"])

    if "content" not in existing:
        op.create_table(
            "content",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("campaign_id", sa.String(length=36), nullable=False),
            sa.Column("type", sa.String(length=20), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=True),
            sa.Column("headline", sa.String(length=255), nullable=True),
            sa.Column("body", sa.Text(), nullable=True),
            sa.Column("cta_text", sa.String(length=100), nullable=True),
            sa.Column("cta_url", sa.String(length=500), nullable=True),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_content_campaign_id", "content", ["campaign_id"])

    # ── Task ──────────────────────────────────────────────────────────────
    if "tasks" not in existing:
        op.create_table(
            "tasks",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("campaign_id", sa.String(length=36), nullable=False),
            sa.Column("assignee", sa.String(length=10), nullable=False, comment="human | system"),
            sa.Column("type", sa.String(length=100), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("instructions", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False),
            sa.Column("priority", sa.Integer(), nullable=False),
            sa.Column("depends_on_id", sa.String(length=36), nullable=True),
            sa.Column("due_date", sa.Date(), nullable=True),
            _ts("completed_at", nullable=True),
            sa.Column("completion_notes", sa.Text(), nullable=True),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["depends_on_id"], ["tasks.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_tasks_campaign_id", "tasks", ["campaign_id"])
        op.create_index("ix_tasks_depends_on_id", "tasks", ["depends_on_id"])
        op.create_index(
            "idx_tasks_campaign_assignee_status", "tasks",
            ["campaign_id", "assignee", "status"],
        )

    # ── Escalation ────────────────────────────────────────────────────────
    if "escalations" not in existing:
        op.create_table(
            "escalations",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("campaign_id", sa.String(length=36), nullable=False),
            sa.Column("type", sa.String(length=30), nullable=False),
            sa.Column("severity", sa.String(length=10), nullable=False,
                      comment="info | warning | critical"),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False),
            sa.Column("human_response", sa.Text(), nullable=True),
            _ts("resolved_at", nullable=True),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_escalations_campaign_id", "escalations", ["campaign_id"])
        op.create_index("ix_escalations_status", "escalations", ["status"])

    # ── ActivityLog ───────────────────────────────────────────────────────
    if "activity_log" not in existing:
        op.create_table(
            "activity_log",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("business_id", sa.String(length=36), nullable=False),
            sa.Column("campaign_id", sa.String(length=36), nullable=True),
            sa.Column("actor", sa.String(length=10), nullable=False, comment="human | system"),
            sa.Column("action", sa.String(length=100), nullable=False),
            sa.Column("entity_type", sa.String(length=30), nullable=False),
            sa.Column("entity_id", sa.String(length=36), nullable=False),
            sa.Column("details", sa.JSON(), nullable=True),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_activity_business", "activity_log", ["business_id"])
        op.create_index("idx_activity_campaign", "activity_log", ["campaign_id"])
        op.create_index("idx_activity_entity", "activity_log", ["entity_type", "entity_id"])
        op.create_index("idx_activity_created", "activity_log", ["created_at"])


def downgrade():
    for table in (
        "activity_log", "escalations", "tasks", "content",
        "campaigns", "playbooks", "businesses",
    ):
        op.drop_table(table)
