"""crew_skills_initial

Creates the crew skills schema:
  - members / roles / permissions / role_permissions / member_roles  (RBAC)
  - skills / skill_levels                                            (catalogue + level policy)
  - member_skills                                                    (skill ledger)
  - skill_proposals                                                  (proposal + award audit trail)
  - notifications / email_logs                                       (notification dispatch)

Tables created conditionally (IF NOT EXISTS semantics) to support idempotent
execution against databases that already received these tables via db.create_all()
in a development environment.

Revision ID: b7e1c2d3a4f5
Revises:
Create Date: 2026-10-18 09:12:40.118204
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = 'b7e1c2d3a4f5'
down_revision = None
branch_labels = None
depends_on = None

_PENDING = sa.text("awarded_level IS NULL")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── RBAC ──────────────────────────────────────────────────────────────
    if "members" not in existing:
        op.create_table(
            "members",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
        )

    if "roles" not in existing:
        op.create_table(
            "roles",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("label", sa.String(length=200), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )

    if "permissions" not in existing:
        op.create_table(
            "permissions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("codename", sa.String(length=100), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("codename"),
        )

    if "role_permissions" not in existing:
        op.create_table(
            "role_permissions",
            sa.Column("role_id", sa.Integer(), nullable=False),
            sa.Column("permission_id", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["permission_id"], ["permissions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("role_id", "permission_id"),
        )

    if "member_roles" not in existing:
        op.create_table(
            "member_roles",
            sa.Column("member_id", sa.Integer(), nullable=False),
            sa.Column("role_id", sa.Integer(), nullable=False),
            sa.Column("granted_by_id", sa.Integer(), nullable=True),
            sa.Column("granted_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["member_id"], ["members.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["granted_by_id"], ["members.id"]),
            sa.PrimaryKeyConstraint("member_id", "role_id"),
        )

    # ── Skills ────────────────────────────────────────────────────────────
    if "skills" not in existing:
        op.create_table(
            "skills",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("category", sa.String(length=100), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )
        op.create_index("ix_skills_category", "skills", ["category"])

    if "skill_levels" not in existing:
        op.create_table(
            "skill_levels",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("skill_id", sa.Integer(), nullable=False),
            sa.Column("level", sa.Integer(), nullable=False),
            sa.Column("requirements", sa.Text(), nullable=True,
                      comment="What a member must show to hold this level"),
            sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("capacity", sa.Integer(), nullable=True,
                      comment="Max concurrent holders; NULL = unlimited"),
            sa.Column("prerequisite_level", sa.Integer(), nullable=False, server_default="0"),
            sa.ForeignKeyConstraint(["skill_id"], ["skills.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("skill_id", "level", name="uq_skill_level"),
            sa.CheckConstraint("level BETWEEN 1 AND 3", name="ck_skill_level_range"),
            sa.CheckConstraint("capacity IS NULL OR capacity >= 0", name="ck_skill_level_capacity"),
        )
        op.create_index("ix_skill_levels_skill_id", "skill_levels", ["skill_id"])

    if "member_skills" not in existing:
        op.create_table(
            "member_skills",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("member_id", sa.Integer(), nullable=False),
            sa.Column("skill_id", sa.Integer(), nullable=False),
            sa.Column("level", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["member_id"], ["members.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["skill_id"], ["skills.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("member_id", "skill_id", name="uq_member_skill"),
            sa.CheckConstraint("level BETWEEN 0 AND 3", name="ck_member_skill_level"),
        )
        op.create_index("ix_member_skills_member_id", "member_skills", ["member_id"])
        op.create_index("ix_member_skills_skill_id", "member_skills", ["skill_id"])

    # ── Proposals ─────────────────────────────────────────────────────────
    if "skill_proposals" not in existing:
        op.create_table(
            "skill_proposals",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("skill_id", sa.Integer(), nullable=False),
            sa.Column("member_id", sa.Integer(), nullable=False),
            sa.Column("proposed_level", sa.Integer(), nullable=False),
            sa.Column("reasoning", sa.Text(), nullable=False),
            sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("awarded_level", sa.Integer(), nullable=True,
                      comment="0 = declined, 1..3 = awarded"),
            sa.Column("awarded_by_id", sa.Integer(), nullable=True),
            sa.Column("awarded_comment", sa.Text(), nullable=True),
            sa.Column("awarded_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["skill_id"], ["skills.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["member_id"], ["members.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["awarded_by_id"], ["members.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint("proposed_level BETWEEN 1 AND 3", name="ck_proposal_proposed_level"),
            sa.CheckConstraint(
                "awarded_level IS NULL OR awarded_level BETWEEN 0 AND 3",
                name="ck_proposal_awarded_level",
            ),
        )
        op.create_index("ix_skill_proposals_skill_id", "skill_proposals", ["skill_id"])
        op.create_index("ix_skill_proposals_member_id", "skill_proposals", ["member_id"])
        op.create_index("ix_skill_proposal_submitted", "skill_proposals", ["submitted_at"])
        op.create_index("ix_skill_proposal_awarded", "skill_proposals", ["awarded_at"])
        # At most one pending proposal per (member, skill)
        op.create_index(
            "uq_skill_proposal_pending",
            "skill_proposals",
            ["member_id", "skill_id"],
            unique=True,
            sqlite_where=_PENDING,
            postgresql_where=_PENDING,
        )

    # ── Notifications ─────────────────────────────────────────────────────
    if "notifications" not in existing:
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("recipient_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("category", sa.String(length=30), nullable=True),
            sa.Column("severity", sa.String(length=20), nullable=True),
            sa.Column("entity_type", sa.String(length=30), nullable=True),
            sa.Column("entity_id", sa.Integer(), nullable=True),
            sa.Column("is_read", sa.Boolean(), nullable=True),
            sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["recipient_id"], ["members.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])

    if "email_logs" not in existing:
        op.create_table(
            "email_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("recipient_email", sa.String(length=255), nullable=False),
            sa.Column("recipient_name", sa.String(length=150), nullable=True),
            sa.Column("subject", sa.String(length=500), nullable=False),
            sa.Column("template_name", sa.String(length=100), nullable=True),
            sa.Column("category", sa.String(length=30), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=True),
            sa.Column("error_message", sa.Text(), nullable=True),
            sa.Column("entity_type", sa.String(length=30), nullable=True),
            sa.Column("entity_id", sa.Integer(), nullable=True),
            sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_email_logs_recipient_email", "email_logs", ["recipient_email"])


def downgrade():
    for table in (
        "email_logs",
        "notifications",
        "skill_proposals",
        "member_skills",
        "skill_levels",
        "skills",
        "member_roles",
        "role_permissions",
        "permissions",
        "roles",
        "members",
    ):
        op.drop_table(table)
