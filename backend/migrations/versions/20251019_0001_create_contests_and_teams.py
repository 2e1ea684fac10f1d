from __future__ import annotations
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "20251019_0001"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "problems",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("difficulty", sa.String(length=16), nullable=False, server_default="easy"),
        sa.Column("category", sa.String(length=64), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_problems"),
    )

    op.create_table(
        "contests",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(length=16), nullable=False, server_default="individual"),
        sa.Column("starts_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("ends_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_contests"),
        sa.CheckConstraint("starts_at < ends_at", name="ck_contests_window_order"),
        sa.CheckConstraint("type IN ('individual', 'team')", name="ck_contests_type_known"),
    )

    op.create_table(
        "contest_problems",
        sa.Column("contest_id", sa.Uuid(), sa.ForeignKey("contests.id", ondelete="CASCADE"), nullable=False),
        sa.Column("problem_id", sa.Uuid(), sa.ForeignKey("problems.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("contest_id", "problem_id", name="pk_contest_problems"),
    )

    op.create_table(
        "contest_participants",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("contest_id", sa.Uuid(), sa.ForeignKey("contests.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("user_name", sa.String(length=120), nullable=False),
        sa.Column("user_email", sa.String(length=320), nullable=True),
        sa.Column("type", sa.String(length=16), nullable=False, server_default="individual"),
        sa.Column("joined_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_contest_participants"),
        sa.UniqueConstraint("contest_id", "user_id", name="uq_contest_participants_contest_user"),
    )
    op.create_index("ix_contest_participants_contest_id", "contest_participants", ["contest_id"])
    op.create_index("ix_contest_participants_user_id", "contest_participants", ["user_id"])

    op.create_table(
        "teams",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("contest_id", sa.Uuid(), sa.ForeignKey("contests.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=80), nullable=False),
        sa.Column("code", sa.String(length=12), nullable=False),
        sa.Column("created_by", sa.String(length=128), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="waiting"),
        sa.Column("ready_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("started_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_teams"),
        sa.CheckConstraint("status IN ('waiting', 'started', 'completed')", name="ck_teams_status_known"),
    )
    op.create_index("ix_teams_code", "teams", ["code"], unique=True)
    op.create_index("ix_teams_contest_id", "teams", ["contest_id"])

    op.create_table(
        "team_members",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("team_id", sa.Uuid(), sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("contest_id", sa.Uuid(), sa.ForeignKey("contests.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("user_name", sa.String(length=120), nullable=False),
        sa.Column("user_image", sa.String(length=500), nullable=True),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="member"),
        sa.Column("ready", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("joined_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_team_members"),
        sa.UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),
        # One team per user per contest
        sa.UniqueConstraint("contest_id", "user_id", name="uq_team_members_contest_user"),
        sa.CheckConstraint("role IN ('leader', 'member')", name="ck_team_members_role_known"),
    )
    op.create_index("ix_team_members_team_id", "team_members", ["team_id"])
    op.create_index("ix_team_members_user_id", "team_members", ["user_id"])
    op.execute("""
        CREATE UNIQUE INDEX uq_team_members_one_leader
        ON team_members (team_id) WHERE role = 'leader'
    """)

def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS uq_team_members_one_leader")
    op.drop_index("ix_team_members_user_id", table_name="team_members")
    op.drop_index("ix_team_members_team_id", table_name="team_members")
    op.drop_table("team_members")
    op.drop_index("ix_teams_contest_id", table_name="teams")
    op.drop_index("ix_teams_code", table_name="teams")
    op.drop_table("teams")
    op.drop_index("ix_contest_participants_user_id", table_name="contest_participants")
    op.drop_index("ix_contest_participants_contest_id", table_name="contest_participants")
    op.drop_table("contest_participants")
    op.drop_table("contest_problems")
    op.drop_table("contests")
    op.drop_table("problems")
