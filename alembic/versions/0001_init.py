"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  op.create_table(
    "users",
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("password_hash", sa.String(), nullable=True),
    sa.Column("provider", sa.String(), nullable=False, server_default="local"),
    sa.Column("provider_id", sa.String(), nullable=True),
    sa.Column("avatar_url", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_users_email", "users", ["email"], unique=True)

  op.create_table(
    "tasks",
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("owner_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=False, server_default=""),
    sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
    sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_tasks_owner_id", "tasks", ["owner_id"], unique=False)

  op.create_table(
    "attachments",
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("task_id", sa.String(length=36), sa.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False),
    sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("url", sa.String(), nullable=False),
    sa.Column("mime", sa.String(), nullable=True),
    sa.Column("size_bytes", sa.Integer(), nullable=True),
  )
  op.create_index("ix_attachments_task_id", "attachments", ["task_id"], unique=False)

  op.create_table(
    "audit_events",
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("actor_id", sa.String(length=36), nullable=True),
    sa.Column("event_type", sa.String(), nullable=False),
    sa.Column("entity_type", sa.String(), nullable=False),
    sa.Column("entity_id", sa.String(length=36), nullable=True),
    sa.Column("payload", sa.JSON(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_audit_events_actor_id", "audit_events", ["actor_id"], unique=False)


def downgrade() -> None:
  op.drop_table("audit_events")
  op.drop_table("attachments")
  op.drop_table("tasks")
  op.drop_table("users")
