"""create users, job_types and job_sessions

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("first_name", sa.String(), nullable=True),
        sa.Column("last_name", sa.String(), nullable=True),
        sa.Column("profile_image_url", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "job_types",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index(op.f("ix_job_types_id"), "job_types", ["id"], unique=False)

    op.create_table(
        "job_sessions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("job_type_id", sa.Integer(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("earnings", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("expenses", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["job_type_id"], ["job_types.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_job_sessions_id"), "job_sessions", ["id"], unique=False)
    op.create_index(op.f("ix_job_sessions_user_id"), "job_sessions", ["user_id"], unique=False)
    op.create_index(op.f("ix_job_sessions_created_at"), "job_sessions", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_job_sessions_created_at"), table_name="job_sessions")
    op.drop_index(op.f("ix_job_sessions_user_id"), table_name="job_sessions")
    op.drop_index(op.f("ix_job_sessions_id"), table_name="job_sessions")
    op.drop_table("job_sessions")
    op.drop_index(op.f("ix_job_types_id"), table_name="job_types")
    op.drop_table("job_types")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
