"""create_permission_tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-18

Creates the read-only user directory and service catalog tables, plus the
job_permissions (grants) and user_permissions (manual exceptions) tables.
"""

import sqlalchemy as sa

from alembic import op

# revision identifiers
revision = "a1b2c3d4e5f6"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("is_super_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("job_id", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_job_id", "users", ["job_id"], unique=False)

    op.create_table(
        "services",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "sub_services",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("service_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sub_services_service_id", "sub_services", ["service_id"], unique=False)
    op.create_table(
        "sub_sub_services",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("sub_service_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sub_sub_services_sub_service_id", "sub_sub_services", ["sub_service_id"], unique=False)

    op.create_table(
        "job_permissions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("job_id", sa.Integer(), nullable=False),
        sa.Column("service_id", sa.Integer(), nullable=True),
        sa.Column("sub_service_id", sa.Integer(), nullable=True),
        sa.Column("sub_sub_service_id", sa.Integer(), nullable=True),
        sa.Column("created_by", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_job_permissions_id", "job_permissions", ["id"], unique=False)
    op.create_index("ix_job_permissions_job_id", "job_permissions", ["job_id"], unique=False)
    op.create_index(
        "ix_job_perm_tuple",
        "job_permissions",
        ["job_id", "service_id", "sub_service_id", "sub_sub_service_id"],
        unique=False,
    )

    op.create_table(
        "user_permissions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("service_id", sa.Integer(), nullable=True),
        sa.Column("sub_service_id", sa.Integer(), nullable=True),
        sa.Column("sub_sub_service_id", sa.Integer(), nullable=True),
        sa.Column("is_allowed", sa.Boolean(), nullable=False),
        sa.Column("is_manual_exception", sa.Boolean(), nullable=False),
        sa.Column("created_by", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_permissions_id", "user_permissions", ["id"], unique=False)
    op.create_index("ix_user_permissions_user_id", "user_permissions", ["user_id"], unique=False)
    op.create_index(
        "ix_user_perm_tuple",
        "user_permissions",
        ["user_id", "service_id", "sub_service_id", "sub_sub_service_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_user_perm_tuple", table_name="user_permissions")
    op.drop_index("ix_user_permissions_user_id", table_name="user_permissions")
    op.drop_index("ix_user_permissions_id", table_name="user_permissions")
    op.drop_table("user_permissions")
    op.drop_index("ix_job_perm_tuple", table_name="job_permissions")
    op.drop_index("ix_job_permissions_job_id", table_name="job_permissions")
    op.drop_index("ix_job_permissions_id", table_name="job_permissions")
    op.drop_table("job_permissions")
    op.drop_index("ix_sub_sub_services_sub_service_id", table_name="sub_sub_services")
    op.drop_table("sub_sub_services")
    op.drop_index("ix_sub_services_service_id", table_name="sub_services")
    op.drop_table("sub_services")
    op.drop_table("services")
    op.drop_index("ix_users_job_id", table_name="users")
    op.drop_table("users")
