"""create search job tables

Revision ID: 4f1c2a9d7e3b
Revises:
Create Date: 2026-10-19 10:12:31.408271

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "4f1c2a9d7e3b"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _lifecycle_columns() -> list[sa.Column]:
    return [
        sa.Column("origin", sa.String(length=10), nullable=False, server_default="web"),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="queued"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("time_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("time_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("progress", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("matches", sa.Integer(), nullable=False, server_default="0"),
    ]


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("time_created", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("time_modified", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "advreplace_searches",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("name", sa.String(length=32), nullable=False, server_default=""),
        sa.Column("search", sa.Text(), nullable=False),
        sa.Column("regex", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("prematch", sa.Text(), nullable=False, server_default=""),
        sa.Column("tables", sa.Text(), nullable=False, server_default=""),
        sa.Column("skip_tables", sa.Text(), nullable=False, server_default=""),
        sa.Column("skip_columns", sa.Text(), nullable=False, server_default=""),
        sa.Column("summary", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_lifecycle_columns(),
        *_timestamps(),
    )
    op.create_index("ix_advreplace_searches_status", "advreplace_searches", ["status"])

    op.create_table(
        "advreplace_file_searches",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("name", sa.String(length=32), nullable=False, server_default=""),
        sa.Column("pattern", sa.Text(), nullable=False),
        sa.Column("components", sa.Text(), nullable=False, server_default=""),
        sa.Column("skip_components", sa.Text(), nullable=False, server_default=""),
        sa.Column("mimetypes", sa.Text(), nullable=False, server_default=""),
        sa.Column("skip_mimetypes", sa.Text(), nullable=False, server_default=""),
        sa.Column("filenames", sa.Text(), nullable=False, server_default=""),
        sa.Column("skip_filenames", sa.Text(), nullable=False, server_default=""),
        sa.Column("skip_areas", sa.Text(), nullable=False, server_default=""),
        sa.Column("open_zips", sa.Boolean(), nullable=True),
        sa.Column("zip_filenames", sa.Text(), nullable=False, server_default=""),
        sa.Column("skip_zip_filenames", sa.Text(), nullable=False, server_default=""),
        sa.Column("zip_mimetypes", sa.Text(), nullable=False, server_default=""),
        sa.Column("skip_zip_mimetypes", sa.Text(), nullable=False, server_default=""),
        *_lifecycle_columns(),
        sa.Column("skipped_containers", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_advreplace_file_searches_status", "advreplace_file_searches", ["status"])


def downgrade() -> None:
    op.drop_index("ix_advreplace_file_searches_status", table_name="advreplace_file_searches")
    op.drop_table("advreplace_file_searches")
    op.drop_index("ix_advreplace_searches_status", table_name="advreplace_searches")
    op.drop_table("advreplace_searches")
