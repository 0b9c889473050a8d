"""init

Revision ID: 3c9e1f4a7b20
Revises: 
Create Date: 2026-10-17 09:12:41.381022

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c9e1f4a7b20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "authority_master",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.UniqueConstraint("name", name="uq_authority_master_name"),
    )

    op.create_table(
        "account_master",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("username", sa.String(length=50), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("authority_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["authority_id"], ["authority_master.id"]),
    )
    op.create_index("ix_account_master_username", "account_master", ["username"], unique=True)

    op.create_table(
        "category_master",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.UniqueConstraint("name", name="uq_category_master_name"),
    )

    op.create_table(
        "format_master",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.UniqueConstraint("name", name="uq_format_master_name"),
    )

    op.create_table(
        "book",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("title", sa.String(length=50), nullable=False),
        sa.Column("isbn", sa.String(length=20), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("format_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["category_id"], ["category_master.id"]),
        sa.ForeignKeyConstraint(["format_id"], ["format_master.id"]),
    )
    op.create_index("ix_book_title", "book", ["title"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_book_title", table_name="book")
    op.drop_table("book")
    op.drop_table("format_master")
    op.drop_table("category_master")
    op.drop_index("ix_account_master_username", table_name="account_master")
    op.drop_table("account_master")
    op.drop_table("authority_master")
