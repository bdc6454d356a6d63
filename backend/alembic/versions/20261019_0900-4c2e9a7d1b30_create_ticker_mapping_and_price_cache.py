"""create_ticker_mapping_and_price_cache

Revision ID: 4c2e9a7d1b30
Revises:
Create Date: 2026-10-19 09:00:00.000000

Depot Quotes Database Migration
Creates the shared ticker directory and the durable per-ticker price cache.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4c2e9a7d1b30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create ticker_mapping and price_cache tables with indexes."""
    op.create_table(
        "ticker_mapping",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("symbol", sa.String(20), nullable=False),
        sa.Column("company_name", sa.String(255), nullable=False),
        sa.Column("isin", sa.String(12), nullable=True),
        sa.Column("sector", sa.String(100), nullable=True),
        sa.Column("industry", sa.String(150), nullable=True),
        sa.Column("description_static", sa.Text(), nullable=True),
        sa.Column("pe_ratio_static", sa.Numeric(12, 4), nullable=True),
        sa.Column("competitors", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_ticker_mapping_id", "ticker_mapping", ["id"])
    op.create_index("ix_ticker_mapping_symbol", "ticker_mapping", ["symbol"], unique=True)
    op.create_index("ix_ticker_mapping_company_name", "ticker_mapping", ["company_name"])
    op.create_index("ix_ticker_mapping_isin", "ticker_mapping", ["isin"], unique=True)
    op.create_index("ix_ticker_mapping_created_at", "ticker_mapping", ["created_at"])

    op.create_table(
        "price_cache",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "ticker_id",
            sa.Integer(),
            sa.ForeignKey("ticker_mapping.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("price", sa.Numeric(18, 6), nullable=True),
        sa.Column("last_updated", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_price_cache_id", "price_cache", ["id"])
    op.create_index("ix_price_cache_ticker_id", "price_cache", ["ticker_id"], unique=True)


def downgrade() -> None:
    """Drop price_cache and ticker_mapping tables."""
    op.drop_table("price_cache")
    op.drop_table("ticker_mapping")
