"""Initial schema: sectors, stocks, universe membership, snapshots, outliers.

Revision ID: 001_baseline
Revises: 
Create Date: 2026-01-01

Seed data (the 11 GICS sectors and the starter stocks) is inserted by
sectorview.database.seed at startup, not here.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_baseline"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables."""
    # ==========================================================================
    # TAXONOMY & UNIVERSE
    # ==========================================================================

    op.create_table(
        "sectors",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("symbol", sa.String(10), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_sectors"),
        sa.UniqueConstraint("symbol", name="uq_sectors_symbol"),
    )

    op.create_table(
        "stocks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("symbol", sa.String(20), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sector_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["sector_id"], ["sectors.id"], name="fk_stocks_sector_id_sectors"),
        sa.PrimaryKeyConstraint("id", name="pk_stocks"),
        sa.UniqueConstraint("symbol", name="uq_stocks_symbol"),
    )
    op.create_index("idx_stocks_sector", "stocks", ["sector_id"])

    op.create_table(
        "stock_universe_membership",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("stock_id", sa.Integer(), nullable=False),
        sa.Column("universe_type", sa.String(20), nullable=False),
        sa.Column("date_added", sa.Date(), nullable=False),
        sa.Column("date_removed", sa.Date(), nullable=True),
        sa.CheckConstraint(
            "universe_type IN ('sp500', 'russell2000')",
            name="ck_stock_universe_membership_universe_type_valid",
        ),
        sa.ForeignKeyConstraint(
            ["stock_id"], ["stocks.id"],
            name="fk_stock_universe_membership_stock_id_stocks",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_stock_universe_membership"),
    )
    op.create_index(
        "uq_membership_active",
        "stock_universe_membership",
        ["stock_id", "universe_type"],
        unique=True,
        sqlite_where=sa.text("date_removed IS NULL"),
        postgresql_where=sa.text("date_removed IS NULL"),
    )
    op.create_index(
        "idx_membership_universe_active",
        "stock_universe_membership",
        ["universe_type", "date_removed"],
    )

    # ==========================================================================
    # MARKET DATA
    # ==========================================================================

    op.create_table(
        "market_data_snapshots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("stock_id", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("price_change", sa.Float(), nullable=False),
        sa.Column("price_change_percent", sa.Float(), nullable=False),
        sa.Column("volume", sa.BigInteger(), nullable=True),
        sa.Column("avg_volume_10d", sa.BigInteger(), nullable=True),
        sa.Column("market_cap", sa.BigInteger(), nullable=True),
        sa.Column("pe_ratio", sa.Float(), nullable=True),
        sa.Column("pb_ratio", sa.Float(), nullable=True),
        sa.Column("eps", sa.Float(), nullable=True),
        sa.Column("dividend_yield", sa.Float(), nullable=True),
        sa.Column("beta", sa.Float(), nullable=True),
        sa.Column("week52_high", sa.Float(), nullable=True),
        sa.Column("week52_low", sa.Float(), nullable=True),
        sa.ForeignKeyConstraint(
            ["stock_id"], ["stocks.id"],
            name="fk_market_data_snapshots_stock_id_stocks",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_market_data_snapshots"),
    )
    op.create_index("idx_market_data_stock_timestamp", "market_data_snapshots", ["stock_id", "timestamp"])
    op.create_index("idx_market_data_timestamp", "market_data_snapshots", ["timestamp"])

    # ==========================================================================
    # OUTLIER DETECTION
    # ==========================================================================

    op.create_table(
        "outlier_detections",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("stock_id", sa.Integer(), nullable=False),
        sa.Column("sector_id", sa.Integer(), nullable=False),
        sa.Column("detection_date", sa.Date(), nullable=False),
        sa.Column("detection_timestamp", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("pe_z_score", sa.Float(), nullable=True),
        sa.Column("pb_z_score", sa.Float(), nullable=True),
        sa.Column("price_z_score", sa.Float(), nullable=False),
        sa.Column("volume_z_score", sa.Float(), nullable=True),
        sa.Column("composite_score", sa.Float(), nullable=False),
        sa.Column("outlier_type", sa.String(20), nullable=False),
        sa.Column("significance_level", sa.String(20), nullable=False),
        sa.Column("threshold_used", sa.Float(), nullable=False),
        sa.Column("universe_type", sa.String(20), nullable=False),
        sa.ForeignKeyConstraint(
            ["stock_id"], ["stocks.id"],
            name="fk_outlier_detections_stock_id_stocks",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(["sector_id"], ["sectors.id"], name="fk_outlier_detections_sector_id_sectors"),
        sa.PrimaryKeyConstraint("id", name="pk_outlier_detections"),
        sa.UniqueConstraint("stock_id", "detection_date", name="uq_outlier_stock_date"),
    )
    op.create_index("idx_outlier_sector_date", "outlier_detections", ["sector_id", "detection_date"])
    op.create_index("idx_outlier_date", "outlier_detections", ["detection_date"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("outlier_detections")
    op.drop_table("market_data_snapshots")
    op.drop_index("uq_membership_active", table_name="stock_universe_membership")
    op.drop_table("stock_universe_membership")
    op.drop_table("stocks")
    op.drop_table("sectors")
