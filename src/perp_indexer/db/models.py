"""SQLAlchemy ORM models for the indexed entities."""

from sqlalchemy import BigInteger, Boolean, Index, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# uint256 fits in 78 decimal digits
Uint256 = Numeric(78, 0)


class Base(DeclarativeBase):
    pass


class GlobalStatsORM(Base):
    __tablename__ = "global_stats"

    id: Mapped[str] = mapped_column(String(8), primary_key=True)
    cumulative_fees: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    cumulative_pnl: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    cumulative_volume: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    cumulative_margin: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    position_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    trade_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class DayStatsORM(Base):
    __tablename__ = "day_stats"

    id: Mapped[str] = mapped_column(String(16), primary_key=True)
    date: Mapped[int] = mapped_column(BigInteger, nullable=False)
    cumulative_fees: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    cumulative_pnl: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    cumulative_volume: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    cumulative_margin: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    position_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    trade_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    __table_args__ = (Index("idx_day_stats_date", date.desc()),)


class ProductORM(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(80), primary_key=True)
    cumulative_fees: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    cumulative_pnl: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    cumulative_volume: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    cumulative_margin: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    position_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    trade_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class PositionORM(Base):
    __tablename__ = "positions"

    id: Mapped[str] = mapped_column(String(80), primary_key=True)
    product_id: Mapped[int] = mapped_column(Uint256, nullable=False)
    price: Mapped[int] = mapped_column(Uint256, nullable=False)
    margin: Mapped[int] = mapped_column(Uint256, nullable=False)
    size: Mapped[int] = mapped_column(Uint256, nullable=False)
    leverage: Mapped[int] = mapped_column(Uint256, nullable=False)
    user: Mapped[str] = mapped_column(String(42), nullable=False)
    currency: Mapped[str] = mapped_column(String(42), nullable=False)
    fee: Mapped[int] = mapped_column(Uint256, nullable=False)
    is_long: Mapped[bool] = mapped_column(Boolean, nullable=False)
    liquidation_price: Mapped[int] = mapped_column(Uint256, nullable=False)
    created_at_timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at_block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at_timestamp: Mapped[int | None] = mapped_column(BigInteger)
    updated_at_block_number: Mapped[int | None] = mapped_column(BigInteger)

    __table_args__ = (
        Index("idx_positions_user", "user"),
        Index("idx_positions_product", "product_id"),
    )


class TradeORM(Base):
    __tablename__ = "trades"

    id: Mapped[str] = mapped_column(String(80), primary_key=True)
    tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    position_id: Mapped[int] = mapped_column(Uint256, nullable=False)
    product_id: Mapped[int] = mapped_column(Uint256, nullable=False)
    leverage: Mapped[int] = mapped_column(Uint256, nullable=False)
    size: Mapped[int] = mapped_column(Uint256, nullable=False)
    entry_price: Mapped[int] = mapped_column(Uint256, nullable=False)
    close_price: Mapped[int] = mapped_column(Uint256, nullable=False)
    margin: Mapped[int] = mapped_column(Uint256, nullable=False)
    user: Mapped[str] = mapped_column(String(42), nullable=False)
    currency: Mapped[str] = mapped_column(String(42), nullable=False)
    fee: Mapped[int] = mapped_column(Uint256, nullable=False)
    pnl: Mapped[int] = mapped_column(Uint256, nullable=False)
    was_liquidated: Mapped[bool] = mapped_column(Boolean, nullable=False)
    is_full_close: Mapped[bool] = mapped_column(Boolean, nullable=False)
    is_long: Mapped[bool] = mapped_column(Boolean, nullable=False)
    duration: Mapped[int] = mapped_column(BigInteger, nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index("idx_trades_user", "user"),
        Index("idx_trades_product", "product_id"),
        Index("idx_trades_timestamp", timestamp.desc()),
    )


class IndexerStateORM(Base):
    __tablename__ = "indexer_state"

    id: Mapped[str] = mapped_column(String(120), primary_key=True)
    last_block_number: Mapped[int | None] = mapped_column(BigInteger)
    last_log_index: Mapped[int | None] = mapped_column(BigInteger)
    halted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    halt_reason: Mapped[str] = mapped_column(Text, nullable=False, default="")


ORM_BY_KIND: dict[str, type[Base]] = {
    "global_stats": GlobalStatsORM,
    "day_stats": DayStatsORM,
    "product": ProductORM,
    "position": PositionORM,
    "trade": TradeORM,
    "indexer_state": IndexerStateORM,
}
