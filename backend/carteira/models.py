# backend/carteira/models.py
import enum
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Date, DateTime, ForeignKey, Enum, Numeric, Boolean, BigInteger, Index, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# Enum values match the identifiers used in exported backups
class TransactionType(str, enum.Enum):
    BUY = "COMPRA"
    SELL = "VENDA"


class AssetType(str, enum.Enum):
    TREASURY_BOND = "TESOURO_DIRETO"
    SAVINGS = "POUPANCA"
    CDB = "CDB"
    REAL_ESTATE_FUND = "FII"
    REIT = "REIT"
    BR_STOCK = "ACAO_BR"
    US_STOCK = "ACAO_US"
    DEBENTURE = "DEBENTURE"
    DIGITAL_FIXED_INCOME = "RENDA_FIXA_DIGITAL"
    STAKED_CRYPTO = "STAKING_CRYPTO"
    CRI = "CRI"
    INFRASTRUCTURE_FUND = "FI_INFRA"
    OTHER = "OUTROS"


class Currency(str, enum.Enum):
    BRL = "BRL"
    USD = "USD"


class IndexType(str, enum.Enum):
    """Rate index a fixed-income asset is tied to."""
    FIXED = "PREFIXADO"
    CDI = "CDI"
    IPCA = "IPCA"
    SELIC = "SELIC"


# Types where index/rate/maturity/coupon fields carry meaning
FIXED_INCOME_TYPES = frozenset({
    AssetType.TREASURY_BOND,
    AssetType.SAVINGS,
    AssetType.CDB,
    AssetType.DEBENTURE,
    AssetType.DIGITAL_FIXED_INCOME,
    AssetType.CRI,
    AssetType.INFRASTRUCTURE_FUND,
})


class Asset(Base):
    """
    A tradable instrument.

    The ticker is globally unique. Fixed-income assets additionally carry
    an index reference, a contracted real annual rate (percent), a maturity
    date and whether they pay coupons every six months.
    """
    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    ticker: Mapped[str] = mapped_column(String, unique=True, index=True)  # e.g. "PETR4", "IPCA2035"
    name: Mapped[str] = mapped_column(String)
    asset_type: Mapped[AssetType] = mapped_column(Enum(AssetType))
    currency: Mapped[Currency] = mapped_column(Enum(Currency), default=Currency.BRL)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Fixed income
    index_type: Mapped[IndexType | None] = mapped_column(Enum(IndexType), nullable=True)
    rate: Mapped[Decimal | None] = mapped_column(Numeric(18, 8), nullable=True)  # contracted annual rate, percent
    maturity_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    pays_semiannual_coupons: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    transactions: Mapped[list["Transaction"]] = relationship(back_populates="asset")
    prices: Mapped[list["PricePoint"]] = relationship(back_populates="asset", cascade="all, delete-orphan")

    @property
    def is_fixed_income(self) -> bool:
        return self.asset_type in FIXED_INCOME_TYPES


class Transaction(Base):
    """
    A single BUY or SELL of an asset.

    Dates are calendar days. The running quantity of an asset, replayed in
    date order, never goes negative; this is enforced by the ledger service
    before any insert, edit or delete reaches the database.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_asset_date", "asset_id", "date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    asset_id: Mapped[int] = mapped_column(ForeignKey("assets.id"), index=True)
    transaction_type: Mapped[TransactionType] = mapped_column(Enum(TransactionType))
    date: Mapped[date] = mapped_column(Date, index=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    price: Mapped[Decimal] = mapped_column(Numeric(18, 8))  # unit price
    fees: Mapped[Decimal | None] = mapped_column(Numeric(18, 8), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))  # When it was recorded

    asset: Mapped["Asset"] = relationship(back_populates="transactions")


class PricePoint(Base):
    """
    An observed or recorded price for an asset on a day.

    Several points per asset per day are allowed; the latest price is the
    one with the greatest date (ties broken by id).
    """
    __tablename__ = "price_points"
    __table_args__ = (
        Index("ix_price_points_asset_date", "asset_id", "date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    asset_id: Mapped[int] = mapped_column(ForeignKey("assets.id"), index=True)
    date: Mapped[date] = mapped_column(Date, index=True)
    price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    volume: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    dividend_yield: Mapped[Decimal | None] = mapped_column(Numeric(18, 8), nullable=True)  # percent
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    asset: Mapped["Asset"] = relationship(back_populates="prices")
