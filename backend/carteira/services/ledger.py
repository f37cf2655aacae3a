# backend/carteira/services/ledger.py
"""
Ledger Service - assets, transactions and price points.

This is the only place that writes ledger records. Every mutation that can
change an asset's running quantity is checked against the whole ledger
before it reaches the database:

    Replaying the asset's transactions day by day, in date order, the
    quantity held at the end of every day must never be negative.

Same-day transactions are netted before the check, so a BUY and a SELL on
the same day can be recorded in either order.

Design Principles:
- Validate first, mutate after: a rejected request leaves no trace
- Commit per operation, rollback on database errors
- No HTTP knowledge: raises domain exceptions only

Usage:
    from carteira.services.ledger import LedgerService

    ledger = LedgerService()
    asset = ledger.create_asset(db, AssetCreate(ticker="PETR4", ...))
    ledger.create_transaction(db, TransactionCreate(asset_id=asset.id, ...))
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from sqlalchemy import select, and_, delete, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from carteira.models import (
    Asset,
    AssetType,
    FIXED_INCOME_TYPES,
    PricePoint,
    Transaction,
    TransactionType,
)
from carteira.schemas import (
    AssetCreate,
    AssetUpdate,
    PricePointCreate,
    TransactionCreate,
    TransactionImportRow,
    TransactionUpdate,
)
from carteira.schemas.validators import normalize_ticker
from carteira.services.constants import PRICE_INSERT_BATCH_SIZE
from carteira.services.exceptions import (
    AssetInUseError,
    AssetNotFoundError,
    DependentSalesError,
    DuplicateTickerError,
    ImportRowError,
    InsufficientQuantityError,
    PricePointNotFoundError,
    TransactionImportError,
    TransactionNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# (date, signed quantity): positive for BUY, negative for SELL
LedgerEntry = tuple[date, Decimal]

FIXED_INCOME_FIELDS = ("index_type", "rate", "maturity_date", "pays_semiannual_coupons")


# =============================================================================
# BALANCE INVARIANT
# =============================================================================

def signed_quantity(transaction_type: TransactionType, quantity: Decimal) -> Decimal:
    return quantity if transaction_type == TransactionType.BUY else -quantity


def to_entries(transactions: Iterable[Transaction]) -> list[LedgerEntry]:
    return [(t.date, signed_quantity(t.transaction_type, t.quantity)) for t in transactions]


def find_balance_shortfall(entries: Iterable[LedgerEntry]) -> date | None:
    """
    First day on which the replayed quantity goes negative, or None.

    Entries are netted per day and replayed in date order.
    """
    by_day: dict[date, Decimal] = defaultdict(lambda: ZERO)
    for day, quantity in entries:
        by_day[day] += quantity

    balance = ZERO
    for day in sorted(by_day):
        balance += by_day[day]
        if balance < 0:
            return day
    return None


def balance_as_of(entries: Iterable[LedgerEntry], as_of: date) -> Decimal:
    """Net quantity of every entry dated on or before as_of."""
    return sum((quantity for day, quantity in entries if day <= as_of), ZERO)


class LedgerService:
    """
    Persistence collaborator for the ledger.

    Stateless; every method takes the session to work in.
    """

    # =========================================================================
    # ASSETS
    # =========================================================================

    def create_asset(self, db: Session, data: AssetCreate) -> Asset:
        """
        Create an asset.

        Raises:
            DuplicateTickerError: Ticker already in use
        """
        self._ensure_ticker_free(db, data.ticker)

        asset = Asset(**data.model_dump())
        db.add(asset)
        self._commit(db, ticker=data.ticker)
        db.refresh(asset)

        logger.info(f"Created asset {asset.id} ({asset.ticker}, {asset.asset_type.value})")
        return asset

    def get_asset(self, db: Session, asset_id: int) -> Asset:
        """
        Raises:
            AssetNotFoundError: Unknown asset id
        """
        asset = db.get(Asset, asset_id)
        if asset is None:
            raise AssetNotFoundError(asset_id)
        return asset

    def get_asset_by_ticker(self, db: Session, ticker: str) -> Asset:
        """
        Raises:
            AssetNotFoundError: Unknown ticker
        """
        normalized = normalize_ticker(ticker)
        asset = db.scalar(select(Asset).where(Asset.ticker == normalized))
        if asset is None:
            raise AssetNotFoundError(normalized)
        return asset

    def list_assets(self, db: Session, types: list[AssetType] | None = None) -> list[Asset]:
        """Assets ordered by ticker, optionally filtered by type."""
        query = select(Asset).order_by(Asset.ticker)
        if types:
            query = query.where(Asset.asset_type.in_(types))
        return list(db.scalars(query).all())

    def update_asset(self, db: Session, asset_id: int, data: AssetUpdate) -> Asset:
        """
        Apply the fields that were sent.

        Raises:
            AssetNotFoundError: Unknown asset id
            DuplicateTickerError: New ticker already in use
            ValidationError: The updated asset would carry fixed-income fields
                without being a fixed-income type
        """
        asset = self.get_asset(db, asset_id)
        changes = data.model_dump(exclude_unset=True)

        new_ticker = changes.get("ticker")
        ticker_changed = new_ticker is not None and new_ticker != asset.ticker
        if ticker_changed:
            self._ensure_ticker_free(db, new_ticker)

        merged = {
            field: changes.get(field, getattr(asset, field))
            for field in ("asset_type", *FIXED_INCOME_FIELDS)
        }
        if merged["asset_type"] not in FIXED_INCOME_TYPES:
            set_fields = [
                field for field in FIXED_INCOME_FIELDS
                if (merged[field] if field == "pays_semiannual_coupons" else merged[field] is not None)
            ]
            if set_fields:
                raise ValidationError(
                    f"Fixed-income fields not allowed for asset type "
                    f"{merged['asset_type'].value}: {', '.join(set_fields)}",
                    field=set_fields[0],
                )

        for field, value in changes.items():
            setattr(asset, field, value)

        self._commit(db, ticker=new_ticker if ticker_changed else None)
        db.refresh(asset)

        logger.info(f"Updated asset {asset_id}: {sorted(changes)}")
        return asset

    def delete_asset(self, db: Session, asset_id: int) -> None:
        """
        Delete an asset and its price points.

        Raises:
            AssetNotFoundError: Unknown asset id
            AssetInUseError: The asset still has transactions
        """
        asset = self.get_asset(db, asset_id)

        transaction_count = db.scalar(
            select(func.count(Transaction.id)).where(Transaction.asset_id == asset_id)
        )
        if transaction_count:
            raise AssetInUseError(asset_id, transaction_count)

        db.execute(delete(PricePoint).where(PricePoint.asset_id == asset_id))
        db.delete(asset)
        self._commit(db)

        logger.info(f"Deleted asset {asset_id} ({asset.ticker})")

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def create_transaction(self, db: Session, data: TransactionCreate) -> Transaction:
        """
        Record a transaction.

        A SELL needs enough quantity as of its date, counting every stored
        transaction dated on or before it. Later SELLs must stay covered too.

        Raises:
            AssetNotFoundError: Unknown asset id
            InsufficientQuantityError: Not enough quantity to sell
        """
        self.get_asset(db, data.asset_id)

        if data.transaction_type == TransactionType.SELL:
            entries = to_entries(self._fetch_asset_transactions(db, data.asset_id))
            available = balance_as_of(entries, data.date)

            new_entry = (data.date, -data.quantity)
            if data.quantity > available or find_balance_shortfall(entries + [new_entry]):
                raise InsufficientQuantityError(
                    asset_id=data.asset_id,
                    requested=data.quantity,
                    available=available,
                    as_of=data.date,
                )

        transaction = Transaction(**data.model_dump())
        db.add(transaction)
        self._commit(db)
        db.refresh(transaction)

        logger.info(
            f"Recorded {transaction.transaction_type.name} #{transaction.id}: "
            f"{transaction.quantity} of asset {transaction.asset_id} on {transaction.date}"
        )
        return transaction

    def get_transaction(self, db: Session, transaction_id: int) -> Transaction:
        """
        Raises:
            TransactionNotFoundError: Unknown transaction id
        """
        transaction = db.get(Transaction, transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        return transaction

    def list_transactions(self, db: Session, asset_id: int | None = None) -> list[Transaction]:
        """Transactions newest first, optionally for one asset."""
        query = select(Transaction).order_by(Transaction.date.desc(), Transaction.id.desc())
        if asset_id is not None:
            query = query.where(Transaction.asset_id == asset_id)
        return list(db.scalars(query).all())

    def update_transaction(
            self,
            db: Session,
            transaction_id: int,
            data: TransactionUpdate,
    ) -> Transaction:
        """
        Correct a transaction after replaying the ledger with the edit applied.

        Raises:
            TransactionNotFoundError: Unknown transaction id
            InsufficientQuantityError: The edited row is a SELL that is no longer covered
            DependentSalesError: Later SELLs would no longer be covered
        """
        transaction = self.get_transaction(db, transaction_id)
        changes = data.model_dump(exclude_unset=True)

        new_type = changes.get("transaction_type", transaction.transaction_type)
        new_date = changes.get("date", transaction.date)
        new_quantity = changes.get("quantity", transaction.quantity)

        others = to_entries(
            t for t in self._fetch_asset_transactions(db, transaction.asset_id)
            if t.id != transaction_id
        )
        edited = (new_date, signed_quantity(new_type, new_quantity))
        shortfall = find_balance_shortfall(others + [edited])

        if shortfall is not None:
            if new_type == TransactionType.SELL:
                raise InsufficientQuantityError(
                    asset_id=transaction.asset_id,
                    requested=new_quantity,
                    available=balance_as_of(others, new_date),
                    as_of=new_date,
                )
            raise DependentSalesError(transaction_id, transaction.asset_id, shortfall)

        for field, value in changes.items():
            setattr(transaction, field, value)

        self._commit(db)
        db.refresh(transaction)

        logger.info(f"Updated transaction {transaction_id}: {sorted(changes)}")
        return transaction

    def delete_transaction(self, db: Session, transaction_id: int) -> None:
        """
        Delete a transaction unless later SELLs depend on it.

        Raises:
            TransactionNotFoundError: Unknown transaction id
            DependentSalesError: Removing the row would uncover a later SELL
        """
        transaction = self.get_transaction(db, transaction_id)

        remaining = to_entries(
            t for t in self._fetch_asset_transactions(db, transaction.asset_id)
            if t.id != transaction_id
        )
        shortfall = find_balance_shortfall(remaining)
        if shortfall is not None:
            raise DependentSalesError(transaction_id, transaction.asset_id, shortfall)

        db.delete(transaction)
        self._commit(db)

        logger.info(f"Deleted transaction {transaction_id} of asset {transaction.asset_id}")

    def get_available_quantity(
            self,
            db: Session,
            asset_id: int,
            as_of: date | None = None,
    ) -> Decimal:
        """
        Quantity held at the end of as_of (default: every transaction).

        Raises:
            AssetNotFoundError: Unknown asset id
        """
        self.get_asset(db, asset_id)
        entries = to_entries(self._fetch_asset_transactions(db, asset_id))
        if as_of is None:
            return sum((quantity for _, quantity in entries), ZERO)
        return balance_as_of(entries, as_of)

    def import_transactions(
            self,
            db: Session,
            rows: list[TransactionImportRow],
    ) -> list[Transaction]:
        """
        Import a batch of transactions addressed by ticker. All or nothing.

        Rows are checked per asset in date order against a running balance
        seeded from the stored ledger; accepted rows count towards the
        balance of the rows after them.

        Raises:
            TransactionImportError: One or more rows were rejected
        """
        tickers = {row.ticker for row in rows}
        assets_by_ticker = {
            asset.ticker: asset
            for asset in db.scalars(select(Asset).where(Asset.ticker.in_(tickers))).all()
        }

        errors: list[ImportRowError] = []
        rows_by_asset: dict[int, list[tuple[int, TransactionImportRow]]] = defaultdict(list)

        for index, row in enumerate(rows):
            asset = assets_by_ticker.get(row.ticker)
            if asset is None:
                errors.append(ImportRowError(
                    index=index,
                    ticker=row.ticker,
                    error_type="asset_not_found",
                    message=f"Asset '{row.ticker}' not found",
                ))
                continue
            rows_by_asset[asset.id].append((index, row))

        for asset_id, indexed_rows in rows_by_asset.items():
            entries = to_entries(self._fetch_asset_transactions(db, asset_id))

            for index, row in sorted(indexed_rows, key=lambda item: (item[1].date, item[0])):
                entry = (row.date, signed_quantity(row.transaction_type, row.quantity))

                if row.transaction_type == TransactionType.SELL:
                    available = balance_as_of(entries, row.date)
                    if row.quantity > available or find_balance_shortfall(entries + [entry]):
                        errors.append(ImportRowError(
                            index=index,
                            ticker=row.ticker,
                            error_type="insufficient_quantity",
                            message=(
                                f"Insufficient quantity to sell {row.quantity} {row.ticker} "
                                f"on {row.date}: {available} available"
                            ),
                        ))
                        continue

                entries.append(entry)

        if errors:
            logger.warning(f"Transaction import rejected: {len(errors)} of {len(rows)} row(s) invalid")
            raise TransactionImportError(sorted(errors, key=lambda e: e.index))

        transactions = [
            Transaction(
                asset_id=assets_by_ticker[row.ticker].id,
                **row.model_dump(exclude={"ticker"}),
            )
            for row in rows
        ]
        db.add_all(transactions)
        self._commit(db)
        for transaction in transactions:
            db.refresh(transaction)

        logger.info(f"Imported {len(transactions)} transaction(s)")
        return transactions

    # =========================================================================
    # PRICE POINTS
    # =========================================================================

    def add_price_point(self, db: Session, asset_id: int, data: PricePointCreate) -> PricePoint:
        """
        Raises:
            AssetNotFoundError: Unknown asset id
        """
        self.get_asset(db, asset_id)

        price = PricePoint(asset_id=asset_id, **data.model_dump())
        db.add(price)
        self._commit(db)
        db.refresh(price)

        logger.info(f"Recorded price {price.price} for asset {asset_id} on {price.date}")
        return price

    def delete_price_point(self, db: Session, price_id: int) -> None:
        """
        Raises:
            PricePointNotFoundError: Unknown price point id
        """
        price = db.get(PricePoint, price_id)
        if price is None:
            raise PricePointNotFoundError(price_id)

        db.delete(price)
        self._commit(db)
        logger.info(f"Deleted price point {price_id}")

    def list_prices(
            self,
            db: Session,
            asset_id: int,
            from_date: date | None = None,
            to_date: date | None = None,
    ) -> list[PricePoint]:
        """An asset's price points in date order, optionally within a range."""
        conditions = [PricePoint.asset_id == asset_id]
        if from_date is not None:
            conditions.append(PricePoint.date >= from_date)
        if to_date is not None:
            conditions.append(PricePoint.date <= to_date)

        query = (
            select(PricePoint)
            .where(and_(*conditions))
            .order_by(PricePoint.date, PricePoint.id)
        )
        return list(db.scalars(query).all())

    def latest_price(
            self,
            db: Session,
            asset_id: int,
            as_of: date | None = None,
    ) -> PricePoint | None:
        """Price point with the greatest date (ties by id), or None."""
        query = select(PricePoint).where(PricePoint.asset_id == asset_id)
        if as_of is not None:
            query = query.where(PricePoint.date <= as_of)
        query = query.order_by(PricePoint.date.desc(), PricePoint.id.desc()).limit(1)
        return db.scalars(query).first()

    def replace_prices(
            self,
            db: Session,
            asset_id: int,
            points: list[PricePointCreate],
    ) -> int:
        """
        Replace every price point of an asset. Returns how many were stored.

        Raises:
            AssetNotFoundError: Unknown asset id
        """
        self.get_asset(db, asset_id)

        try:
            db.execute(delete(PricePoint).where(PricePoint.asset_id == asset_id))
            for start in range(0, len(points), PRICE_INSERT_BATCH_SIZE):
                batch = points[start:start + PRICE_INSERT_BATCH_SIZE]
                db.add_all(PricePoint(asset_id=asset_id, **p.model_dump()) for p in batch)
                db.flush()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to replace prices of asset {asset_id}: {e}", exc_info=True)
            raise

        logger.info(f"Replaced price history of asset {asset_id}: {len(points)} point(s)")
        return len(points)

    # =========================================================================
    # PRIVATE METHODS
    # =========================================================================

    def _fetch_asset_transactions(self, db: Session, asset_id: int) -> list[Transaction]:
        query = (
            select(Transaction)
            .where(Transaction.asset_id == asset_id)
            .order_by(Transaction.date, Transaction.id)
        )
        return list(db.scalars(query).all())

    def _ensure_ticker_free(self, db: Session, ticker: str) -> None:
        if db.scalar(select(Asset.id).where(Asset.ticker == ticker)) is not None:
            raise DuplicateTickerError(ticker)

    def _commit(self, db: Session, ticker: str | None = None) -> None:
        """Commit, rolling back on failure. A unique violation on ticker becomes DuplicateTickerError."""
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            if ticker is not None:
                raise DuplicateTickerError(ticker) from e
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Database error: {e}", exc_info=True)
            raise
