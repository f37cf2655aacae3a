# backend/carteira/services/backup.py
"""
Backup Service - export and wipe-and-restore of the whole ledger.

Export formats:
    JSON: {"version", "exported_at", "assets", "transactions", "prices"}
          Dates are ISO strings, numbers are decimal strings.
    CSV:  One document per table with a fixed column list
          (see ASSET_CSV_FIELDS, TRANSACTION_CSV_FIELDS, PRICE_CSV_FIELDS).

Restore:
    Every record is validated first (the same schemas used for data entry,
    plus the running-balance check per asset). Only then are prices,
    transactions and assets deleted and the payload inserted with its
    original ids. Any failure rolls the session back, so the data present
    before the restore survives.
"""

import csv
import io
import json
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pydantic
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from carteira.models import Asset, PricePoint, Transaction
from carteira.schemas import AssetCreate, PricePointCreate, TransactionCreate
from carteira.services.constants import (
    ASSET_CSV_FIELDS,
    BACKUP_FORMAT_VERSION,
    PRICE_CSV_FIELDS,
    TRANSACTION_CSV_FIELDS,
)
from carteira.services.exceptions import RestoreError
from carteira.services.ledger import find_balance_shortfall, signed_quantity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RestoreResult:
    """Row counts loaded by a restore."""

    assets: int
    transactions: int
    prices: int


# =============================================================================
# SERIALIZATION
# =============================================================================

def _text(value: Any) -> Any:
    """JSON-safe representation: enums by value, dates ISO, decimals as strings."""
    if value is None:
        return None
    if hasattr(value, "value"):
        return value.value
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if isinstance(value, (bool, int, str)):
        return value
    return str(value)


def asset_to_dict(asset: Asset) -> dict[str, Any]:
    return {
        "id": asset.id,
        "ticker": asset.ticker,
        "name": asset.name,
        "type": _text(asset.asset_type),
        "currency": _text(asset.currency),
        "description": asset.description,
        "index_type": _text(asset.index_type),
        "rate": _text(asset.rate),
        "maturity_date": _text(asset.maturity_date),
        "pays_semiannual_coupons": bool(asset.pays_semiannual_coupons),
    }


def transaction_to_dict(transaction: Transaction) -> dict[str, Any]:
    return {
        "id": transaction.id,
        "asset_id": transaction.asset_id,
        "date": _text(transaction.date),
        "type": _text(transaction.transaction_type),
        "quantity": _text(transaction.quantity),
        "price": _text(transaction.price),
        "fees": _text(transaction.fees),
        "notes": transaction.notes,
    }


def price_to_dict(price: PricePoint) -> dict[str, Any]:
    return {
        "id": price.id,
        "asset_id": price.asset_id,
        "date": _text(price.date),
        "price": _text(price.price),
        "volume": price.volume,
        "dividend_yield": _text(price.dividend_yield),
    }


def to_csv(rows: list[dict[str, Any]], fields: tuple[str, ...]) -> str:
    """Render rows as CSV with a header; None becomes an empty cell."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=fields, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({key: "" if row.get(key) is None else row[key] for key in fields})
    return buffer.getvalue()


class BackupService:
    """
    Ledger export and restore.

    Stateless; every method takes the session to work in.
    """

    # =========================================================================
    # EXPORT
    # =========================================================================

    def export_json(self, db: Session) -> dict[str, Any]:
        """Whole ledger as a JSON-serializable dict."""
        assets = db.scalars(select(Asset).order_by(Asset.id)).all()
        transactions = db.scalars(select(Transaction).order_by(Transaction.id)).all()
        prices = db.scalars(select(PricePoint).order_by(PricePoint.id)).all()

        logger.info(
            f"Exporting {len(assets)} asset(s), {len(transactions)} transaction(s), "
            f"{len(prices)} price point(s)"
        )

        return {
            "version": BACKUP_FORMAT_VERSION,
            "exported_at": datetime.now(timezone.utc).isoformat(),
            "assets": [asset_to_dict(a) for a in assets],
            "transactions": [transaction_to_dict(t) for t in transactions],
            "prices": [price_to_dict(p) for p in prices],
        }

    def export_csv(self, db: Session) -> dict[str, str]:
        """Whole ledger as three CSV documents keyed by table name."""
        payload = self.export_json(db)
        return {
            "assets": to_csv(payload["assets"], ASSET_CSV_FIELDS),
            "transactions": to_csv(payload["transactions"], TRANSACTION_CSV_FIELDS),
            "prices": to_csv(payload["prices"], PRICE_CSV_FIELDS),
        }

    def write_backup_file(self, db: Session, directory: str | Path) -> Path:
        """Write a timestamped JSON backup into directory and return its path."""
        target_dir = Path(directory)
        target_dir.mkdir(parents=True, exist_ok=True)

        stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        path = target_dir / f"carteira-backup-{stamp}.json"

        path.write_text(
            json.dumps(self.export_json(db), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        logger.info(f"Backup written to {path}")
        return path

    # =========================================================================
    # RESTORE
    # =========================================================================

    def restore_file(self, db: Session, path: str | Path) -> RestoreResult:
        """Restore from a JSON file written by write_backup_file."""
        try:
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise RestoreError(f"Cannot read backup file {path}: {e}") from e
        return self.restore(db, payload)

    def restore(self, db: Session, payload: dict[str, Any]) -> RestoreResult:
        """
        Replace the whole ledger with a backup payload.

        Raises:
            RestoreError: Malformed payload, invalid record, broken balance
                invariant or database failure. Nothing is changed.
        """
        if not isinstance(payload, dict):
            raise RestoreError("Backup payload must be an object")

        version = payload.get("version", BACKUP_FORMAT_VERSION)
        if version != BACKUP_FORMAT_VERSION:
            raise RestoreError(f"Unsupported backup version: {version}")

        assets = self._parse_assets(payload.get("assets") or [])
        transactions = self._parse_transactions(payload.get("transactions") or [], {a.id for a in assets})
        prices = self._parse_prices(payload.get("prices") or [], {a.id for a in assets})
        self._check_balances(transactions)

        try:
            db.execute(delete(PricePoint))
            db.execute(delete(Transaction))
            db.execute(delete(Asset))
            db.flush()

            db.add_all(assets)
            db.flush()
            db.add_all(transactions)
            db.add_all(prices)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Restore failed, changes rolled back: {e}")
            raise RestoreError(f"Restore failed: {e}") from e

        result = RestoreResult(assets=len(assets), transactions=len(transactions), prices=len(prices))
        logger.info(
            f"Restored {result.assets} asset(s), {result.transactions} transaction(s), "
            f"{result.prices} price point(s)"
        )
        return result

    # =========================================================================
    # PARSING
    # =========================================================================

    @staticmethod
    def _parse_assets(records: list[dict[str, Any]]) -> list[Asset]:
        assets = []
        seen_ids: set[int] = set()

        for index, record in enumerate(records):
            try:
                asset_id = int(record["id"])
                data = AssetCreate(
                    ticker=record["ticker"],
                    name=record["name"],
                    asset_type=record["type"],
                    currency=record.get("currency") or "BRL",
                    description=record.get("description"),
                    index_type=record.get("index_type"),
                    rate=record.get("rate"),
                    maturity_date=record.get("maturity_date"),
                    pays_semiannual_coupons=bool(record.get("pays_semiannual_coupons")),
                )
            except (KeyError, TypeError, ValueError, pydantic.ValidationError) as e:
                raise RestoreError(f"Invalid asset record #{index}: {e}") from e

            if asset_id in seen_ids:
                raise RestoreError(f"Duplicate asset id {asset_id}")
            seen_ids.add(asset_id)

            assets.append(Asset(id=asset_id, **data.model_dump()))

        tickers = [a.ticker for a in assets]
        if len(set(tickers)) != len(tickers):
            raise RestoreError("Duplicate tickers in backup")

        return assets

    @staticmethod
    def _parse_transactions(records: list[dict[str, Any]], asset_ids: set[int]) -> list[Transaction]:
        transactions = []

        for index, record in enumerate(records):
            try:
                data = TransactionCreate(
                    asset_id=record["asset_id"],
                    transaction_type=record["type"],
                    date=record["date"],
                    quantity=record["quantity"],
                    price=record["price"],
                    fees=record.get("fees"),
                    notes=record.get("notes"),
                )
                transaction_id = record.get("id")
            except (KeyError, TypeError, ValueError, pydantic.ValidationError) as e:
                raise RestoreError(f"Invalid transaction record #{index}: {e}") from e

            if data.asset_id not in asset_ids:
                raise RestoreError(f"Transaction record #{index} references unknown asset {data.asset_id}")

            transactions.append(Transaction(id=transaction_id, **data.model_dump()))

        return transactions

    @staticmethod
    def _parse_prices(records: list[dict[str, Any]], asset_ids: set[int]) -> list[PricePoint]:
        prices = []

        for index, record in enumerate(records):
            try:
                asset_id = int(record["asset_id"])
                data = PricePointCreate(
                    date=record["date"],
                    price=record["price"],
                    volume=record.get("volume"),
                    dividend_yield=record.get("dividend_yield"),
                )
            except (KeyError, TypeError, ValueError, pydantic.ValidationError) as e:
                raise RestoreError(f"Invalid price record #{index}: {e}") from e

            if asset_id not in asset_ids:
                raise RestoreError(f"Price record #{index} references unknown asset {asset_id}")

            prices.append(PricePoint(id=record.get("id"), asset_id=asset_id, **data.model_dump()))

        return prices

    @staticmethod
    def _check_balances(transactions: list[Transaction]) -> None:
        """Every asset's replayed quantity must stay non-negative."""
        by_asset = defaultdict(list)
        for t in transactions:
            by_asset[t.asset_id].append((t.date, signed_quantity(t.transaction_type, t.quantity)))

        for asset_id, entries in by_asset.items():
            shortfall = find_balance_shortfall(entries)
            if shortfall is not None:
                raise RestoreError(
                    f"Backup sells more of asset {asset_id} than it holds on {shortfall}"
                )
