"""Ticker directory repository.

The directory is a shared reference table written by concurrent requests that
resolve the same unknown name at the same time. Deduplication relies on the
unique constraint on ``symbol`` (applied after the fact), never on locks or a
check-then-insert transaction.
"""
import logging
from typing import Any

from sqlalchemy import func
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from depot_quotes.models.ticker import TickerMapping
from depot_quotes.repositories.base import BaseRepository
from depot_quotes.repositories.base import DatabaseError
from depot_quotes.repositories.base import DuplicateKeyError

logger = logging.getLogger(__name__)

# Metadata columns refined by bulk upserts; symbol is the identity and never changes
METADATA_COLUMNS = (
    "company_name",
    "sector",
    "industry",
    "description_static",
    "pe_ratio_static",
    "competitors",
)


class TickerRepository(BaseRepository[TickerMapping]):
    """Repository for the global ticker directory."""

    def __init__(self, session: AsyncSession):
        super().__init__(TickerMapping, session)

    async def find_by_symbol(self, symbol: str) -> TickerMapping | None:
        """Exact, case-insensitive lookup on the uppercased symbol.

        Args:
            symbol: Exchange symbol in any case (e.g., 'mbg.de')

        Returns:
            TickerMapping or None
        """
        try:
            result = await self.session.execute(
                select(TickerMapping).where(TickerMapping.symbol == symbol.upper().strip())
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to look up ticker {symbol}: {e}")
            raise DatabaseError(f"Database error looking up ticker: {str(e)}")

    async def find_by_isin(self, isin: str) -> TickerMapping | None:
        """Exact lookup of an entry previously resolved from this ISIN."""
        try:
            result = await self.session.execute(
                select(TickerMapping).where(TickerMapping.isin == isin.upper().strip())
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to look up ISIN {isin}: {e}")
            raise DatabaseError(f"Database error looking up ISIN: {str(e)}")

    async def attach_isin(self, entry: TickerMapping, isin: str) -> bool:
        """Record the ISIN on an existing entry that has none yet.

        Returns:
            False if another entry already holds the ISIN
        """
        isin = isin.upper().strip()
        try:
            async with self.session.begin_nested():
                entry.isin = isin
                await self.session.flush()
        except IntegrityError as e:
            self.logger.warning(f"ISIN {isin} already belongs to another ticker: {e.orig}")
            await self.session.refresh(entry)
            return False
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to attach ISIN {isin} to {entry.symbol}: {e}")
            raise DatabaseError(f"Database error attaching ISIN: {str(e)}")
        return True

    async def find_by_name_like(self, fragment: str) -> TickerMapping | None:
        """Case-insensitive substring match on company name.

        Returns the first match by id. Only used as a fallback after
        find_by_symbol() misses.

        Args:
            fragment: Part of the company name (e.g., 'mercedes')

        Returns:
            TickerMapping or None
        """
        fragment = fragment.strip()
        if not fragment:
            return None

        # Escape LIKE wildcards typed by users
        escaped = fragment.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        try:
            result = await self.session.execute(
                select(TickerMapping)
                .where(func.lower(TickerMapping.company_name).like(f"%{escaped}%", escape="\\"))
                .order_by(TickerMapping.id)
                .limit(1)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(f"Failed name lookup for '{fragment}': {e}")
            raise DatabaseError(f"Database error searching ticker names: {str(e)}")

    async def insert(self, **fields: Any) -> TickerMapping:
        """Insert a new directory row.

        Args:
            **fields: Column values; ``symbol`` and ``isin`` are uppercased

        Returns:
            Created TickerMapping

        Raises:
            DuplicateKeyError: If the symbol or ISIN already exists
        """
        fields["symbol"] = fields["symbol"].upper().strip()
        if fields.get("isin"):
            fields["isin"] = fields["isin"].upper().strip()
        return await self.create(**fields)

    async def insert_or_get(self, **fields: Any) -> TickerMapping:
        """Insert a row, or return the existing one when another writer won.

        A DuplicateKeyError is the expected outcome when two requests resolve
        the same name concurrently; it is absorbed here by re-reading the row
        the other writer committed. An ISIN given with the row is attached to
        the existing entry when that entry has none.

        Args:
            **fields: Column values for the new row

        Returns:
            The inserted or already existing TickerMapping

        Raises:
            DatabaseError: If the row neither inserts nor exists afterwards
        """
        symbol = fields["symbol"].upper().strip()
        isin = fields.get("isin")
        try:
            return await self.insert(**fields)
        except DuplicateKeyError:
            existing = await self.find_by_symbol(symbol)
            if existing is None and isin:
                existing = await self.find_by_isin(isin)
            if existing is None:
                raise DatabaseError(f"Ticker {symbol} conflicted on insert but is not readable")
            self.logger.info(f"Ticker {symbol} already in directory, using existing row")
            if isin and existing.isin is None:
                await self.attach_isin(existing, isin)
            return existing

    async def upsert_many(self, entries: list[dict[str, Any]]) -> int:
        """Insert or refine multiple directory rows keyed on symbol.

        Uses INSERT ... ON CONFLICT (symbol) DO UPDATE. Null metadata in the
        incoming row never overwrites known values.

        Args:
            entries: Row dictionaries; each must contain ``symbol`` and ``company_name``

        Returns:
            Number of affected rows

        Raises:
            DatabaseError: If the database operation fails
        """
        rows: dict[str, dict[str, Any]] = {}
        for entry in entries:
            symbol = (entry.get("symbol") or "").upper().strip()
            if not symbol:
                continue
            row = {"symbol": symbol, "company_name": entry.get("company_name") or symbol}
            for column in METADATA_COLUMNS[1:]:
                row[column] = entry.get(column)
            # Later duplicates in the same batch win
            rows[symbol] = row

        if not rows:
            return 0

        try:
            stmt = self._insert().values(list(rows.values()))
            update_columns = {
                column: func.coalesce(getattr(stmt.excluded, column), getattr(TickerMapping, column))
                for column in METADATA_COLUMNS
            }
            update_columns["updated_at"] = func.now()
            stmt = stmt.on_conflict_do_update(index_elements=["symbol"], set_=update_columns)

            result = await self.session.execute(stmt)
            self.logger.debug(f"Upserted {result.rowcount} ticker rows")
            return result.rowcount

        except SQLAlchemyError as e:
            self.logger.error(f"Failed to upsert ticker batch: {e}")
            raise DatabaseError(f"Database error upserting tickers: {str(e)}")
