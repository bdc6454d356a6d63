"""Ticker directory service: lookup first, resolve and persist on a miss.

Sessions are short-lived and never held across the reasoning-service call.
Concurrent first-time resolutions of the same name are allowed to race; the
unique symbol constraint plus insert_or_get() makes them converge on one row.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import before_sleep_log, retry, retry_if_exception_type, stop_after_attempt

from depot_quotes.core.exceptions import InvalidSymbolError, UpstreamFormatError
from depot_quotes.models.ticker import TickerMapping
from depot_quotes.providers.base import ResolvedTicker
from depot_quotes.repositories.ticker_repository import TickerRepository
from depot_quotes.services.name_resolver import NameResolver
from depot_quotes.utils.validation import is_isin, looks_like_ticker, normalize_symbol

logger = logging.getLogger(__name__)


class TickerService:
    """Resolves user input to directory entries."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        resolver: NameResolver,
    ):
        self.session_factory = session_factory
        self.resolver = resolver

    async def get_entry(self, symbol: str) -> TickerMapping | None:
        """Directory row for an exact symbol, or None."""
        async with self.session_factory() as session:
            return await TickerRepository(session).find_by_symbol(symbol)

    async def find_entry(self, raw_input: str) -> TickerMapping | None:
        """Directory lookup without calling the reasoning service.

        ISINs are matched against the ISIN each entry was resolved from.
        Anything else tries the exact symbol first, then a company-name
        substring match.
        """
        value = raw_input.strip()
        async with self.session_factory() as session:
            repo = TickerRepository(session)
            if is_isin(value):
                return await repo.find_by_isin(value) or await repo.find_by_symbol(value)
            entry = await repo.find_by_symbol(value)
            if entry is None:
                entry = await repo.find_by_name_like(value)
            return entry

    @retry(
        stop=stop_after_attempt(2),
        retry=retry_if_exception_type(UpstreamFormatError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _resolve_remote(self, name: str) -> ResolvedTicker:
        """Ask the reasoning service; unparseable answers are retried once."""
        return await self.resolver.resolve(name)

    async def resolve_entry(self, raw_input: str) -> TickerMapping:
        """
        Map a symbol, ISIN or company name to a directory entry.

        Order: directory lookup (see find_entry), then the reasoning service. A
        newly resolved ticker is inserted; if another request inserted it first,
        the existing row is returned instead. An ISIN input is stored on the
        entry so later lookups of it never reach the reasoning service.

        Raises:
            InvalidSymbolError: If the input is empty
            UnresolvableNameError: If the reasoning service cannot map the name
            UpstreamFormatError: If the reasoning service answered garbage twice
            UpstreamUnavailableError: If the reasoning service is unreachable
        """
        value = raw_input.strip()
        if not value:
            raise InvalidSymbolError(raw_input)

        entry = await self.find_entry(value)
        if entry is not None:
            logger.debug(f"Directory hit for '{value}': {entry.symbol}")
            return entry

        resolved = await self._resolve_remote(value)
        row = resolved.to_directory_row()
        if is_isin(value):
            row["isin"] = value

        async with self.session_factory() as session:
            entry = await TickerRepository(session).insert_or_get(**row)
            await session.commit()

        logger.info(f"Directory entry for '{value}' is {entry.symbol} (id={entry.id})")
        return entry

    async def resolve_symbol(self, raw_input: str, explicit_symbol: bool = False) -> str:
        """Provider symbol for quote lookups.

        Ticker-shaped input is used as is; everything else goes through
        resolve_entry(). With ``explicit_symbol`` an all-lowercase token such
        as 'aapl' also counts as ticker-shaped.
        """
        if looks_like_ticker(raw_input, allow_lowercase=explicit_symbol):
            return normalize_symbol(raw_input)
        entry = await self.resolve_entry(raw_input)
        return entry.symbol

    async def resolve_and_store_many(self, names: list[str]) -> list[ResolvedTicker]:
        """Batch-resolve names and upsert every hit into the directory.

        Unresolvable names are left out of the result.
        """
        resolved = await self.resolver.resolve_many(names)
        if not resolved:
            return []

        async with self.session_factory() as session:
            affected = await TickerRepository(session).upsert_many(
                [ticker.to_directory_row() for ticker in resolved]
            )
            await session.commit()

        logger.info(f"Stored {affected} directory rows from batch of {len(names)} names")
        return resolved
