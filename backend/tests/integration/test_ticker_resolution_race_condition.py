"""
Regression tests for concurrent first-time ticker resolution.

Two requests for the same unknown name both miss the directory, both ask the
reasoning service, and both try to insert the resulting symbol. The unique
constraint on ticker_mapping.symbol plus insert_or_get() must leave exactly one
row, and both callers must get that row back instead of a duplicate-key error.
"""
import asyncio

import pytest
from sqlalchemy import func, select

from depot_quotes.models import TickerMapping
from depot_quotes.providers.mock import MockReasoningService
from depot_quotes.services.name_resolver import NameResolver
from depot_quotes.services.ticker_service import TickerService


class LockstepReasoningService(MockReasoningService):
    """Holds every caller until ``parties`` callers are waiting, then answers all."""

    def __init__(self, parties: int):
        super().__init__()
        self.barrier = asyncio.Barrier(parties)

    async def generate_json(self, prompt: str, max_output_tokens: int | None = None) -> str:
        async with asyncio.timeout(5):
            await self.barrier.wait()
        return await super().generate_json(prompt, max_output_tokens)


@pytest.mark.integration
class TestTickerResolutionRaceCondition:
    @pytest.mark.asyncio
    async def test_concurrent_resolution_creates_one_row(self, session_factory, db_session) -> None:
        reasoning = LockstepReasoningService(parties=2)
        service = TickerService(session_factory, NameResolver(reasoning))

        first, second = await asyncio.gather(
            service.resolve_entry("Mercedes"),
            service.resolve_entry("Mercedes"),
        )

        assert first.symbol == second.symbol == "MBG.DE"
        assert first.id == second.id
        assert len(reasoning.prompts) == 2

        count = (
            await db_session.execute(
                select(func.count()).select_from(TickerMapping).where(TickerMapping.symbol == "MBG.DE")
            )
        ).scalar_one()
        assert count == 1

    @pytest.mark.asyncio
    async def test_different_names_same_symbol_converge(self, session_factory, db_session) -> None:
        reasoning = LockstepReasoningService(parties=2)
        reasoning.known = {
            "mercedes": {"symbol": "MBG.DE", "company_name": "Mercedes-Benz Group AG"},
            "daimler": {"symbol": "MBG.DE", "company_name": "Mercedes-Benz Group AG"},
        }
        service = TickerService(session_factory, NameResolver(reasoning))

        results = await asyncio.gather(
            service.resolve_entry("Mercedes"),
            service.resolve_entry("Daimler"),
        )

        assert {entry.id for entry in results} == {results[0].id}
        total = (await db_session.execute(select(func.count()).select_from(TickerMapping))).scalar_one()
        assert total == 1

    @pytest.mark.asyncio
    async def test_sequential_resolution_hits_directory(self, session_factory) -> None:
        reasoning = MockReasoningService()
        service = TickerService(session_factory, NameResolver(reasoning))

        first = await service.resolve_entry("Mercedes")
        second = await service.resolve_entry("Mercedes")

        assert first.id == second.id
        assert len(reasoning.prompts) == 1
