"""Database models.

Import models from this module to ensure every table is registered on
Base.metadata before create_all() or Alembic autogenerate run.
"""

from depot_quotes.models.base import Base
from depot_quotes.models.price_cache import PriceCache
from depot_quotes.models.ticker import TickerMapping

__all__ = [
    "Base",
    "PriceCache",
    "TickerMapping",
]
