"""Data access repositories with base repository pattern."""

from .base import BaseRepository
from .base import DatabaseError
from .base import DuplicateKeyError
from .base import RepositoryError
from .price_cache_repository import CachedPrice
from .price_cache_repository import PriceCacheRepository
from .ticker_repository import TickerRepository

__all__ = [
    "BaseRepository",
    "CachedPrice",
    "DatabaseError",
    "DuplicateKeyError",
    "PriceCacheRepository",
    "RepositoryError",
    "TickerRepository",
]
