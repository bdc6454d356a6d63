"""Per-client request limiter for the quote endpoints.

This guards the HTTP surface against a single noisy client. It is unrelated
to the upstream call budget in services.quote_cache.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from depot_quotes.core.config import get_settings

# Off under ENVIRONMENT=test so suites can hammer the endpoints
limiter = Limiter(
    key_func=get_remote_address,
    enabled=get_settings().environment.lower() != "test",
)
