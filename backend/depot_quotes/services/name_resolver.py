"""Name resolution via the reasoning service.

Turns free-text company or fund names (and ISINs) into exchange tickers plus
directory metadata. The resolver only talks to the reasoning service; writing
results into the ticker directory is the caller's job (see TickerService).
"""
import json
import logging
import re
from typing import Any

from depot_quotes.core.exceptions import UnresolvableNameError, UpstreamFormatError
from depot_quotes.providers.base import ReasoningServiceInterface, ResolvedTicker
from depot_quotes.utils.validation import is_valid_symbol, normalize_symbol

logger = logging.getLogger(__name__)

UNKNOWN_SYMBOL = "UNKNOWN"

# ```json ... ``` wrappers some models add despite the JSON mime type
FENCE_PATTERN = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)

SYMBOL_RULES = """Rules:
- German shares listed on XETRA use the ".DE" suffix (e.g. "MBG.DE").
- US shares use the plain symbol without suffix (e.g. "AAPL").
- ETFs use the symbol of their primary listing (e.g. "EUNL.DE").
- If you cannot identify the security with certainty, use "UNKNOWN" as symbol."""

SINGLE_PROMPT = """Identify the stock exchange ticker for the following security: "{name}"

Respond with exactly one JSON object and nothing else:
{{"symbol": "...", "company_name": "...", "sector": "...", "industry": "...", "description": "...", "competitors": "..."}}

{rules}"""

BATCH_PROMPT = """Identify the stock exchange tickers for the following securities:
{names}

Respond with exactly one JSON object and nothing else:
{{"results": [{{"input": "<name as given>", "symbol": "...", "company_name": "...", "sector": "...", "industry": "..."}}]}}
Return one object per security, in the order given.

{rules}"""


def build_single_prompt(name: str) -> str:
    return SINGLE_PROMPT.format(name=name.replace('"', "'"), rules=SYMBOL_RULES)


def build_batch_prompt(names: list[str]) -> str:
    return BATCH_PROMPT.format(names=json.dumps(names, ensure_ascii=False), rules=SYMBOL_RULES)


def strip_markdown_fences(text: str) -> str:
    match = FENCE_PATTERN.match(text)
    return match.group(1) if match else text.strip()


def parse_json_response(text: str) -> Any:
    """Decode a reasoning-service answer.

    Raises:
        UpstreamFormatError: If the text is not valid JSON after fence stripping
    """
    try:
        return json.loads(strip_markdown_fences(text))
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(f"Unparseable reasoning response: {text[:200]!r}")
        raise UpstreamFormatError(f"Reasoning response is not valid JSON: {e}", raw=text) from e


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, list):
        value = ", ".join(str(v) for v in value if v)
    value = str(value).strip()
    return value or None


def _to_resolved(item: dict[str, Any], raw_input: str) -> ResolvedTicker | None:
    """Build a ResolvedTicker from one answer object, or None if it names no ticker."""
    symbol = normalize_symbol(str(item.get("symbol") or ""))
    if not symbol or symbol == UNKNOWN_SYMBOL or not is_valid_symbol(symbol):
        return None
    return ResolvedTicker(
        symbol=symbol,
        company_name=_optional_text(item.get("company_name")) or raw_input,
        sector=_optional_text(item.get("sector")),
        industry=_optional_text(item.get("industry")),
        description=_optional_text(item.get("description")),
        competitors=_optional_text(item.get("competitors")),
        source_name=raw_input,
    )


class NameResolver:
    """Resolves names to tickers with one reasoning-service call per request."""

    def __init__(self, reasoning_service: ReasoningServiceInterface, max_output_tokens: int = 200):
        self.reasoning_service = reasoning_service
        self.max_output_tokens = max_output_tokens

    async def resolve(self, raw_input: str) -> ResolvedTicker:
        """
        Resolve a single name.

        Args:
            raw_input: Company or fund name, or an ISIN

        Returns:
            ResolvedTicker

        Raises:
            UpstreamFormatError: If the answer is not a JSON object
            UnresolvableNameError: If the service answers UNKNOWN or no usable symbol
            UpstreamUnavailableError: If the reasoning service call fails
        """
        name = raw_input.strip()
        text = await self.reasoning_service.generate_json(
            build_single_prompt(name), max_output_tokens=self.max_output_tokens
        )
        data = parse_json_response(text)
        if not isinstance(data, dict):
            raise UpstreamFormatError("Reasoning response is not a JSON object", raw=text)

        resolved = _to_resolved(data, name)
        if resolved is None:
            logger.info(f"Reasoning service could not resolve '{name}'")
            raise UnresolvableNameError(name)

        logger.info(f"Resolved '{name}' to {resolved.symbol}")
        return resolved

    async def resolve_many(self, names: list[str]) -> list[ResolvedTicker]:
        """
        Resolve several names with a single reasoning-service call.

        Names the service cannot resolve are omitted from the result.

        Raises:
            UpstreamFormatError: If the answer is not parseable as a whole
            UpstreamUnavailableError: If the reasoning service call fails
        """
        unique: list[str] = []
        for name in names:
            name = name.strip()
            if name and name not in unique:
                unique.append(name)
        if not unique:
            return []

        text = await self.reasoning_service.generate_json(
            build_batch_prompt(unique), max_output_tokens=self.max_output_tokens * len(unique)
        )
        data = parse_json_response(text)
        items = data.get("results") if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise UpstreamFormatError("Batch response has no results array", raw=text)

        resolved: list[ResolvedTicker] = []
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                continue
            raw_input = _optional_text(item.get("input"))
            if raw_input is None:
                raw_input = unique[index] if index < len(unique) else str(item.get("symbol") or "")
            ticker = _to_resolved(item, raw_input)
            if ticker is None:
                logger.info(f"Batch resolution skipped unresolvable '{raw_input}'")
                continue
            resolved.append(ticker)

        logger.info(f"Batch resolved {len(resolved)}/{len(unique)} names")
        return resolved
