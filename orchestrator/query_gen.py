"""Search-query generation: prompt building and permissive parsing of the answer."""

import json
import re
from dataclasses import dataclass
from typing import Union

from utils.logger import get_logger

logger = get_logger(__name__)

_FENCE_OPEN = re.compile(r"^\s*```[a-zA-Z]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")
_BRACKETED = re.compile(r"\[[\s\S]*\]")


@dataclass(frozen=True)
class ParsedQueries:
    queries: tuple[str, ...]


@dataclass(frozen=True)
class Unparseable:
    reason: str


QueryParseResult = Union[ParsedQueries, Unparseable]


def strip_code_fences(text: str) -> str:
    """Remove a leading ```lang fence and a trailing ``` fence, then trim."""
    cleaned = text.strip()
    cleaned = _FENCE_OPEN.sub("", cleaned, count=1)
    cleaned = _FENCE_CLOSE.sub("", cleaned, count=1)
    return cleaned.strip()


def _as_queries(value: object, max_queries: int) -> tuple[str, ...] | None:
    if not isinstance(value, list):
        return None
    queries: list[str] = []
    seen: set[str] = set()
    for item in value:
        if not isinstance(item, str):
            continue
        query = " ".join(item.split())
        if not query or query.lower() in seen:
            continue
        seen.add(query.lower())
        queries.append(query)
    return tuple(queries[:max_queries])


def parse_query_array(text: str, max_queries: int = 8) -> QueryParseResult:
    """
    Recover a JSON array of query strings from free-form model output.

    Two stages: strict ``json.loads`` of the fence-stripped text, then the
    first bracket-delimited substring. Anything else is ``Unparseable``.
    """
    cleaned = strip_code_fences(text or "")
    if not cleaned:
        return Unparseable("empty response")

    try:
        queries = _as_queries(json.loads(cleaned), max_queries)
        if queries is not None:
            return ParsedQueries(queries)
    except json.JSONDecodeError:
        pass

    bracketed = _BRACKETED.search(cleaned)
    if bracketed:
        try:
            queries = _as_queries(json.loads(bracketed.group(0)), max_queries)
            if queries is not None:
                return ParsedQueries(queries)
        except json.JSONDecodeError:
            pass

    logger.warning(
        "Query generation answer is not a JSON array",
        extra={"extra_fields": {"response_preview": cleaned[:200]}},
    )
    return Unparseable("no JSON array of strings found")


QUERY_SYSTEM_PROMPT = (
    "You plan fact-checking research for blog posts. "
    "Answer with a JSON array of search query strings and nothing else."
)


def build_query_prompt(title: str, protected_content: str, prefix_chars: int, max_queries: int) -> str:
    excerpt = protected_content[:prefix_chars]
    return (
        f"Blog title: {title}\n\n"
        f"Blog content (excerpt):\n{excerpt}\n\n"
        f"Write up to {max_queries} web search queries that would verify or update "
        "the factual claims above: prices, plans, limits, user counts, feature names, "
        "dates and statistics. Prefer specific product names and the current year.\n"
        "Ignore tokens of the form ___WIDGET_n___.\n"
        'Return ONLY a JSON array, for example: ["query one", "query two"]'
    )
