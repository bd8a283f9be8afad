"""Long-tail keyword generation.

Variants come from an LLM provider and replace the core keywords for a run
when any are produced. Any provider failure falls back to the core keywords.
"""

import asyncio
import logging
import re

from leadscout.core.config import LLMConfig, SearchConfig
from leadscout.keywords.llm import LLMProvider, get_provider

logger = logging.getLogger(__name__)

MAX_PER_KEYWORD = 10

# Leading numbering or bullets such as "1.", "2)", "-", "*", "•".
_PREFIX_RE = re.compile(r"^[\d.\-)*•\s]+")


def build_prompt(keywords: list[str], per_keyword: int) -> str:
    """Build the user message listing the core keywords, one per line."""
    lines = "\n".join(f"{i}. {kw}" for i, kw in enumerate(keywords, start=1))
    return (
        f"Core keywords ({len(keywords)} lines):\n\n{lines}\n\n"
        f"Suggest about {per_keyword} long-tail keywords for EACH line "
        f"(about {len(keywords) * per_keyword} lines in total)."
    )


def parse_keyword_lines(raw_text: str, limit: int) -> list[str]:
    """Strip numbering/bullets, drop blanks and duplicates, cap at ``limit``."""
    seen: set[str] = set()
    result: list[str] = []
    for line in raw_text.splitlines():
        kw = _PREFIX_RE.sub("", line).strip()
        if not kw or kw.lower() in seen:
            continue
        seen.add(kw.lower())
        result.append(kw)
        if len(result) >= limit:
            break
    return result


def generate_long_tail(
    keywords: list[str],
    per_keyword: int,
    provider: LLMProvider,
    model: str | None = None,
) -> list[str]:
    """Ask the provider for long-tail variants of ``keywords``.

    Returns an empty list when there is nothing to generate.

    Raises:
        ValueError / ImportError: Propagated from the provider (missing key or SDK).
    """
    per_keyword = min(MAX_PER_KEYWORD, per_keyword)
    if not keywords or per_keyword <= 0:
        return []
    raw = provider.complete(build_prompt(keywords, per_keyword), model=model)
    return parse_keyword_lines(raw, limit=len(keywords) * per_keyword)


async def resolve_keywords(config: SearchConfig, llm_config: LLMConfig) -> list[str]:
    """Return the keywords a run should search.

    The core keywords come first, followed by any long-tail variants not
    already among them (compared case-insensitively).
    """
    if config.long_tail_per_keyword <= 0 or not config.keywords:
        return list(config.keywords)

    try:
        provider = get_provider(llm_config.provider)
        variants = await asyncio.to_thread(
            generate_long_tail,
            config.keywords,
            config.long_tail_per_keyword,
            provider,
            llm_config.model,
        )
    except Exception:
        logger.warning(
            "Long-tail generation via '%s' failed - using core keywords",
            llm_config.provider,
            exc_info=True,
        )
        return list(config.keywords)

    if not variants:
        logger.info("No long-tail keywords generated - using core keywords")
        return list(config.keywords)

    combined: list[str] = []
    seen: set[str] = set()
    for keyword in [*config.keywords, *variants]:
        key = keyword.strip().lower()
        if key and key not in seen:
            seen.add(key)
            combined.append(keyword)
    logger.info("Searching %d keywords including long-tail variants", len(combined))
    return combined
