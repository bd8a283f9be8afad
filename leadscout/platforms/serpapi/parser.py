"""Parse SerpAPI JSON bodies into SearchHit models."""

import logging
from typing import Any

from leadscout.core.schemas import SearchHit

logger = logging.getLogger(__name__)


def parse_organic_results(data: Any) -> list[SearchHit]:
    """Extract ``organic_results`` in provider order.

    Items without a link are skipped. Raises ValueError when the body is not
    a JSON object.
    """
    if not isinstance(data, dict):
        msg = f"Unexpected SerpAPI body type: {type(data).__name__}"
        raise ValueError(msg)

    if data.get("error"):
        msg = f"SerpAPI error: {data['error']}"
        raise ValueError(msg)

    hits: list[SearchHit] = []
    for item in data.get("organic_results") or []:
        if not isinstance(item, dict):
            continue
        link = str(item.get("link") or "").strip()
        if not link:
            logger.debug("Skipping organic result without link: %r", item.get("title"))
            continue
        hits.append(
            SearchHit(
                title=_text(item.get("title")),
                link=link,
                snippet=_text(item.get("snippet")),
            )
        )
    return hits


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
