"""SerpAPI request parameters and pagination helpers.

Pure functions - no network access.
"""

from leadscout.core.schemas import SearchQuery

SERPAPI_ENDPOINT = "https://serpapi.com/search"


def build_params(query: SearchQuery, api_key: str) -> dict[str, str]:
    """Build SerpAPI Google-engine query parameters.

    ``start`` is omitted for the first page.
    """
    params: dict[str, str] = {
        "engine": "google",
        "q": query.keyword,
        "hl": query.language,
        "gl": query.region,
        "num": str(query.num),
        "api_key": api_key,
    }
    if query.offset > 0:
        params["start"] = str(query.offset)
    return params


def page_offsets(page_size: int, pages: int) -> list[int]:
    """Return the result offset of each requested page (``page_size * n``)."""
    return [page_size * n for n in range(pages)]


def should_stop_pagination(results_found: int, page_size: int) -> bool:
    """A page shorter than ``page_size`` is the last one."""
    return results_found < page_size
