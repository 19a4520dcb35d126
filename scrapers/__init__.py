from .carbon import (
    NoPriceMatch,
    ParseError,
    extract_quote_fragment,
    fetch_carbon_text,
    parse_price_info,
)
from .common import FetchError, SourceUnreachable, fetch_url, utc_now_iso
from .types import STATUS_UNCHANGED, STATUS_UPDATED, Quote

__all__ = [
    "Quote",
    "STATUS_UPDATED",
    "STATUS_UNCHANGED",
    "FetchError",
    "SourceUnreachable",
    "ParseError",
    "NoPriceMatch",
    "fetch_url",
    "utc_now_iso",
    "parse_price_info",
    "extract_quote_fragment",
    "fetch_carbon_text",
]
