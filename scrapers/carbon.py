"""EU carbon permit quote: page retrieval and text extraction.

The source page carries a one-sentence market summary in a ``<meta>`` tag, e.g.

    EU Carbon Permits increased to 85.23 EUR on January 15, 2024, up 2.5% from
    yesterday. The price has risen 5.2% this month and is up 15.3% compared to
    the same time last year.

``parse_price_info`` turns that sentence into a ``Quote``; it never touches the
network, so it can be exercised with plain strings.
"""
from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from bs4 import BeautifulSoup

from .common import fetch_url
from .types import Quote

if TYPE_CHECKING:
    from config import Settings

logger = logging.getLogger(__name__)

CARBON_URL = "https://tradingeconomics.com/commodity/carbon"
META_MARKER = "EU Carbon Permits"

_NUMBER = r"(\d+(?:\.\d+)?)"
_PRICE = r"(?<![\d.,])(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"
_MONTH = (
    r"(?:Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?|Aug(?:ust)?"
    r"|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)\.?"
)
_YEARLY_TAIL = r"\s+compared\s+to\s+the\s+same\s+time\s+last\s+year"

PRICE_PATTERN = re.compile(_PRICE + r"\s+([A-Z]{3})\s+on\s+(" + _MONTH + r"\s+\d{1,2},\s+\d{4})")
DAILY_PATTERN = re.compile(r"\b(up|down)\s+" + _NUMBER + r"%(?!" + _YEARLY_TAIL + r")", re.IGNORECASE)
MONTHLY_PATTERN = re.compile(r"\b(risen|fallen)\s+" + _NUMBER + r"%", re.IGNORECASE)
YEARLY_PATTERN = re.compile(r"\b(up|down)\s+" + _NUMBER + r"%" + _YEARLY_TAIL, re.IGNORECASE)

NEGATIVE_WORDS = {"down", "fallen"}


class ParseError(Exception):
    pass


class NoPriceMatch(ParseError):
    def __init__(self, text: str) -> None:
        preview = " ".join(text.split())[:120]
        super().__init__(f"Cannot parse price info from text: {preview!r}")


def _signed_change(pattern: re.Pattern[str], text: str) -> float | None:
    match = pattern.search(text)
    if match is None:
        return None
    direction, magnitude = match.group(1), float(match.group(2))
    if direction.lower() in NEGATIVE_WORDS:
        return -magnitude
    return magnitude


def parse_price_info(text: str) -> Quote:
    price_match = PRICE_PATTERN.search(text)
    if price_match is None:
        raise NoPriceMatch(text)

    price = float(price_match.group(1).replace(",", ""))
    if price <= 0:
        raise NoPriceMatch(text)

    return Quote(
        price=price,
        date=" ".join(price_match.group(3).split()),
        currency=price_match.group(2),
        daily_change=_signed_change(DAILY_PATTERN, text),
        monthly_change=_signed_change(MONTHLY_PATTERN, text),
        yearly_change=_signed_change(YEARLY_PATTERN, text),
    )


def extract_quote_fragment(html: str, marker: str = META_MARKER) -> str:
    """Return the content of the first ``<meta>`` tag mentioning ``marker``.

    Pages without such a tag fall back to their visible text so the extractor
    still gets a chance at it.
    """
    soup = BeautifulSoup(html, "html.parser")
    tag = soup.find("meta", attrs={"content": lambda value: bool(value) and marker in value})
    if tag is not None:
        return str(tag["content"])
    logger.warning("No <meta> tag containing %r; using page text", marker)
    return soup.get_text(" ", strip=True)


def build_headers(settings: Settings) -> dict[str, str]:
    headers = {
        "User-Agent": settings.USER_AGENT,
        "Accept": settings.ACCEPT,
        "Accept-Language": settings.ACCEPT_LANGUAGE,
    }
    if settings.SOURCE_COOKIE:
        headers["Cookie"] = settings.SOURCE_COOKIE
    return headers


def fetch_carbon_text(settings: Settings, timeout: float | None = None) -> str:
    """Fetch the source page once and return the fragment holding the quote."""
    effective_timeout = settings.FETCH_TIMEOUT if timeout is None else min(timeout, settings.FETCH_TIMEOUT)
    html = fetch_url(settings.SOURCE_URL, headers=build_headers(settings), timeout=effective_timeout)
    return extract_quote_fragment(html, marker=settings.SOURCE_MARKER)
