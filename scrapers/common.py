from __future__ import annotations

import codecs
import http.client
import logging
import urllib.error
import urllib.request
from datetime import datetime, timezone
from typing import Mapping

DEFAULT_TIMEOUT_SECONDS = 20
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:139.0) Gecko/20100101 Firefox/139.0"

logger = logging.getLogger(__name__)


class FetchError(Exception):
    pass


class SourceUnreachable(FetchError):
    def __init__(self, url: str, cause: BaseException) -> None:
        super().__init__(f"Failed to fetch URL: {url}: {cause}")
        self.url = url
        self.cause = cause


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _response_charset(response) -> str:
    charset = response.headers.get_content_charset() or "utf-8"
    try:
        codecs.lookup(charset)
    except LookupError:
        logger.warning("Unknown response charset %r, decoding as utf-8", charset)
        return "utf-8"
    return charset


def fetch_url(
    url: str,
    headers: Mapping[str, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> str:
    """Fetch ``url`` once and return the decoded body.

    Any transport problem (bad URL, DNS, refused connection, timeout, truncated
    body, HTTP status >= 400) is raised as ``SourceUnreachable`` with the
    original error attached.
    """
    request_headers = {"User-Agent": USER_AGENT}
    request_headers.update(headers or {})
    logger.debug("Requesting URL: %s (timeout=%.1fs)", url, timeout)
    try:
        req = urllib.request.Request(url, headers=request_headers)
        with urllib.request.urlopen(req, timeout=timeout) as response:
            charset = _response_charset(response)
            body = response.read()
    except (urllib.error.URLError, http.client.HTTPException, TimeoutError, OSError, ValueError) as err:
        raise SourceUnreachable(url, err) from err
    return body.decode(charset, errors="ignore")
