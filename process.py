from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable

from config import Settings, get_settings
from logging_setup import setup_logging
from scrapers import FetchError, ParseError, Quote, fetch_carbon_text, parse_price_info, utc_now_iso
from storage import SeriesStore, StoreError, build_store

STAGE_FETCHING = "fetching"
STAGE_EXTRACTING = "extracting"
STAGE_APPENDING = "appending"
STAGE_CANCELLED = "cancelled"

logger = logging.getLogger(__name__)

Fetcher = Callable[[Settings, float | None], str]
Extractor = Callable[[str], Quote]


class CycleError(Exception):
    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"Update cycle failed while {stage}: {message}")
        self.stage = stage


@dataclass
class StatsSnapshot:
    update_count: int
    error_count: int
    last_error: str | None
    last_update: str | None


class UpdateStats:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._update_count = 0
        self._error_count = 0
        self._last_error: str | None = None
        self._last_update: str | None = None

    def record_success(self, stamp: str) -> None:
        with self._lock:
            self._update_count += 1
            self._last_update = stamp

    def record_failure(self, err: Exception) -> None:
        with self._lock:
            self._error_count += 1
            self._last_error = str(err)

    def snapshot(self) -> StatsSnapshot:
        with self._lock:
            return StatsSnapshot(self._update_count, self._error_count, self._last_error, self._last_update)


def remaining_seconds(deadline: float | None) -> float | None:
    if deadline is None:
        return None
    return deadline - time.monotonic()


class UpdateOrchestrator:
    """Runs one fetch -> extract -> append cycle per call.

    Overlapping calls are allowed; the only shared side effect is
    ``SeriesStore.append``, which serializes itself.
    """

    def __init__(
        self,
        store: SeriesStore,
        settings: Settings,
        fetch: Fetcher = fetch_carbon_text,
        extract: Extractor = parse_price_info,
    ) -> None:
        self.store = store
        self.settings = settings
        self.stats = UpdateStats()
        self._fetch = fetch
        self._extract = extract

    def run_update_cycle(self, deadline: float | None = None) -> Quote:
        try:
            record = self._run(deadline)
        except CycleError as err:
            self.stats.record_failure(err)
            logger.error("%s", err)
            raise
        self.stats.record_success(record.observed_at or utc_now_iso())
        logger.info(
            "Price info updated: price=%.2f %s, date=%s, daily=%s, monthly=%s, yearly=%s, status=%s",
            record.price,
            record.currency,
            record.date,
            record.daily_change,
            record.monthly_change,
            record.yearly_change,
            record.status,
        )
        return record

    def _run(self, deadline: float | None) -> Quote:
        logger.info("Starting price update")

        timeout = remaining_seconds(deadline)
        if timeout is not None and timeout <= 0:
            raise CycleError(STAGE_CANCELLED, "deadline expired before fetch")
        try:
            text = self._fetch(self.settings, timeout)
        except FetchError as err:
            raise CycleError(STAGE_FETCHING, str(err)) from err

        timeout = remaining_seconds(deadline)
        if timeout is not None and timeout <= 0:
            raise CycleError(STAGE_CANCELLED, "deadline expired after fetch")

        try:
            quote = self._extract(text)
        except ParseError as err:
            raise CycleError(STAGE_EXTRACTING, str(err)) from err

        quote = replace(quote, observed_at=utc_now_iso(), status=None)
        try:
            return self.store.append(quote)
        except StoreError as err:
            raise CycleError(STAGE_APPENDING, str(err)) from err


def main() -> int:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_DIR)
    orchestrator = UpdateOrchestrator(build_store(settings), settings)
    try:
        record = orchestrator.run_update_cycle()
    except CycleError as err:
        print(f"Run status: failed ({err.stage})")
        print(f"- {err}")
        return 1
    print(f"Run status: {record.status}")
    print(
        "Summary: "
        f"price={record.price:.2f} {record.currency} date={record.date} "
        f"daily={record.daily_change} monthly={record.monthly_change} yearly={record.yearly_change} "
        f"records={len(orchestrator.store)}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
