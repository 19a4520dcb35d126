"""Bounded, append-only series of carbon price quotes.

``SeriesStore`` owns the in-memory sequence and its lock; a backend decides
whether (and where) the sequence survives a restart. Every mutation funnels
through ``SeriesStore.append``.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Protocol, Sequence

from pydantic import ValidationError

from models import QuoteRecord
from scrapers.types import STATUS_UNCHANGED, STATUS_UPDATED, Quote, Status

if TYPE_CHECKING:
    from config import Settings

DEFAULT_MAX_RECORDS = 30

logger = logging.getLogger(__name__)


class StoreError(Exception):
    pass


class PersistFailed(StoreError):
    pass


class SnapshotCorrupt(StoreError):
    pass


class ReadWriteLock:
    """Many concurrent readers or a single writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class SnapshotBackend(Protocol):
    def load(self) -> list[Quote]: ...

    def save(self, records: Sequence[Quote]) -> None: ...


class MemoryBackend:
    """Keeps nothing; the series starts empty on every restart."""

    def load(self) -> list[Quote]:
        return []

    def save(self, records: Sequence[Quote]) -> None:
        return None


class JsonFileBackend:
    """Full-rewrite JSON array snapshot, replaced atomically on every save."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> list[Quote]:
        if not self.path.exists():
            return []
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as err:
            raise SnapshotCorrupt(f"Cannot read snapshot {self.path}: {err}") from err
        if not isinstance(payload, list):
            raise SnapshotCorrupt(f"Snapshot {self.path} is not a JSON array")
        try:
            return [QuoteRecord.model_validate(item).to_quote() for item in payload]
        except ValidationError as err:
            raise SnapshotCorrupt(f"Invalid record in snapshot {self.path}: {err}") from err

    def save(self, records: Sequence[Quote]) -> None:
        payload = [QuoteRecord.from_quote(q).model_dump(mode="json", by_alias=True) for q in records]
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def classify_status(previous: Quote | None, current: Quote) -> Status:
    if previous is not None and current.same_observation(previous):
        return STATUS_UNCHANGED
    return STATUS_UPDATED


def backfill_statuses(records: Sequence[Quote]) -> tuple[list[Quote], int]:
    """Fill in missing statuses, comparing each record to its predecessor."""
    filled: list[Quote] = []
    changed = 0
    for record in records:
        if record.status is None:
            previous = filled[-1] if filled else None
            record = replace(record, status=classify_status(previous, record))
            changed += 1
        filled.append(record)
    return filled, changed


class SeriesStore:
    def __init__(self, backend: SnapshotBackend | None = None, max_records: int | None = DEFAULT_MAX_RECORDS) -> None:
        if max_records is not None and max_records < 1:
            raise ValueError("max_records must be positive")
        self._lock = ReadWriteLock()
        self._backend: SnapshotBackend = backend or MemoryBackend()
        self._max_records = max_records
        self._records: list[Quote] = self._load()

    @property
    def max_records(self) -> int | None:
        return self._max_records

    def _retain(self, records: list[Quote]) -> list[Quote]:
        if self._max_records is not None and len(records) > self._max_records:
            return records[-self._max_records :]
        return records

    def _load(self) -> list[Quote]:
        loaded = self._backend.load()
        records, backfilled = backfill_statuses(loaded)
        retained = self._retain(records)
        evicted = len(records) - len(retained)
        if backfilled or evicted:
            logger.info(
                "Rewriting snapshot: backfilled=%d evicted=%d retained=%d", backfilled, evicted, len(retained)
            )
            try:
                self._backend.save(retained)
            except OSError as err:
                raise PersistFailed(f"Failed to rewrite snapshot after load: {err}") from err
        logger.info("Series store ready with %d records", len(retained))
        return retained

    def append(self, quote: Quote) -> Quote:
        """Classify ``quote`` against the latest record and commit it.

        The record only becomes visible once the backend has saved it; on a
        save failure ``PersistFailed`` is raised and the series is unchanged.
        """
        with self._lock.write():
            previous = self._records[-1] if self._records else None
            record = replace(quote, status=classify_status(previous, quote))
            candidate = self._retain([*self._records, record])
            try:
                self._backend.save(candidate)
            except OSError as err:
                raise PersistFailed(f"Failed to persist quote for {record.date}: {err}") from err
            self._records = candidate
        return record

    def latest(self) -> Quote | None:
        with self._lock.read():
            return self._records[-1] if self._records else None

    def history(self) -> list[Quote]:
        with self._lock.read():
            return list(self._records)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._records)


def build_store(settings: Settings) -> SeriesStore:
    backend: SnapshotBackend
    if settings.STORAGE_BACKEND == "memory":
        backend = MemoryBackend()
    else:
        backend = JsonFileBackend(Path(settings.DATA_DIR) / settings.SNAPSHOT_FILE)
    return SeriesStore(backend=backend, max_records=settings.MAX_RECORDS)
