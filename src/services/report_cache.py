from __future__ import annotations

import time
from datetime import date
from threading import Lock
from typing import Callable, Dict, Optional, Tuple

from src.schemas.staff_reports import StaffReport

ReportCacheKey = Tuple[str, date, date]


class ReportCache:
    """Time-bounded store of finished staff reports keyed by staff id and date range.

    Each date range has its own key, so a slow request for an old range can
    never replace the report for a newer one.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[ReportCacheKey, Tuple[float, StaffReport]] = {}
        self._lock = Lock()

    @staticmethod
    def build_key(staff_id: str, date_from: date, date_to: date) -> ReportCacheKey:
        return (staff_id, date_from, date_to)

    def get(self, key: ReportCacheKey) -> Optional[StaffReport]:
        if self.ttl_seconds <= 0:
            return None
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, report = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[key]
                return None
            return report

    def put(self, key: ReportCacheKey, report: StaffReport) -> None:
        if self.ttl_seconds <= 0:
            return
        with self._lock:
            self._evict_expired()
            self._entries[key] = (self._clock(), report)

    def invalidate(self, staff_id: Optional[str] = None) -> None:
        with self._lock:
            if staff_id is None:
                self._entries.clear()
                return
            for key in [key for key in self._entries if key[0] == staff_id]:
                del self._entries[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [
            key for key, (stored_at, _) in self._entries.items() if now - stored_at >= self.ttl_seconds
        ]
        for key in expired:
            del self._entries[key]
