from __future__ import annotations

from functools import lru_cache

from src.core.config import get_settings
from src.repositories.staff_reports_repository import StaffReportsRepository
from src.services.report_cache import ReportCache
from src.services.staff_reports_service import StaffReportsService


@lru_cache
def get_staff_reports_repository() -> StaffReportsRepository:
    return StaffReportsRepository()


@lru_cache
def get_report_cache() -> ReportCache:
    return ReportCache(ttl_seconds=get_settings().report_cache_ttl_seconds)


def get_staff_reports_service() -> StaffReportsService:
    return StaffReportsService(
        repository=get_staff_reports_repository(),
        cache=get_report_cache(),
        max_workers=get_settings().report_fetch_max_workers,
    )
