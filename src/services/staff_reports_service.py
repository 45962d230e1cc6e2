from __future__ import annotations

import logging
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from datetime import date
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx

from src.analytics.periods import ComparisonPeriods, resolve_comparison_periods
from src.analytics.staff_performance import rank_client_activity
from src.analytics.staff_report import (
    StaffReportSnapshot,
    assemble_staff_report,
    build_empty_staff_report,
)
from src.core.errors import UpstreamFetchError
from src.repositories.staff_reports_repository import StaffReportsRepository
from src.schemas.staff_reports import StaffProfile, StaffReport
from src.services.report_cache import ReportCache

logger = logging.getLogger(__name__)

UNKNOWN_STAFF_NAME = "Unknown"

# ValueError covers undecodable JSON bodies and pydantic ValidationError on malformed rows.
UPSTREAM_ERRORS = (httpx.HTTPError, ValueError)


class StaffReportsService:
    def __init__(
        self,
        repository: StaffReportsRepository,
        cache: Optional[ReportCache] = None,
        max_workers: int = 6,
        today_provider: Callable[[], date] = date.today,
    ) -> None:
        self.repository = repository
        self.cache = cache
        self.max_workers = max_workers
        self.today_provider = today_provider

    def get_report(self, staff_id: str, date_from: date, date_to: date) -> StaffReport:
        periods = resolve_comparison_periods(date_from, date_to)
        cache_key = ReportCache.build_key(staff_id, date_from, date_to)
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug("Staff report cache hit for %s %s..%s", staff_id, date_from, date_to)
                return cached

        profile = self._get_profile(staff_id)
        mapping = self._call("pos_staff_mapping", self.repository.get_pos_mapping, staff_id)
        if mapping is None or not mapping.pos_staff_id:
            logger.info("Staff %s has no point-of-sale mapping; returning empty report", staff_id)
            report = build_empty_staff_report(profile, periods)
        else:
            snapshot = self._fetch_snapshot(mapping.pos_staff_id, periods)
            top_client_ids = [
                client.client_id for client in rank_client_activity(snapshot.current_appointments)
            ]
            client_names = self._lookup_client_names(top_client_ids)
            report = assemble_staff_report(
                profile=profile,
                periods=periods,
                snapshot=snapshot,
                client_names=client_names,
                today=self.today_provider(),
            )

        if self.cache is not None:
            self.cache.put(cache_key, report)
        return report

    def _get_profile(self, staff_id: str) -> StaffProfile:
        record = self._call("employee_profiles", self.repository.get_employee_profile, staff_id)
        role = self._call("user_roles", self.repository.get_primary_role, staff_id)
        location_name = None
        if record is not None and record.location_id:
            location_name = self._call(
                "locations", self.repository.get_location_name, record.location_id
            )
        if record is None:
            return StaffProfile(user_id=staff_id, name=UNKNOWN_STAFF_NAME, role=role)
        return StaffProfile(
            user_id=staff_id,
            name=record.display_name or record.full_name or UNKNOWN_STAFF_NAME,
            display_name=record.display_name or None,
            photo_url=record.photo_url or None,
            email=record.email or None,
            role=role,
            hire_date=record.hire_date,
            location_name=location_name,
        )

    def _fetch_snapshot(self, pos_staff_id: str, periods: ComparisonPeriods) -> StaffReportSnapshot:
        current, prior, two_prior = periods.current, periods.prior, periods.two_prior
        repository = self.repository
        fetchers: Dict[str, Callable[[], Sequence[Any]]] = {
            "current_appointments": partial(
                repository.list_appointments, current.start, current.end, pos_staff_id
            ),
            "prior_appointments": partial(
                repository.list_appointments, prior.start, prior.end, pos_staff_id
            ),
            "two_prior_appointments": partial(
                repository.list_appointments, two_prior.start, two_prior.end, pos_staff_id
            ),
            "line_items": partial(
                repository.list_transaction_items, pos_staff_id, current.start, current.end
            ),
            "current_metrics": partial(
                repository.list_weekly_metrics, current.start, current.end, pos_staff_id
            ),
            "prior_metrics": partial(
                repository.list_weekly_metrics, prior.start, prior.end, pos_staff_id
            ),
            "two_prior_metrics": partial(
                repository.list_weekly_metrics, two_prior.start, two_prior.end, pos_staff_id
            ),
            "team_appointments": partial(repository.list_appointments, current.start, current.end),
            "team_metrics": partial(repository.list_weekly_metrics, current.start, current.end),
            "commission_tiers": repository.list_commission_tiers,
        }

        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="staff-report"
        ) as executor:
            futures: Dict[str, Future] = {
                name: executor.submit(self._call, name, fetch) for name, fetch in fetchers.items()
            }
            done, not_done = wait(futures.values(), return_when=FIRST_EXCEPTION)
            failed = [
                future
                for future in futures.values()
                if future in done and future.exception() is not None
            ]
            if failed:
                for future in not_done:
                    future.cancel()
                raise failed[0].exception()
            results = {name: tuple(future.result()) for name, future in futures.items()}

        return StaffReportSnapshot(**results)

    def _lookup_client_names(self, client_ids: List[str]) -> Dict[str, str]:
        if not client_ids:
            return {}
        try:
            return self.repository.get_client_names(client_ids)
        except UPSTREAM_ERRORS:
            # Names are decoration; the ranked clients still render as "Unknown".
            logger.warning("Client name lookup failed for %d clients", len(client_ids), exc_info=True)
            return {}

    @staticmethod
    def _call(source: str, fetch: Callable[..., Any], *args: Any) -> Any:
        try:
            return fetch(*args)
        except UPSTREAM_ERRORS as exc:
            logger.warning("Staff report fetch failed for %s: %s", source, exc)
            raise UpstreamFetchError(source=source) from exc
