from __future__ import annotations

import json
import threading
from datetime import date

import httpx
import pytest
from pydantic import ValidationError

from src.core.errors import BadRequestError, UpstreamFetchError
from src.models.staff_performance import EmployeeProfileRecord, TransactionLineItemRecord
from src.services.report_cache import ReportCache
from src.services.staff_reports_service import StaffReportsService
from tests.factories import (
    StubStaffReportsRepository,
    appointment,
    commission_tier,
    line_item,
    weekly_metric,
)

WEEK_FROM = date(2026, 3, 2)
WEEK_TO = date(2026, 3, 8)
TODAY = date(2026, 3, 9)


def _service(repository, cache=None, max_workers=6) -> StaffReportsService:
    return StaffReportsService(
        repository=repository,
        cache=cache,
        max_workers=max_workers,
        today_provider=lambda: TODAY,
    )


def _seed_profile(repository: StubStaffReportsRepository) -> None:
    repository.profiles["staff-1"] = EmployeeProfileRecord(
        user_id="staff-1",
        full_name="Morgan Lee",
        display_name="Mo",
        email="mo@example.com",
        hire_date=date(2023, 5, 1),
        location_id="loc-1",
    )
    repository.roles["staff-1"] = "stylist"
    repository.locations["loc-1"] = "Downtown"


def _seed_busy_week(repository: StubStaffReportsRepository) -> None:
    _seed_profile(repository)
    repository.mappings["staff-1"] = "pos-1"
    repository.appointments = [
        appointment(date(2026, 3, 2), "200", "completed", "c-1", tip_amount="40", rebooked=True),
        appointment(date(2026, 3, 3), "150", "Completed", "c-2", tip_amount="30"),
        appointment(date(2026, 3, 3), "100", "completed", "c-1", tip_amount="20", rebooked=True),
        appointment(date(2026, 3, 5), "250", "paid", "c-3", tip_amount="50"),
        appointment(date(2026, 3, 6), "0", "no-show", "c-4"),
        appointment(date(2026, 3, 6), "0", "cancelled", None),
        # prior and two-prior windows
        appointment(date(2026, 2, 24), "300", "completed", "c-1"),
        appointment(date(2026, 2, 17), "200", "completed", "c-2"),
        # teammates in the current window
        appointment(date(2026, 3, 2), "500", "completed", "c-9", staff_id="pos-2"),
        appointment(date(2026, 3, 4), "100", "completed", "c-8", staff_id="pos-2"),
    ]
    repository.line_items = [
        line_item("Service", "600", "tx-1", "Balayage", transaction_date=date(2026, 3, 2)),
        line_item("Retail", "80", "tx-1", "Mask", quantity=2, transaction_date=date(2026, 3, 2)),
        line_item("Service", "500", "tx-2", "Cut & Color", transaction_date=date(2026, 3, 3)),
        line_item("Gift Card", "100", "tx-3", "Gift Card", transaction_date=date(2026, 3, 4)),
    ]
    repository.metrics = [
        weekly_metric(date(2026, 3, 2), rebooking_rate=64, retention_rate=72, new_clients=2),
        weekly_metric(date(2026, 2, 23), rebooking_rate=50, retention_rate=70, new_clients=1),
        weekly_metric(date(2026, 3, 2), rebooking_rate=40, retention_rate=50, new_clients=4, staff_id="pos-2"),
    ]
    repository.tiers = [
        commission_tier("Base", "0", "0.10", "0.05"),
        commission_tier("Silver", "1000", "0.15", "0.08"),
    ]
    repository.client_names = {"c-1": "Avery Stone", "c-3": "Riley Park"}


def test_small_sample_report_gates_experience_score(stub_repository) -> None:
    _seed_profile(stub_repository)
    stub_repository.mappings["staff-1"] = "pos-1"
    stub_repository.appointments = [
        appointment(date(2026, 3, 2), "150", "completed", "c-1", rebooked=True),
        appointment(date(2026, 3, 3), "150", "completed", "c-2", rebooked=True),
        appointment(date(2026, 3, 4), "150", "completed", "c-3", rebooked=True),
        appointment(date(2026, 3, 5), "0", "cancelled", "c-4"),
        appointment(date(2026, 2, 25), "300", "completed", "c-1"),
    ]
    stub_repository.metrics = [weekly_metric(date(2026, 3, 2), rebooking_rate=90)]

    report = _service(stub_repository).get_report("staff-1", WEEK_FROM, WEEK_TO)

    assert report.revenue.total == 450.0
    assert report.revenue.prior_total == 300.0
    assert report.revenue.revenue_change == pytest.approx(50.0)
    assert report.productivity.total_appointments == 4
    assert report.client_metrics.rebooking_rate == 90.0
    assert report.experience_score.composite == 0
    assert report.experience_score.status == "needs-attention"


def test_full_report_combines_every_source(stub_repository) -> None:
    _seed_busy_week(stub_repository)

    report = _service(stub_repository).get_report("staff-1", WEEK_FROM, WEEK_TO)

    assert report.has_pos_mapping is True
    assert report.profile.name == "Mo"
    assert report.profile.role == "stylist"
    assert report.profile.location_name == "Downtown"
    assert report.periods.prior.date_from == date(2026, 2, 23)
    assert report.periods.two_prior.date_to == date(2026, 2, 22)

    assert report.revenue.total == 700.0
    assert report.revenue.service == 1100.0
    assert report.revenue.product == 80.0
    assert report.revenue.avg_ticket == 175.0
    assert report.revenue.revenue_change == pytest.approx(133.33)
    assert [point.revenue for point in report.revenue.daily_trend] == [200.0, 250.0, 250.0, 0.0]

    assert report.productivity.completed == 4
    assert report.productivity.no_shows == 1
    assert report.productivity.cancelled == 1
    assert report.productivity.unique_clients == 4
    assert report.productivity.avg_per_day == pytest.approx(1.2)

    assert report.client_metrics.rebooking_rate == 64.0
    assert report.client_metrics.retention_rate == 72.0
    assert report.client_metrics.new_clients == 2

    assert report.retail.units_sold == 2
    assert report.retail.attachment_rate == 50
    assert report.retail.unclassified_items == 1

    # rebook 64, tips 140/700 = 20% -> 80, retention 72, attachment 50
    assert report.experience_score.composite == 68
    assert report.experience_score.status == "watch"
    assert report.experience_score.tip_rate == 20.0

    assert [service.name for service in report.top_services] == ["Balayage", "Cut & Color"]
    assert [client.client_id for client in report.top_clients] == ["c-1", "c-3", "c-2", "c-4"]
    assert [client.name for client in report.top_clients] == [
        "Avery Stone",
        "Riley Park",
        "Unknown",
        "Unknown",
    ]
    assert stub_repository.client_lookups == [["c-1", "c-3", "c-2", "c-4"]]

    assert report.commission.tier_name == "Silver"
    assert report.commission.service_commission == 165.0
    assert report.commission.product_commission == 6.4
    assert report.commission.total_commission == 171.4

    assert report.team_averages.staff_count == 2
    assert report.team_averages.metrics_staff_count == 2
    assert report.team_averages.revenue == 650.0
    assert report.team_averages.rebooking_rate == 52.0

    assert report.multi_period_trend.revenue == (200.0, 300.0, 700.0)
    # The prior window has weekly metrics; the two-prior window falls back to checkout flags.
    assert report.multi_period_trend.rebooking == (0.0, 50.0, 64.0)
    assert report.multi_period_trend.retention == (0.0, 70.0, 72.0)


def test_unmapped_staff_gets_zeroed_report_with_profile(stub_repository) -> None:
    _seed_profile(stub_repository)
    stub_repository.appointments = [appointment(date(2026, 3, 2), "500")]

    report = _service(stub_repository).get_report("staff-1", WEEK_FROM, WEEK_TO)

    assert report.has_pos_mapping is False
    assert report.profile.name == "Mo"
    assert report.revenue.total == 0.0
    assert report.top_services == ()
    assert report.top_clients == ()
    assert report.commission.tier_name == ""
    assert report.retail.unclassified_items == 0
    assert report.multi_period_trend.revenue == (0.0, 0.0, 0.0)
    assert stub_repository.calls["list_appointments"] == 0


def test_missing_profile_renders_unknown_name(stub_repository) -> None:
    report = _service(stub_repository).get_report("staff-404", WEEK_FROM, WEEK_TO)

    assert report.profile.user_id == "staff-404"
    assert report.profile.name == "Unknown"


def test_identical_inputs_produce_identical_reports(stub_repository) -> None:
    _seed_busy_week(stub_repository)

    first = _service(stub_repository).get_report("staff-1", WEEK_FROM, WEEK_TO)
    second = _service(stub_repository).get_report("staff-1", WEEK_FROM, WEEK_TO)

    assert first.model_dump_json(by_alias=True) == second.model_dump_json(by_alias=True)


def test_cached_report_skips_upstream_fetches(stub_repository) -> None:
    _seed_busy_week(stub_repository)
    service = _service(stub_repository, cache=ReportCache(ttl_seconds=300))

    first = service.get_report("staff-1", WEEK_FROM, WEEK_TO)
    calls_after_first = dict(stub_repository.calls)
    second = service.get_report("staff-1", WEEK_FROM, WEEK_TO)

    assert second is first
    assert dict(stub_repository.calls) == calls_after_first

    service.get_report("staff-1", date(2026, 3, 1), WEEK_TO)
    assert stub_repository.calls["get_pos_mapping"] == 2


def test_fetch_failure_propagates_and_is_not_cached(stub_repository) -> None:
    _seed_busy_week(stub_repository)

    def failing_line_items(*_: object):
        raise httpx.ConnectError("connection refused")

    stub_repository.list_transaction_items = failing_line_items
    cache = ReportCache(ttl_seconds=300)

    with pytest.raises(UpstreamFetchError) as exc_info:
        _service(stub_repository, cache=cache).get_report("staff-1", WEEK_FROM, WEEK_TO)

    assert exc_info.value.source == "line_items"
    assert exc_info.value.status_code == 502
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
    assert len(cache) == 0


def test_malformed_upstream_row_is_reported_as_fetch_failure(stub_repository) -> None:
    _seed_busy_week(stub_repository)

    def malformed_line_items(*_: object):
        return [TransactionLineItemRecord.model_validate({"quantity": "many"})]

    stub_repository.list_transaction_items = malformed_line_items

    with pytest.raises(UpstreamFetchError) as exc_info:
        _service(stub_repository).get_report("staff-1", WEEK_FROM, WEEK_TO)

    assert exc_info.value.source == "line_items"
    assert isinstance(exc_info.value.__cause__, ValidationError)


def test_undecodable_upstream_body_is_reported_as_fetch_failure(stub_repository) -> None:
    _seed_busy_week(stub_repository)

    def undecodable_tiers():
        raise json.JSONDecodeError("Expecting value", "<html>", 0)

    stub_repository.list_commission_tiers = undecodable_tiers

    with pytest.raises(UpstreamFetchError) as exc_info:
        _service(stub_repository).get_report("staff-1", WEEK_FROM, WEEK_TO)

    assert exc_info.value.source == "commission_tiers"


def test_profile_fetch_failure_propagates(stub_repository) -> None:
    def failing_profile(*_: object):
        raise httpx.ReadTimeout("timed out")

    stub_repository.get_employee_profile = failing_profile

    with pytest.raises(UpstreamFetchError) as exc_info:
        _service(stub_repository).get_report("staff-1", WEEK_FROM, WEEK_TO)

    assert exc_info.value.source == "employee_profiles"


def test_client_name_lookup_is_best_effort(stub_repository) -> None:
    _seed_busy_week(stub_repository)

    def failing_names(*_: object):
        raise httpx.HTTPError("names unavailable")

    stub_repository.get_client_names = failing_names

    report = _service(stub_repository).get_report("staff-1", WEEK_FROM, WEEK_TO)

    assert {client.name for client in report.top_clients} == {"Unknown"}
    assert report.revenue.total == 700.0


def test_reversed_range_is_rejected_before_any_fetch(stub_repository) -> None:
    with pytest.raises(BadRequestError):
        _service(stub_repository).get_report("staff-1", WEEK_TO, WEEK_FROM)

    assert stub_repository.calls["get_employee_profile"] == 0


def test_fetchers_run_concurrently() -> None:
    fan_out_size = 10
    barrier = threading.Barrier(fan_out_size, timeout=5)

    class BarrierRepository(StubStaffReportsRepository):
        # Every fetch blocks until all of them are in flight at once.
        def list_appointments(self, *args, **kwargs):
            barrier.wait()
            return super().list_appointments(*args, **kwargs)

        def list_transaction_items(self, *args, **kwargs):
            barrier.wait()
            return super().list_transaction_items(*args, **kwargs)

        def list_weekly_metrics(self, *args, **kwargs):
            barrier.wait()
            return super().list_weekly_metrics(*args, **kwargs)

        def list_commission_tiers(self):
            barrier.wait()
            return super().list_commission_tiers()

    repository = BarrierRepository()
    _seed_busy_week(repository)

    report = _service(repository, max_workers=fan_out_size).get_report("staff-1", WEEK_FROM, WEEK_TO)

    assert report.revenue.total == 700.0
    assert not barrier.broken


def test_report_is_immutable(stub_repository) -> None:
    report = _service(stub_repository).get_report("staff-1", WEEK_FROM, WEEK_TO)

    with pytest.raises(ValidationError):
        report.revenue = report.revenue
