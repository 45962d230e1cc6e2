from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_staff_reports_service
from src.schemas.staff_reports import StaffReport, StaffReportFilters
from src.services.staff_reports_service import StaffReportsService
from src.shared.response import Meta, ResponseEnvelope

router = APIRouter(prefix="/staff-reports", tags=["staff-reports"])

REPORT_SOURCES = (
    "pos_appointments,pos_transaction_items,pos_performance_metrics,"
    "commission_tiers,employee_profiles"
)


def get_staff_report_filters(
    date_from: date = Query(...),
    date_to: date = Query(...),
) -> StaffReportFilters:
    return StaffReportFilters(date_from=date_from, date_to=date_to)


@router.get("/{staff_id}")
def staff_report(
    staff_id: str,
    filters: StaffReportFilters = Depends(get_staff_report_filters),
    service: StaffReportsService = Depends(get_staff_reports_service),
) -> ResponseEnvelope[StaffReport]:
    data = service.get_report(staff_id, filters.date_from, filters.date_to)
    meta = Meta(
        as_of_date=date.today().isoformat(),
        source=REPORT_SOURCES,
        time_window=f"{data.periods.current.days}d",
        calculation_version="v1",
        data_status="ready" if data.has_pos_mapping else "no_pos_mapping",
    )
    return ResponseEnvelope(data=data, pagination=None, meta=meta)
