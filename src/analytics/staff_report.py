from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Mapping, Tuple

from src.analytics.commission import calculate_commission
from src.analytics.periods import ComparisonPeriods, Period
from src.analytics.staff_performance import (
    average_retention_rate,
    build_daily_revenue_trend,
    build_top_clients,
    calculate_experience_score,
    calculate_team_averages,
    percent_change,
    rank_client_activity,
    rank_top_services,
    rebooking_rate,
    split_line_items,
    summarize_period_revenue,
    summarize_productivity,
    tip_rate,
    to_money,
    total_new_clients,
)
from src.models.staff_performance import (
    AppointmentRecord,
    CommissionTierRecord,
    TransactionLineItemRecord,
    WeeklyPerformanceMetricRecord,
)
from src.schemas.staff_reports import (
    CommissionSummary,
    ExperienceScore,
    MultiPeriodTrend,
    ReportPeriod,
    ReportPeriods,
    StaffClientMetrics,
    StaffProductivity,
    StaffProfile,
    StaffReport,
    StaffRetail,
    StaffRevenue,
    TeamAverages,
)


@dataclass(frozen=True)
class StaffReportSnapshot:
    """Every row the report is computed from, fetched before aggregation starts."""

    current_appointments: Tuple[AppointmentRecord, ...]
    prior_appointments: Tuple[AppointmentRecord, ...]
    two_prior_appointments: Tuple[AppointmentRecord, ...]
    line_items: Tuple[TransactionLineItemRecord, ...]
    current_metrics: Tuple[WeeklyPerformanceMetricRecord, ...]
    prior_metrics: Tuple[WeeklyPerformanceMetricRecord, ...]
    two_prior_metrics: Tuple[WeeklyPerformanceMetricRecord, ...]
    team_appointments: Tuple[AppointmentRecord, ...]
    team_metrics: Tuple[WeeklyPerformanceMetricRecord, ...]
    commission_tiers: Tuple[CommissionTierRecord, ...]


def build_report_periods(periods: ComparisonPeriods) -> ReportPeriods:
    def _period(period: Period) -> ReportPeriod:
        return ReportPeriod(date_from=period.start, date_to=period.end, days=period.days)

    return ReportPeriods(
        current=_period(periods.current),
        prior=_period(periods.prior),
        two_prior=_period(periods.two_prior),
    )


def assemble_staff_report(
    profile: StaffProfile,
    periods: ComparisonPeriods,
    snapshot: StaffReportSnapshot,
    client_names: Mapping[str, str],
    today: date,
) -> StaffReport:
    current_revenue = summarize_period_revenue(snapshot.current_appointments)
    prior_revenue = summarize_period_revenue(snapshot.prior_appointments)
    two_prior_revenue = summarize_period_revenue(snapshot.two_prior_appointments)
    productivity = summarize_productivity(snapshot.current_appointments, periods.current)
    split = split_line_items(snapshot.line_items)

    current_rebook = rebooking_rate(snapshot.current_metrics, snapshot.current_appointments)
    prior_rebook = rebooking_rate(snapshot.prior_metrics, snapshot.prior_appointments)
    two_prior_rebook = rebooking_rate(snapshot.two_prior_metrics, snapshot.two_prior_appointments)
    current_retention = average_retention_rate(snapshot.current_metrics)
    prior_retention = average_retention_rate(snapshot.prior_metrics)
    two_prior_retention = average_retention_rate(snapshot.two_prior_metrics)

    experience_score = calculate_experience_score(
        total_appointments=productivity.total_appointments,
        rebook_rate=current_rebook,
        raw_tip_rate=tip_rate(current_revenue.tips, current_revenue.total),
        retention_rate=current_retention,
        retail_attachment=split.attachment_percent,
    )
    commission = calculate_commission(
        snapshot.commission_tiers, split.service_revenue, split.product_revenue
    )
    top_clients = build_top_clients(
        rank_client_activity(snapshot.current_appointments), client_names, today
    )

    return StaffReport(
        profile=profile,
        has_pos_mapping=True,
        periods=build_report_periods(periods),
        revenue=StaffRevenue(
            total=to_money(current_revenue.total),
            service=to_money(split.service_revenue),
            product=to_money(split.product_revenue),
            avg_ticket=to_money(current_revenue.avg_ticket),
            prior_total=to_money(prior_revenue.total),
            revenue_change=round(percent_change(current_revenue.total, prior_revenue.total), 2),
            daily_trend=build_daily_revenue_trend(snapshot.current_appointments),
        ),
        productivity=StaffProductivity(
            total_appointments=productivity.total_appointments,
            completed=productivity.completed,
            no_shows=productivity.no_shows,
            cancelled=productivity.cancelled,
            other=productivity.other,
            avg_per_day=round(productivity.avg_per_day, 2),
            unique_clients=productivity.unique_clients,
        ),
        client_metrics=StaffClientMetrics(
            rebooking_rate=round(current_rebook, 2),
            retention_rate=round(current_retention, 2),
            new_clients=total_new_clients(snapshot.current_metrics),
            total_unique_clients=productivity.unique_clients,
        ),
        retail=StaffRetail(
            product_revenue=to_money(split.product_revenue),
            units_sold=split.units_sold,
            attachment_rate=split.attachment_rate,
            unclassified_items=split.unclassified_count,
        ),
        experience_score=experience_score,
        top_services=rank_top_services(snapshot.line_items),
        top_clients=top_clients,
        commission=CommissionSummary(
            tier_name=commission.tier_name,
            service_commission=to_money(commission.service_commission),
            product_commission=to_money(commission.product_commission),
            total_commission=to_money(commission.total_commission),
        ),
        team_averages=calculate_team_averages(snapshot.team_appointments, snapshot.team_metrics),
        multi_period_trend=MultiPeriodTrend(
            revenue=(
                to_money(two_prior_revenue.total),
                to_money(prior_revenue.total),
                to_money(current_revenue.total),
            ),
            rebooking=(round(two_prior_rebook, 2), round(prior_rebook, 2), round(current_rebook, 2)),
            retention=(
                round(two_prior_retention, 2),
                round(prior_retention, 2),
                round(current_retention, 2),
            ),
        ),
    )


def build_empty_staff_report(profile: StaffProfile, periods: ComparisonPeriods) -> StaffReport:
    """Same shape as a computed report with every numeric leaf zeroed.

    Used when the staff member has no point-of-sale mapping yet, so the
    dashboard can render a "no data" state instead of an error.
    """
    return StaffReport(
        profile=profile,
        has_pos_mapping=False,
        periods=build_report_periods(periods),
        revenue=StaffRevenue(
            total=0.0,
            service=0.0,
            product=0.0,
            avg_ticket=0.0,
            prior_total=0.0,
            revenue_change=0.0,
            daily_trend=(),
        ),
        productivity=StaffProductivity(
            total_appointments=0,
            completed=0,
            no_shows=0,
            cancelled=0,
            other=0,
            avg_per_day=0.0,
            unique_clients=0,
        ),
        client_metrics=StaffClientMetrics(
            rebooking_rate=0.0, retention_rate=0.0, new_clients=0, total_unique_clients=0
        ),
        retail=StaffRetail(
            product_revenue=0.0, units_sold=0, attachment_rate=0, unclassified_items=0
        ),
        experience_score=ExperienceScore(
            composite=0,
            status="needs-attention",
            rebook_rate=0.0,
            tip_rate=0.0,
            retention_rate=0.0,
            retail_attachment=0.0,
        ),
        top_services=(),
        top_clients=(),
        commission=CommissionSummary(
            tier_name="", service_commission=0.0, product_commission=0.0, total_commission=0.0
        ),
        team_averages=TeamAverages(
            staff_count=0,
            metrics_staff_count=0,
            revenue=0.0,
            avg_ticket=0.0,
            appointments=0.0,
            rebooking_rate=0.0,
            retention_rate=0.0,
            new_clients=0.0,
        ),
        multi_period_trend=MultiPeriodTrend(
            revenue=(0.0, 0.0, 0.0),
            rebooking=(0.0, 0.0, 0.0),
            retention=(0.0, 0.0, 0.0),
        ),
    )
