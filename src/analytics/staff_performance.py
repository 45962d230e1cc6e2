from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from src.analytics.periods import Period
from src.models.staff_performance import (
    AppointmentRecord,
    AppointmentStatus,
    LineItemType,
    TransactionLineItemRecord,
    WeeklyPerformanceMetricRecord,
)
from src.schemas.staff_reports import (
    DailyRevenuePoint,
    ExperienceScore,
    ExperienceStatus,
    TeamAverages,
    TopClient,
    TopService,
)
from src.shared.time import business_days_between

ZERO = Decimal("0")

EXPERIENCE_WEIGHTS = {
    "rebook_rate": 0.35,
    "tip_rate": 0.30,
    "retention_rate": 0.20,
    "retail_attachment": 0.15,
}
MIN_APPOINTMENTS_FOR_SCORE = 5
PERFECT_TIP_RATE = 25.0
NEEDS_ATTENTION_BELOW = 50
WATCH_BELOW = 70

TOP_SERVICES_LIMIT = 5
TOP_CLIENTS_LIMIT = 10
AT_RISK_AFTER_DAYS = 60
UNKNOWN_SERVICE_NAME = "Unknown Service"
UNKNOWN_CLIENT_NAME = "Unknown"


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def clamp_percent(value: float) -> float:
    return min(max(value, 0.0), 100.0)


def to_money(value: Decimal) -> float:
    return round(float(value), 2)


@dataclass(frozen=True)
class PeriodRevenue:
    total: Decimal
    tips: Decimal
    completed: int

    @property
    def avg_ticket(self) -> Decimal:
        if not self.completed:
            return ZERO
        return self.total / self.completed


def summarize_period_revenue(appointments: Iterable[AppointmentRecord]) -> PeriodRevenue:
    total = ZERO
    tips = ZERO
    completed = 0
    for appointment in appointments:
        total += appointment.total_price
        tips += appointment.tip_amount
        if appointment.status is AppointmentStatus.COMPLETED:
            completed += 1
    return PeriodRevenue(total=total, tips=tips, completed=completed)


def percent_change(current: Decimal, prior: Decimal) -> float:
    if prior > 0:
        return float((current - prior) / prior * 100)
    if current > 0:
        return 100.0
    return 0.0


def build_daily_revenue_trend(
    appointments: Iterable[AppointmentRecord],
) -> Tuple[DailyRevenuePoint, ...]:
    revenue_by_date: Dict[date, Decimal] = defaultdict(lambda: ZERO)
    for appointment in appointments:
        if appointment.appointment_date is None:
            continue
        revenue_by_date[appointment.appointment_date] += appointment.total_price
    return tuple(
        DailyRevenuePoint(trend_date=day, revenue=to_money(revenue_by_date[day]))
        for day in sorted(revenue_by_date)
    )


@dataclass(frozen=True)
class LineItemSplit:
    service_revenue: Decimal
    product_revenue: Decimal
    units_sold: int
    service_transaction_ids: FrozenSet[str]
    product_transaction_ids: FrozenSet[str]
    unclassified_count: int

    @property
    def attached_transaction_count(self) -> int:
        return len(self.service_transaction_ids & self.product_transaction_ids)

    @property
    def attachment_percent(self) -> float:
        if not self.service_transaction_ids:
            return 0.0
        return self.attached_transaction_count / len(self.service_transaction_ids) * 100

    @property
    def attachment_rate(self) -> int:
        return round_half_up(self.attachment_percent)


def split_line_items(items: Iterable[TransactionLineItemRecord]) -> LineItemSplit:
    """Partition line items into service and product revenue.

    Items whose type is not a known service or product variant are counted in
    ``unclassified_count`` and contribute to neither revenue total.
    """
    service_revenue = ZERO
    product_revenue = ZERO
    units_sold = 0
    unclassified = 0
    service_tx_ids: set[str] = set()
    product_tx_ids: set[str] = set()
    for item in items:
        if item.item_type is LineItemType.PRODUCT:
            product_revenue += item.total_amount
            units_sold += item.quantity
            if item.transaction_id:
                product_tx_ids.add(item.transaction_id)
        elif item.item_type is LineItemType.SERVICE:
            service_revenue += item.total_amount
            if item.transaction_id:
                service_tx_ids.add(item.transaction_id)
        else:
            unclassified += 1
    return LineItemSplit(
        service_revenue=service_revenue,
        product_revenue=product_revenue,
        units_sold=units_sold,
        service_transaction_ids=frozenset(service_tx_ids),
        product_transaction_ids=frozenset(product_tx_ids),
        unclassified_count=unclassified,
    )


@dataclass(frozen=True)
class ProductivitySummary:
    total_appointments: int
    completed: int
    no_shows: int
    cancelled: int
    other: int
    avg_per_day: float
    unique_clients: int


def summarize_productivity(
    appointments: Sequence[AppointmentRecord], period: Period
) -> ProductivitySummary:
    counts = {
        AppointmentStatus.COMPLETED: 0,
        AppointmentStatus.NO_SHOW: 0,
        AppointmentStatus.CANCELLED: 0,
    }
    other = 0
    clients: set[str] = set()
    for appointment in appointments:
        if appointment.status in counts:
            counts[appointment.status] += 1
        else:
            other += 1
        if appointment.pos_client_id:
            clients.add(appointment.pos_client_id)
    total = len(appointments)
    working_days = max(business_days_between(period.start, period.end), 1)
    return ProductivitySummary(
        total_appointments=total,
        completed=counts[AppointmentStatus.COMPLETED],
        no_shows=counts[AppointmentStatus.NO_SHOW],
        cancelled=counts[AppointmentStatus.CANCELLED],
        other=other,
        avg_per_day=total / working_days,
        unique_clients=len(clients),
    )


def average_rebooking_rate(metrics: Sequence[WeeklyPerformanceMetricRecord]) -> float:
    if not metrics:
        return 0.0
    return sum(metric.rebooking_rate for metric in metrics) / len(metrics)


def average_retention_rate(metrics: Sequence[WeeklyPerformanceMetricRecord]) -> float:
    if not metrics:
        return 0.0
    return sum(metric.retention_rate for metric in metrics) / len(metrics)


def rebooking_rate(
    metrics: Sequence[WeeklyPerformanceMetricRecord],
    appointments: Sequence[AppointmentRecord],
) -> float:
    """Average the weekly rebooking rate, falling back to checkout flags when no weeks exist."""
    if metrics:
        return average_rebooking_rate(metrics)
    completed = sum(1 for a in appointments if a.status is AppointmentStatus.COMPLETED)
    if not completed:
        return 0.0
    rebooked = sum(1 for a in appointments if a.rebooked_at_checkout)
    return rebooked / completed * 100


def total_new_clients(metrics: Iterable[WeeklyPerformanceMetricRecord]) -> int:
    return sum(metric.new_clients for metric in metrics)


def tip_rate(tips: Decimal, revenue: Decimal) -> float:
    if revenue <= 0:
        return 0.0
    return float(tips / revenue * 100)


def normalize_tip_rate(raw_tip_rate: float) -> float:
    return min(raw_tip_rate / PERFECT_TIP_RATE * 100, 100.0)


def experience_status(score: float) -> ExperienceStatus:
    if score < NEEDS_ATTENTION_BELOW:
        return "needs-attention"
    if score < WATCH_BELOW:
        return "watch"
    return "strong"


def calculate_experience_score(
    total_appointments: int,
    rebook_rate: float,
    raw_tip_rate: float,
    retention_rate: float,
    retail_attachment: float,
) -> ExperienceScore:
    composite = 0
    if total_appointments >= MIN_APPOINTMENTS_FOR_SCORE:
        weighted = (
            clamp_percent(rebook_rate) * EXPERIENCE_WEIGHTS["rebook_rate"]
            + clamp_percent(normalize_tip_rate(raw_tip_rate)) * EXPERIENCE_WEIGHTS["tip_rate"]
            + clamp_percent(retention_rate) * EXPERIENCE_WEIGHTS["retention_rate"]
            + clamp_percent(retail_attachment) * EXPERIENCE_WEIGHTS["retail_attachment"]
        )
        composite = round_half_up(weighted)
    return ExperienceScore(
        composite=composite,
        status=experience_status(composite),
        rebook_rate=round(rebook_rate, 2),
        tip_rate=round(raw_tip_rate, 2),
        retention_rate=round(retention_rate, 2),
        retail_attachment=round(retail_attachment, 2),
    )


def rank_top_services(
    items: Iterable[TransactionLineItemRecord], limit: int = TOP_SERVICES_LIMIT
) -> Tuple[TopService, ...]:
    buckets: Dict[str, List[Decimal]] = {}
    for item in items:
        if item.item_type is not LineItemType.SERVICE:
            continue
        name = item.item_name or UNKNOWN_SERVICE_NAME
        bucket = buckets.setdefault(name, [])
        bucket.append(item.total_amount)
    ranked = sorted(buckets.items(), key=lambda entry: sum(entry[1], ZERO), reverse=True)
    services: List[TopService] = []
    for name, amounts in ranked[:limit]:
        revenue = sum(amounts, ZERO)
        services.append(
            TopService(
                name=name,
                count=len(amounts),
                revenue=to_money(revenue),
                avg_price=to_money(revenue / len(amounts)),
            )
        )
    return tuple(services)


@dataclass(frozen=True)
class ClientActivity:
    client_id: str
    visits: int
    revenue: Decimal
    last_visit: Optional[date]


def rank_client_activity(
    appointments: Iterable[AppointmentRecord], limit: int = TOP_CLIENTS_LIMIT
) -> Tuple[ClientActivity, ...]:
    visits: Dict[str, int] = defaultdict(int)
    revenue: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    last_visit: Dict[str, Optional[date]] = {}
    for appointment in appointments:
        client_id = appointment.pos_client_id
        if not client_id:
            continue
        visits[client_id] += 1
        revenue[client_id] += appointment.total_price
        visit_date = appointment.appointment_date
        seen = last_visit.setdefault(client_id, visit_date)
        if visit_date is not None and (seen is None or visit_date > seen):
            last_visit[client_id] = visit_date
    ranked = sorted(visits, key=lambda client_id: revenue[client_id], reverse=True)
    return tuple(
        ClientActivity(
            client_id=client_id,
            visits=visits[client_id],
            revenue=revenue[client_id],
            last_visit=last_visit.get(client_id),
        )
        for client_id in ranked[:limit]
    )


def build_top_clients(
    activity: Iterable[ClientActivity],
    client_names: Mapping[str, str],
    today: date,
) -> Tuple[TopClient, ...]:
    at_risk_before = today - timedelta(days=AT_RISK_AFTER_DAYS)
    return tuple(
        TopClient(
            client_id=client.client_id,
            name=client_names.get(client.client_id) or UNKNOWN_CLIENT_NAME,
            visits=client.visits,
            revenue=to_money(client.revenue),
            last_visit=client.last_visit,
            avg_ticket=to_money(client.revenue / client.visits) if client.visits else 0.0,
            at_risk=client.last_visit is None or client.last_visit < at_risk_before,
        )
        for client in activity
    )


def calculate_team_averages(
    appointments: Iterable[AppointmentRecord],
    metrics: Iterable[WeeklyPerformanceMetricRecord],
) -> TeamAverages:
    """Average the current period across every staff member with rows in it.

    Appointment averages and weekly-metric averages use separate staff counts
    because the two come from different source tables.
    """
    revenue_by_staff: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    appointments_by_staff: Dict[str, int] = defaultdict(int)
    for appointment in appointments:
        staff_id = appointment.pos_staff_id
        if not staff_id:
            continue
        revenue_by_staff[staff_id] += appointment.total_price
        appointments_by_staff[staff_id] += 1

    metrics_by_staff: Dict[str, List[WeeklyPerformanceMetricRecord]] = defaultdict(list)
    for metric in metrics:
        if metric.pos_staff_id:
            metrics_by_staff[metric.pos_staff_id].append(metric)

    staff_count = len(appointments_by_staff)
    metrics_staff_count = len(metrics_by_staff)
    team_revenue = sum(revenue_by_staff.values(), ZERO)
    team_appointments = sum(appointments_by_staff.values())
    rebook_total = sum(average_rebooking_rate(rows) for rows in metrics_by_staff.values())
    retention_total = sum(average_retention_rate(rows) for rows in metrics_by_staff.values())
    new_clients_total = sum(total_new_clients(rows) for rows in metrics_by_staff.values())

    staff_denominator = max(staff_count, 1)
    metrics_denominator = max(metrics_staff_count, 1)
    return TeamAverages(
        staff_count=staff_count,
        metrics_staff_count=metrics_staff_count,
        revenue=to_money(team_revenue / staff_denominator),
        avg_ticket=to_money(team_revenue / team_appointments) if team_appointments else 0.0,
        appointments=round(team_appointments / staff_denominator, 2),
        rebooking_rate=round(rebook_total / metrics_denominator, 2),
        retention_rate=round(retention_total / metrics_denominator, 2),
        new_clients=round(new_clients_total / metrics_denominator, 2),
    )
