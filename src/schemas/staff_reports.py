from __future__ import annotations

from datetime import date
from typing import Literal, Optional, Tuple

from pydantic import ConfigDict, Field

from src.shared.base import BaseSchema, FrozenSchema

ExperienceStatus = Literal["needs-attention", "watch", "strong"]


class StaffProfile(FrozenSchema):
    user_id: str
    name: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    hire_date: Optional[date] = None
    location_name: Optional[str] = None


class ReportPeriod(FrozenSchema):
    date_from: date
    date_to: date
    days: int


class ReportPeriods(FrozenSchema):
    current: ReportPeriod
    prior: ReportPeriod
    two_prior: ReportPeriod


class DailyRevenuePoint(FrozenSchema):
    trend_date: date = Field(alias="date")
    revenue: float


class StaffRevenue(FrozenSchema):
    total: float
    service: float
    product: float
    avg_ticket: float
    prior_total: float
    revenue_change: float
    daily_trend: Tuple[DailyRevenuePoint, ...]


class StaffProductivity(FrozenSchema):
    total_appointments: int
    completed: int
    no_shows: int
    cancelled: int
    other: int
    avg_per_day: float
    unique_clients: int


class StaffClientMetrics(FrozenSchema):
    rebooking_rate: float
    retention_rate: float
    new_clients: int
    total_unique_clients: int


class StaffRetail(FrozenSchema):
    product_revenue: float
    units_sold: int
    attachment_rate: int
    # Line items whose type matched neither the service nor the product variants.
    unclassified_items: int


class ExperienceScore(FrozenSchema):
    composite: int
    status: ExperienceStatus
    rebook_rate: float
    tip_rate: float
    retention_rate: float
    retail_attachment: float


class TopService(FrozenSchema):
    name: str
    count: int
    revenue: float
    avg_price: float


class TopClient(FrozenSchema):
    client_id: str
    name: str
    visits: int
    revenue: float
    last_visit: Optional[date] = None
    avg_ticket: float
    at_risk: bool


class CommissionSummary(FrozenSchema):
    tier_name: str
    service_commission: float
    product_commission: float
    total_commission: float


class TeamAverages(FrozenSchema):
    staff_count: int
    metrics_staff_count: int
    revenue: float
    avg_ticket: float
    appointments: float
    rebooking_rate: float
    retention_rate: float
    new_clients: float


class MultiPeriodTrend(FrozenSchema):
    """Sparkline triples ordered two-prior, prior, current."""

    revenue: Tuple[float, float, float]
    rebooking: Tuple[float, float, float]
    retention: Tuple[float, float, float]


class StaffReport(FrozenSchema):
    profile: StaffProfile
    has_pos_mapping: bool
    periods: ReportPeriods
    revenue: StaffRevenue
    productivity: StaffProductivity
    client_metrics: StaffClientMetrics
    retail: StaffRetail
    experience_score: ExperienceScore
    top_services: Tuple[TopService, ...]
    top_clients: Tuple[TopClient, ...]
    commission: CommissionSummary
    team_averages: TeamAverages
    multi_period_trend: MultiPeriodTrend


class StaffReportFilters(BaseSchema):
    # Keep query parameter names in snake_case for API contract consistency.
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    date_from: date
    date_to: date
