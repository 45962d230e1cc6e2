from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    UNCLASSIFIED = "unclassified"


_APPOINTMENT_STATUS_VARIANTS = {
    "pending": AppointmentStatus.PENDING,
    "booked": AppointmentStatus.PENDING,
    "confirmed": AppointmentStatus.CONFIRMED,
    "arrived": AppointmentStatus.CHECKED_IN,
    "checked_in": AppointmentStatus.CHECKED_IN,
    "checked-in": AppointmentStatus.CHECKED_IN,
    "in_progress": AppointmentStatus.IN_PROGRESS,
    "in-progress": AppointmentStatus.IN_PROGRESS,
    "started": AppointmentStatus.IN_PROGRESS,
    "completed": AppointmentStatus.COMPLETED,
    "finished": AppointmentStatus.COMPLETED,
    "paid": AppointmentStatus.COMPLETED,
    "checked_out": AppointmentStatus.COMPLETED,
    "cancelled": AppointmentStatus.CANCELLED,
    "canceled": AppointmentStatus.CANCELLED,
    "no_show": AppointmentStatus.NO_SHOW,
    "noshow": AppointmentStatus.NO_SHOW,
    "no-show": AppointmentStatus.NO_SHOW,
}


def normalize_appointment_status(value: Any) -> AppointmentStatus:
    if isinstance(value, AppointmentStatus):
        return value
    if value is None:
        return AppointmentStatus.UNCLASSIFIED
    key = str(value).strip().lower()
    return _APPOINTMENT_STATUS_VARIANTS.get(key, AppointmentStatus.UNCLASSIFIED)


class LineItemType(str, Enum):
    SERVICE = "service"
    PRODUCT = "product"
    UNCLASSIFIED = "unclassified"


# Exact-match variant sets. Anything outside them is unclassified and drops out
# of both the service and product revenue totals.
SERVICE_ITEM_TYPES = frozenset({"Service", "service", "SERVICE"})
PRODUCT_ITEM_TYPES = frozenset({"Product", "product", "PRODUCT", "Retail", "retail", "RETAIL"})


def normalize_line_item_type(value: Any) -> LineItemType:
    if isinstance(value, LineItemType):
        return value
    if value in SERVICE_ITEM_TYPES:
        return LineItemType.SERVICE
    if value in PRODUCT_ITEM_TYPES:
        return LineItemType.PRODUCT
    return LineItemType.UNCLASSIFIED


def _zero_if_null(value: Any) -> Any:
    return Decimal("0") if value is None else value


class RowModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class StaffMappingRecord(RowModel):
    user_id: str
    pos_staff_id: Optional[str] = None
    is_active: bool = True


class EmployeeProfileRecord(RowModel):
    user_id: str
    full_name: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    email: Optional[str] = None
    hire_date: Optional[date] = None
    location_id: Optional[str] = None


class AppointmentRecord(RowModel):
    pos_staff_id: Optional[str] = None
    appointment_date: Optional[date] = None
    total_price: Decimal = Decimal("0")
    tip_amount: Decimal = Decimal("0")
    status: AppointmentStatus = AppointmentStatus.UNCLASSIFIED
    pos_client_id: Optional[str] = None
    rebooked_at_checkout: bool = False

    @field_validator("total_price", "tip_amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> Any:
        return _zero_if_null(value)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> AppointmentStatus:
        return normalize_appointment_status(value)

    @field_validator("rebooked_at_checkout", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("pos_client_id", mode="before")
    @classmethod
    def _blank_client_is_null(cls, value: Any) -> Any:
        if value is None or str(value).strip() == "":
            return None
        return str(value)


class TransactionLineItemRecord(RowModel):
    pos_staff_id: Optional[str] = None
    item_name: Optional[str] = None
    item_type: LineItemType = LineItemType.UNCLASSIFIED
    quantity: int = 1
    total_amount: Decimal = Decimal("0")
    transaction_id: Optional[str] = None
    transaction_date: Optional[date] = None

    @field_validator("item_type", mode="before")
    @classmethod
    def _coerce_item_type(cls, value: Any) -> LineItemType:
        return normalize_line_item_type(value)

    @field_validator("quantity", mode="before")
    @classmethod
    def _coerce_quantity(cls, value: Any) -> Any:
        return value or 1

    @field_validator("total_amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> Any:
        return _zero_if_null(value)


class WeeklyPerformanceMetricRecord(RowModel):
    pos_staff_id: Optional[str] = None
    week_start: Optional[date] = None
    rebooking_rate: float = 0.0
    retention_rate: float = 0.0
    new_clients: int = 0
    retail_sales: Decimal = Decimal("0")

    @field_validator("rebooking_rate", "retention_rate", "new_clients", mode="before")
    @classmethod
    def _coerce_number(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("retail_sales", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> Any:
        return _zero_if_null(value)


class ClientNameRecord(RowModel):
    pos_client_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class CommissionTierRecord(RowModel):
    tier_name: str
    min_revenue: Decimal
    service_rate: Decimal = Decimal("0")
    product_rate: Decimal = Decimal("0")

    @field_validator("service_rate", "product_rate", mode="before")
    @classmethod
    def _coerce_rate(cls, value: Any) -> Any:
        return _zero_if_null(value)
