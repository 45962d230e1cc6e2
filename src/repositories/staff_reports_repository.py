from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional, Tuple

from src.core.supabase import SupabaseClient
from src.models.staff_performance import (
    AppointmentRecord,
    ClientNameRecord,
    CommissionTierRecord,
    EmployeeProfileRecord,
    StaffMappingRecord,
    TransactionLineItemRecord,
    WeeklyPerformanceMetricRecord,
)

CLIENT_LOOKUP_CHUNK_SIZE = 100


class StaffReportsRepository:
    def __init__(self) -> None:
        self.client = SupabaseClient()

    def get_pos_mapping(self, user_id: str) -> Optional[StaffMappingRecord]:
        rows = self.client.select(
            table="pos_staff_mapping",
            select="user_id,pos_staff_id,is_active",
            filters=[("user_id", f"eq.{user_id}"), ("is_active", "eq.true")],
            limit=1,
        )
        return StaffMappingRecord.model_validate(rows[0]) if rows else None

    def get_employee_profile(self, user_id: str) -> Optional[EmployeeProfileRecord]:
        rows = self.client.select(
            table="employee_profiles",
            select="user_id,full_name,display_name,photo_url,email,hire_date,location_id",
            filters=[("user_id", f"eq.{user_id}")],
            limit=1,
        )
        return EmployeeProfileRecord.model_validate(rows[0]) if rows else None

    def get_primary_role(self, user_id: str) -> Optional[str]:
        rows = self.client.select(
            table="user_roles",
            select="role",
            filters=[("user_id", f"eq.{user_id}")],
            limit=1,
        )
        if not rows or not rows[0].get("role"):
            return None
        return str(rows[0]["role"])

    def get_location_name(self, location_id: str) -> Optional[str]:
        rows = self.client.select(
            table="locations",
            select="id,name",
            filters=[("id", f"eq.{location_id}")],
            limit=1,
        )
        if not rows or not rows[0].get("name"):
            return None
        return str(rows[0]["name"])

    def list_appointments(
        self, start_date: date, end_date: date, pos_staff_id: Optional[str] = None
    ) -> List[AppointmentRecord]:
        filters = self._build_date_filters("appointment_date", start_date, end_date)
        if pos_staff_id:
            filters.append(("pos_staff_id", f"eq.{pos_staff_id}"))
        else:
            filters.append(("pos_staff_id", "not.is.null"))
        rows = self.client.select_all(
            table="pos_appointments",
            select=(
                "id,pos_staff_id,appointment_date,total_price,tip_amount,status,"
                "pos_client_id,rebooked_at_checkout"
            ),
            filters=filters,
            order="appointment_date.asc,id.asc",
        )
        return [AppointmentRecord.model_validate(row) for row in rows]

    def list_transaction_items(
        self, pos_staff_id: str, start_date: date, end_date: date
    ) -> List[TransactionLineItemRecord]:
        filters = self._build_date_filters("transaction_date", start_date, end_date)
        filters.append(("pos_staff_id", f"eq.{pos_staff_id}"))
        rows = self.client.select_all(
            table="pos_transaction_items",
            select=(
                "id,pos_staff_id,item_name,item_type,quantity,total_amount,"
                "transaction_id,transaction_date"
            ),
            filters=filters,
            order="transaction_date.asc,id.asc",
        )
        return [TransactionLineItemRecord.model_validate(row) for row in rows]

    def list_weekly_metrics(
        self, start_date: date, end_date: date, pos_staff_id: Optional[str] = None
    ) -> List[WeeklyPerformanceMetricRecord]:
        filters = self._build_date_filters("week_start", start_date, end_date)
        if pos_staff_id:
            filters.append(("pos_staff_id", f"eq.{pos_staff_id}"))
        else:
            filters.append(("pos_staff_id", "not.is.null"))
        rows = self.client.select_all(
            table="pos_performance_metrics",
            select="id,pos_staff_id,week_start,rebooking_rate,retention_rate,new_clients,retail_sales",
            filters=filters,
            order="week_start.asc,id.asc",
        )
        return [WeeklyPerformanceMetricRecord.model_validate(row) for row in rows]

    def list_commission_tiers(self) -> List[CommissionTierRecord]:
        rows = self.client.select(
            table="commission_tiers",
            select="tier_name,min_revenue,service_rate,product_rate",
            filters=[("is_active", "eq.true")],
            order="min_revenue.asc",
        )
        return [CommissionTierRecord.model_validate(row) for row in rows]

    def get_client_names(self, client_ids: List[str]) -> Dict[str, str]:
        normalized_ids = sorted({client_id for client_id in client_ids if client_id})
        names: Dict[str, str] = {}
        for start in range(0, len(normalized_ids), CLIENT_LOOKUP_CHUNK_SIZE):
            chunk = normalized_ids[start : start + CLIENT_LOOKUP_CHUNK_SIZE]
            in_filter = ",".join(f'"{client_id}"' for client_id in chunk)
            rows = self.client.select(
                table="pos_clients",
                select="pos_client_id,first_name,last_name",
                filters=[("pos_client_id", f"in.({in_filter})")],
                limit=len(chunk),
            )
            for row in rows:
                record = ClientNameRecord.model_validate(row)
                full_name = f"{record.first_name or ''} {record.last_name or ''}".strip()
                if full_name:
                    names[record.pos_client_id] = full_name
        return names

    @staticmethod
    def _build_date_filters(column: str, start_date: date, end_date: date) -> List[Tuple[str, str]]:
        return [
            (column, f"gte.{start_date.isoformat()}"),
            (column, f"lte.{end_date.isoformat()}"),
        ]
