from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from salon_reports.schemas.filters import GlobalFilters
from salon_reports.schemas.report_settings import ReportSettings


class ReportRequest(BaseModel):
    filters: GlobalFilters = Field(default_factory=GlobalFilters)
    settings: Optional[ReportSettings] = Field(
        default=None,
        description="Overrides the business settings stored with the snapshot.",
    )


class DateRangeResponse(BaseModel):
    preset: str
    start: str
    end: str


class RevenueMetrics(BaseModel):
    gross_sales: float = 0.0
    discounts: float = 0.0
    refunds: float = 0.0
    net_sales: float = 0.0
    taxes_collected: float = 0.0
    tips: float = 0.0
    total_collected: float = 0.0
    processing_fees: float = 0.0
    invoice_count: int = 0
    avg_ticket: float = 0.0
    appointment_revenue: float = 0.0
    completed_count: int = 0


class MarginMetrics(BaseModel):
    cogs: float = 0.0
    direct_labor: float = 0.0
    contribution_margin: float = 0.0
    contribution_margin_pct: float = 0.0
    gross_margin: float = 0.0
    gross_margin_pct: float = 0.0
    avg_margin_per_appointment: float = 0.0


class AppointmentMetrics(BaseModel):
    total: int = 0
    completed: int = 0
    cancelled: int = 0
    no_shows: int = 0
    scheduled: int = 0
    completion_rate: float = 0.0
    cancellation_rate: float = 0.0
    no_show_rate: float = 0.0
    avg_duration_variance: float = 0.0


class LapsedCustomer(BaseModel):
    customer_id: str
    name: str
    last_visit: str
    days_since_last_visit: int


class RetentionMetrics(BaseModel):
    rebook_count_0_to_24h: int = 0
    rebook_count_7d: int = 0
    rebook_count_30d: int = 0
    rebook_rate_0_to_24h: float = 0.0
    rebook_rate_7d: float = 0.0
    rebook_rate_30d: float = 0.0
    avg_days_to_next_visit: float = 0.0
    lapsed_threshold_days: int = 90
    lapsed_count: int = 0
    lapsed_customers: List[LapsedCustomer] = Field(default_factory=list)


class ServiceBreakdownRow(BaseModel):
    service_id: str
    service_name: str
    service_category: str
    count: int
    revenue: float
    discounts: float
    net_revenue: float
    discount_pct: float
    avg_ticket: float
    avg_duration_variance: float
    estimated_cogs: float


class StaffPerformanceRow(BaseModel):
    staff_id: str
    staff_name: str
    appointments: int
    gross_revenue: float
    discounts: float
    revenue: float = Field(..., description="Net revenue from completed appointments")
    discount_pct: float
    avg_ticket: float
    avg_duration_variance: float
    hours_booked: float
    hours_worked: float
    revenue_per_hour: float
    rebook_count: int
    rebook_rate: float
    no_shows: int
    no_show_rate: float


class ServiceBreakdownResponse(BaseModel):
    total: int
    items: List[ServiceBreakdownRow]


class StaffPerformanceResponse(BaseModel):
    total: int
    items: List[StaffPerformanceRow]


class ReportSummaryResponse(BaseModel):
    """Every metric group for one filter selection, computed from a single snapshot."""

    date_range: DateRangeResponse
    generated_at: str
    revenue: RevenueMetrics
    margin: MarginMetrics
    appointments: AppointmentMetrics
    retention: RetentionMetrics
    services: List[ServiceBreakdownRow]
    staff: List[StaffPerformanceRow]
    revenue_gap: float = Field(
        ...,
        description=(
            "Appointment revenue minus transaction net sales. The two ledgers are "
            "not reconciled; a non-zero gap is informational."
        ),
    )
