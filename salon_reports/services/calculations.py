"""Aggregations behind the finance and operations reports.

Every function here is pure: it reads the collections it is given, never
mutates them and returns a fresh result model. Empty denominators produce
``0.0`` and missing optional fields contribute nothing to a sum.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from salon_reports.schemas.report_settings import ReportSettings
from salon_reports.schemas.reports import (
    AppointmentMetrics,
    LapsedCustomer,
    MarginMetrics,
    RetentionMetrics,
    RevenueMetrics,
    ServiceBreakdownRow,
    StaffPerformanceRow,
)
from salon_reports.schemas.salon import (
    OPEN_STATUSES,
    Appointment,
    CommissionCompensation,
    Customer,
    HourlyCompensation,
    Service,
    Staff,
    Transaction,
    UnsetCompensation,
)
from salon_reports.services.filters import parse_timestamp

LAPSED_THRESHOLD_DAYS = 90
REBOOK_WINDOWS_DAYS = (1, 7, 30)


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def _pct(numerator: float, denominator: float) -> float:
    return _ratio(numerator, denominator) * 100


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def whole_days_between(later: datetime, earlier: datetime) -> int:
    """Full days elapsed from ``earlier`` to ``later``, truncated toward zero."""
    return int((later - earlier) / timedelta(days=1))


def _completed(appointments: Iterable[Appointment]) -> List[Appointment]:
    return [appointment for appointment in appointments if appointment.status == "completed"]


def _duration_variance(appointment: Appointment) -> Optional[int]:
    if appointment.actual_duration is None or not appointment.planned_duration:
        return None
    return appointment.actual_duration - appointment.planned_duration


def _worked_minutes(appointment: Appointment) -> int:
    if appointment.actual_duration is not None:
        return appointment.actual_duration
    return appointment.planned_duration


def processing_fee(transaction: Transaction, settings: ReportSettings | None) -> float:
    """Fee recorded on the transaction, or the one the processor policy implies."""
    if transaction.processing_fee is not None:
        return transaction.processing_fee
    if settings is None:
        return 0.0

    processor = settings.processor
    fee_base = transaction.subtotal
    if processor.fee_base_policy == "subtotal+tax":
        fee_base += transaction.tax_total
    elif processor.fee_base_policy == "subtotal+tax+tip":
        fee_base += transaction.tax_total + transaction.tip_total
    return fee_base * (processor.fee_rate_pct / 100) + processor.fee_fixed


def calculate_revenue_metrics(
    appointments: Sequence[Appointment],
    transactions: Sequence[Transaction],
    settings: ReportSettings | None = None,
) -> RevenueMetrics:
    completed = _completed(appointments)

    gross_sales = sum(txn.subtotal for txn in transactions)
    discounts = sum(txn.discount_total for txn in transactions)
    refunds = sum(txn.refund_total or 0.0 for txn in transactions)
    net_sales = gross_sales - discounts - refunds
    invoice_count = sum(1 for txn in transactions if txn.status == "completed")

    return RevenueMetrics(
        gross_sales=gross_sales,
        discounts=discounts,
        refunds=refunds,
        net_sales=net_sales,
        taxes_collected=sum(txn.tax_total for txn in transactions),
        tips=sum(txn.tip_total for txn in transactions),
        total_collected=sum(txn.total_collected for txn in transactions),
        processing_fees=sum(processing_fee(txn, settings) for txn in transactions),
        invoice_count=invoice_count,
        avg_ticket=_ratio(net_sales, invoice_count),
        # Reported beside net sales; the two ledgers are not reconciled here.
        appointment_revenue=sum(appointment.net_price for appointment in completed),
        completed_count=len(completed),
    )


def labor_cost(appointment: Appointment, staff_member: Staff) -> float:
    """Direct labor attributable to one completed appointment."""
    compensation = staff_member.compensation
    if isinstance(compensation, CommissionCompensation):
        cost = appointment.net_price * (compensation.rate / 100)
    elif isinstance(compensation, HourlyCompensation):
        cost = _worked_minutes(appointment) / 60 * compensation.rate
    elif isinstance(compensation, UnsetCompensation):
        return 0.0
    else:  # pragma: no cover - the union is closed
        raise TypeError(f"Unsupported compensation {compensation!r}")

    if staff_member.employer_burden_pct:
        cost *= 1 + staff_member.employer_burden_pct / 100
    return cost


def calculate_margin_metrics(
    appointments: Sequence[Appointment],
    transactions: Sequence[Transaction],
    services: Sequence[Service],
    staff: Sequence[Staff],
    settings: ReportSettings | None = None,
) -> MarginMetrics:
    revenue = calculate_revenue_metrics(appointments, transactions, settings)
    services_by_id = {service.id: service for service in services}
    staff_by_id = {member.id: member for member in staff}

    cogs = 0.0
    direct_labor = 0.0
    for appointment in _completed(appointments):
        service = services_by_id.get(appointment.service_id)
        if service is not None and service.estimated_supply_cost:
            cogs += service.estimated_supply_cost

        member = staff_by_id.get(appointment.staff_id) if appointment.staff_id else None
        if member is not None:
            direct_labor += labor_cost(appointment, member)

    gross_margin = revenue.net_sales - cogs - revenue.processing_fees
    contribution_margin = gross_margin - direct_labor

    return MarginMetrics(
        cogs=cogs,
        direct_labor=direct_labor,
        contribution_margin=contribution_margin,
        contribution_margin_pct=_pct(contribution_margin, revenue.net_sales),
        gross_margin=gross_margin,
        gross_margin_pct=_pct(gross_margin, revenue.net_sales),
        avg_margin_per_appointment=_ratio(contribution_margin, revenue.completed_count),
    )


def calculate_appointment_metrics(appointments: Sequence[Appointment]) -> AppointmentMetrics:
    counts: Dict[str, int] = defaultdict(int)
    for appointment in appointments:
        counts[appointment.status] += 1

    total = len(appointments)
    cancelled = counts["cancelled"]
    # Completion and no-show rates exclude cancellations from the denominator.
    non_cancelled = total - cancelled

    variances = [
        variance
        for variance in map(_duration_variance, _completed(appointments))
        if variance is not None
    ]

    return AppointmentMetrics(
        total=total,
        completed=counts["completed"],
        cancelled=cancelled,
        no_shows=counts["no-show"],
        scheduled=sum(counts[status] for status in OPEN_STATUSES),
        completion_rate=_pct(counts["completed"], non_cancelled),
        cancellation_rate=_pct(cancelled, total),
        no_show_rate=_pct(counts["no-show"], non_cancelled),
        avg_duration_variance=_mean(variances),
    )


def calculate_retention_metrics(
    appointments: Sequence[Appointment],
    customers: Sequence[Customer],
    *,
    now: datetime | None = None,
    lapsed_threshold_days: int = LAPSED_THRESHOLD_DAYS,
) -> RetentionMetrics:
    """Rebooking, visit cadence and lapsed-customer figures.

    ``appointments`` is the date-filtered set; only completed visits count.
    ``customers`` is the full customer list, since lapsed detection is a
    point-in-time snapshot independent of the report period.
    """
    now = now or datetime.now()

    dated = [
        (moment, appointment)
        for appointment in _completed(appointments)
        if (moment := parse_timestamp(appointment.date)) is not None
    ]
    dated.sort(key=lambda pair: pair[0])

    rebook_counts = [0] * len(REBOOK_WINDOWS_DAYS)
    visits_by_customer: Dict[str, List[datetime]] = defaultdict(list)
    for visit_date, appointment in dated:
        visits_by_customer[appointment.customer_id].append(visit_date)

        rebooked = parse_timestamp(appointment.rebooked_at)
        if rebooked is None:
            continue
        completed = parse_timestamp(appointment.completed_at) or visit_date
        gap = whole_days_between(rebooked, completed)
        # Windows are cumulative: a next-day rebook counts toward every bucket.
        for index, window in enumerate(REBOOK_WINDOWS_DAYS):
            if gap <= window:
                rebook_counts[index] += 1

    intervals: List[int] = []
    for visits in visits_by_customer.values():
        visits.sort()
        intervals.extend(
            whole_days_between(later, earlier) for earlier, later in zip(visits, visits[1:])
        )

    lapsed: List[LapsedCustomer] = []
    for customer in customers:
        last_visit = parse_timestamp(customer.last_visit)
        if last_visit is None:
            continue
        days_since = whole_days_between(now, last_visit)
        if days_since > lapsed_threshold_days:
            lapsed.append(
                LapsedCustomer(
                    customer_id=customer.id,
                    name=customer.full_name,
                    last_visit=str(customer.last_visit),
                    days_since_last_visit=days_since,
                )
            )

    total_completed = len(_completed(appointments))
    within_day, within_week, within_month = rebook_counts
    return RetentionMetrics(
        rebook_count_0_to_24h=within_day,
        rebook_count_7d=within_week,
        rebook_count_30d=within_month,
        rebook_rate_0_to_24h=_pct(within_day, total_completed),
        rebook_rate_7d=_pct(within_week, total_completed),
        rebook_rate_30d=_pct(within_month, total_completed),
        avg_days_to_next_visit=_mean(intervals),
        lapsed_threshold_days=lapsed_threshold_days,
        lapsed_count=len(lapsed),
        lapsed_customers=lapsed,
    )


@dataclass
class _GroupTotals:
    count: int = 0
    revenue: float = 0.0
    discounts: float = 0.0
    variances: List[int] = field(default_factory=list)

    def add(self, appointment: Appointment) -> None:
        self.count += 1
        self.revenue += appointment.price
        self.discounts += appointment.discount or 0.0
        variance = _duration_variance(appointment)
        if variance is not None:
            self.variances.append(variance)

    @property
    def net_revenue(self) -> float:
        return self.revenue - self.discounts


def calculate_service_breakdown(
    appointments: Sequence[Appointment],
    services: Sequence[Service],
) -> List[ServiceBreakdownRow]:
    services_by_id = {service.id: service for service in services}
    groups: Dict[str, _GroupTotals] = {}
    for appointment in _completed(appointments):
        groups.setdefault(appointment.service_id, _GroupTotals()).add(appointment)

    rows: List[ServiceBreakdownRow] = []
    for service_id, totals in groups.items():
        service = services_by_id.get(service_id)
        supply_cost = service.estimated_supply_cost if service else None
        rows.append(
            ServiceBreakdownRow(
                service_id=service_id,
                service_name=service.name if service else "Unknown Service",
                service_category=service.category if service else "Uncategorized",
                count=totals.count,
                revenue=totals.revenue,
                discounts=totals.discounts,
                net_revenue=totals.net_revenue,
                discount_pct=_pct(totals.discounts, totals.revenue),
                avg_ticket=_ratio(totals.net_revenue, totals.count),
                avg_duration_variance=_mean(totals.variances),
                estimated_cogs=(supply_cost or 0.0) * totals.count,
            )
        )
    # sorted() is stable, so ties keep first-seen order.
    return sorted(rows, key=lambda row: row.net_revenue, reverse=True)


@dataclass
class _StaffTotals(_GroupTotals):
    minutes_booked: int = 0
    minutes_worked: int = 0
    rebooks: int = 0
    no_shows: int = 0


def calculate_staff_performance(
    appointments: Sequence[Appointment],
    staff: Sequence[Staff],
) -> List[StaffPerformanceRow]:
    staff_by_id = {member.id: member for member in staff}
    groups: Dict[str, _StaffTotals] = {}
    for appointment in appointments:
        if not appointment.staff_id:
            continue
        totals = groups.setdefault(appointment.staff_id, _StaffTotals())
        if appointment.status == "completed":
            totals.add(appointment)
            totals.minutes_worked += _worked_minutes(appointment)
            if appointment.rebooked_at:
                totals.rebooks += 1
        elif appointment.status == "no-show":
            totals.no_shows += 1
        totals.minutes_booked += appointment.planned_duration

    rows: List[StaffPerformanceRow] = []
    for staff_id, totals in groups.items():
        member = staff_by_id.get(staff_id)
        hours_worked = totals.minutes_worked / 60
        rows.append(
            StaffPerformanceRow(
                staff_id=staff_id,
                staff_name=member.display_name if member else "Unknown",
                appointments=totals.count,
                gross_revenue=totals.revenue,
                discounts=totals.discounts,
                revenue=totals.net_revenue,
                discount_pct=_pct(totals.discounts, totals.revenue),
                avg_ticket=_ratio(totals.net_revenue, totals.count),
                avg_duration_variance=_mean(totals.variances),
                hours_booked=totals.minutes_booked / 60,
                hours_worked=hours_worked,
                revenue_per_hour=_ratio(totals.net_revenue, hours_worked),
                rebook_count=totals.rebooks,
                rebook_rate=_pct(totals.rebooks, totals.count),
                no_shows=totals.no_shows,
                no_show_rate=_pct(totals.no_shows, totals.count + totals.no_shows),
            )
        )
    return sorted(rows, key=lambda row: row.revenue, reverse=True)
