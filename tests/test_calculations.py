import os
import sys
from datetime import datetime, timedelta

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from salon_reports.schemas.report_settings import ProcessorSettings, ReportSettings
from salon_reports.schemas.salon import (
    Appointment,
    CommissionCompensation,
    Customer,
    HourlyCompensation,
    Service,
    Staff,
    Transaction,
    UnsetCompensation,
)
from salon_reports.services.calculations import (
    calculate_appointment_metrics,
    calculate_margin_metrics,
    calculate_retention_metrics,
    calculate_revenue_metrics,
    calculate_service_breakdown,
    calculate_staff_performance,
    labor_cost,
    processing_fee,
)

REFERENCE_NOW = datetime(2025, 11, 15, 12, 0)


def _appointment(appointment_id: str, **overrides) -> Appointment:
    payload = {
        "id": appointment_id,
        "customer_id": "c1",
        "pet_id": "p1",
        "service_id": "svc-1",
        "staff_id": "s1",
        "date": "2025-11-10T10:00:00",
        "planned_duration": 60,
        "status": "completed",
        "price": 80.0,
    }
    payload.update(overrides)
    return Appointment(**payload)


def _transaction(transaction_id: str, **overrides) -> Transaction:
    payload = {
        "id": transaction_id,
        "checkout_date": "2025-11-10T11:00:00",
        "transaction_date": "2025-11-10T11:00:00",
        "subtotal": 100.0,
        "discount_total": 10.0,
        "refund_total": 0.0,
        "tax_total": 8.0,
        "tip_total": 15.0,
        "total_collected": 113.0,
        "status": "completed",
    }
    payload.update(overrides)
    return Transaction(**payload)


# --------------------------------------------------------------------------
# Revenue
# --------------------------------------------------------------------------
def test_revenue_for_single_completed_transaction() -> None:
    metrics = calculate_revenue_metrics([], [_transaction("t1")])

    assert metrics.gross_sales == 100
    assert metrics.discounts == 10
    assert metrics.net_sales == 90
    assert metrics.taxes_collected == 8
    assert metrics.tips == 15
    assert metrics.total_collected == 113
    assert metrics.invoice_count == 1
    assert metrics.avg_ticket == 90
    assert metrics.processing_fees == 0


def test_net_sales_subtracts_discounts_and_refunds() -> None:
    transactions = [
        _transaction("t1", subtotal=120.0, discount_total=12.5, refund_total=20.0),
        _transaction("t2", subtotal=64.0, discount_total=0.0, refund_total=None),
        _transaction("t3", subtotal=15.0, discount_total=1.5, refund_total=15.0, status="refunded"),
    ]

    metrics = calculate_revenue_metrics([], transactions)

    assert metrics.net_sales == metrics.gross_sales - metrics.discounts - metrics.refunds
    assert metrics.refunds == pytest.approx(35.0)
    assert metrics.invoice_count == 2


def test_avg_ticket_is_zero_without_completed_invoices() -> None:
    metrics = calculate_revenue_metrics([], [_transaction("t1", status="pending")])

    assert metrics.invoice_count == 0
    assert metrics.avg_ticket == 0


def test_explicit_processing_fee_wins_over_policy() -> None:
    settings = ReportSettings(processor=ProcessorSettings(fee_rate_pct=3, fee_fixed=0.3))

    assert processing_fee(_transaction("t1", processing_fee=1.25), settings) == 1.25
    assert processing_fee(_transaction("t2", processing_fee=0.0), settings) == 0.0
    assert processing_fee(_transaction("t3"), None) == 0.0


@pytest.mark.parametrize(
    ("policy", "expected"),
    [
        ("subtotal", 100 * 0.03 + 0.3),
        ("subtotal+tax", 108 * 0.03 + 0.3),
        ("subtotal+tax+tip", 123 * 0.03 + 0.3),
    ],
)
def test_processing_fee_follows_base_policy(policy, expected) -> None:
    settings = ReportSettings(
        processor=ProcessorSettings(fee_rate_pct=3, fee_fixed=0.3, fee_base_policy=policy)
    )

    metrics = calculate_revenue_metrics([], [_transaction("t1")], settings)

    assert metrics.processing_fees == pytest.approx(expected)


def test_appointment_revenue_counts_completed_work_only() -> None:
    appointments = [
        _appointment("a1", price=80.0, discount=5.0),
        _appointment("a2", price=45.0),
        _appointment("a3", price=60.0, status="cancelled"),
        _appointment("a4", price=60.0, status="scheduled"),
    ]

    metrics = calculate_revenue_metrics(appointments, [])

    assert metrics.appointment_revenue == pytest.approx(120.0)
    assert metrics.completed_count == 2
    assert metrics.net_sales == 0


# --------------------------------------------------------------------------
# Margin
# --------------------------------------------------------------------------
def test_commission_labor_includes_employer_burden() -> None:
    staff = [
        Staff.model_validate(
            {
                "id": "s1",
                "name": "Sarah",
                "compensationModel": "commission",
                "commissionRate": 40,
                "employerBurdenPct": 10,
            }
        )
    ]

    metrics = calculate_margin_metrics([_appointment("a1")], [], [], staff)

    assert metrics.direct_labor == pytest.approx(35.2)


def test_hourly_labor_prefers_actual_duration() -> None:
    member = Staff(id="s1", compensation=HourlyCompensation(rate=20))

    assert labor_cost(_appointment("a1", actual_duration=90), member) == pytest.approx(30.0)
    assert labor_cost(_appointment("a2"), member) == pytest.approx(20.0)


def test_unset_compensation_costs_nothing() -> None:
    member = Staff.model_validate({"id": "s1", "compensationModel": "commission"})

    assert isinstance(member.compensation, UnsetCompensation)
    assert labor_cost(_appointment("a1"), member) == 0.0


def test_margin_waterfall() -> None:
    services = [Service(id="svc-1", name="Full Groom", estimated_supply_cost=10.0)]
    staff = [Staff(id="s1", compensation=CommissionCompensation(rate=50))]
    appointments = [
        _appointment("a1", price=100.0),
        _appointment("a2", price=100.0, staff_id=None),
        _appointment("a3", price=100.0, status="no-show"),
    ]
    transactions = [
        _transaction("t1", subtotal=100.0, discount_total=0.0, processing_fee=3.0),
        _transaction("t2", subtotal=100.0, discount_total=0.0, processing_fee=3.0),
    ]

    metrics = calculate_margin_metrics(appointments, transactions, services, staff)

    assert metrics.cogs == pytest.approx(20.0)
    assert metrics.direct_labor == pytest.approx(50.0)
    assert metrics.gross_margin == pytest.approx(200 - 20 - 6)
    assert metrics.contribution_margin == pytest.approx(200 - 20 - 6 - 50)
    assert metrics.contribution_margin_pct == pytest.approx(124 / 200 * 100)
    assert metrics.gross_margin_pct == pytest.approx(174 / 200 * 100)
    assert metrics.avg_margin_per_appointment == pytest.approx(62.0)


def test_margin_ratios_are_zero_without_sales_or_completions() -> None:
    metrics = calculate_margin_metrics(
        [_appointment("a1", status="cancelled")], [], [], []
    )

    assert metrics.contribution_margin_pct == 0
    assert metrics.gross_margin_pct == 0
    assert metrics.avg_margin_per_appointment == 0


# --------------------------------------------------------------------------
# Appointments
# --------------------------------------------------------------------------
def test_completion_and_cancellation_use_different_denominators() -> None:
    statuses = ["completed"] * 6 + ["cancelled"] * 2 + ["no-show", "scheduled"]
    appointments = [
        _appointment(f"a{index}", status=status) for index, status in enumerate(statuses)
    ]

    metrics = calculate_appointment_metrics(appointments)

    assert (metrics.total, metrics.completed, metrics.cancelled) == (10, 6, 2)
    assert (metrics.no_shows, metrics.scheduled) == (1, 1)
    assert metrics.completion_rate == pytest.approx(75.0)
    assert metrics.cancellation_rate == pytest.approx(20.0)
    assert metrics.no_show_rate == pytest.approx(12.5)
    assert metrics.completion_rate + metrics.cancellation_rate != pytest.approx(100.0)


def test_duration_variance_skips_missing_actuals() -> None:
    appointments = [
        _appointment("a1", actual_duration=75),
        _appointment("a2", actual_duration=55),
        _appointment("a3"),
        _appointment("a4", actual_duration=200, status="cancelled"),
    ]

    metrics = calculate_appointment_metrics(appointments)

    assert metrics.avg_duration_variance == pytest.approx(5.0)


def test_appointment_rates_are_zero_for_empty_input() -> None:
    metrics = calculate_appointment_metrics([])

    assert metrics.completion_rate == 0
    assert metrics.cancellation_rate == 0
    assert metrics.no_show_rate == 0


def test_in_flight_statuses_count_as_scheduled() -> None:
    statuses = ["confirmed", "checked-in", "scheduled", "completed"]
    appointments = [
        _appointment(f"a{index}", status=status) for index, status in enumerate(statuses)
    ]

    metrics = calculate_appointment_metrics(appointments)

    assert (metrics.total, metrics.completed, metrics.scheduled) == (4, 1, 3)
    assert metrics.completion_rate == pytest.approx(25.0)


# --------------------------------------------------------------------------
# Retention
# --------------------------------------------------------------------------
def test_rebook_buckets_are_cumulative() -> None:
    appointments = [
        _appointment(
            "same-day",
            completed_at="2025-11-01T11:00:00",
            rebooked_at="2025-11-01T11:30:00",
        ),
        _appointment("five-days", date="2025-11-02T10:00:00", rebooked_at="2025-11-07T12:00:00"),
        _appointment("forty-days", date="2025-09-20T10:00:00", rebooked_at="2025-10-30T12:00:00"),
        _appointment("never"),
    ]

    metrics = calculate_retention_metrics(appointments, [], now=REFERENCE_NOW)

    assert metrics.rebook_count_0_to_24h == 1
    assert metrics.rebook_count_7d == 2
    assert metrics.rebook_count_30d == 2
    assert metrics.rebook_rate_0_to_24h == pytest.approx(25.0)
    assert metrics.rebook_rate_7d == pytest.approx(50.0)
    assert metrics.rebook_rate_30d == pytest.approx(50.0)


def test_average_days_between_visits_per_customer() -> None:
    appointments = [
        _appointment("c1-late", customer_id="c1", date="2025-11-15T09:00:00"),
        _appointment("c1-first", customer_id="c1", date="2025-11-01T09:00:00"),
        _appointment("c1-mid", customer_id="c1", date="2025-11-11T09:00:00"),
        _appointment("c2-only", customer_id="c2", date="2025-11-03T09:00:00"),
        _appointment("c2-cancel", customer_id="c2", date="2025-11-04T09:00:00", status="cancelled"),
    ]

    metrics = calculate_retention_metrics(appointments, [], now=REFERENCE_NOW)

    assert metrics.avg_days_to_next_visit == pytest.approx(7.0)


def test_lapsed_customers_use_ninety_day_threshold() -> None:
    def visit(days_ago: int) -> str:
        return (REFERENCE_NOW - timedelta(days=days_ago)).date().isoformat()

    customers = [
        Customer(id="gone", first_name="Olivia", last_name="Grant", last_visit=visit(95)),
        Customer(id="recent", first_name="Sam", last_name="Okafor", last_visit=visit(89)),
        Customer(id="never", first_name="New", last_name="Client"),
        Customer(id="garbled", first_name="Bad", last_name="Data", last_visit="someday"),
    ]

    metrics = calculate_retention_metrics([], customers, now=REFERENCE_NOW)

    assert metrics.lapsed_count == 1
    assert metrics.lapsed_threshold_days == 90
    lapsed = metrics.lapsed_customers[0]
    assert lapsed.customer_id == "gone"
    assert lapsed.name == "Olivia Grant"
    assert lapsed.days_since_last_visit == 95


def test_lapsed_threshold_can_be_overridden() -> None:
    customers = [
        Customer(
            id="c1",
            last_visit=(REFERENCE_NOW - timedelta(days=70)).date().isoformat(),
        )
    ]

    metrics = calculate_retention_metrics(
        [], customers, now=REFERENCE_NOW, lapsed_threshold_days=60
    )

    assert metrics.lapsed_count == 1


def test_retention_rates_are_zero_without_completed_visits() -> None:
    metrics = calculate_retention_metrics(
        [_appointment("a1", status="no-show")], [], now=REFERENCE_NOW
    )

    assert metrics.rebook_rate_30d == 0
    assert metrics.avg_days_to_next_visit == 0


def test_rebook_rates_divide_by_every_completed_appointment() -> None:
    appointments = [
        _appointment(
            "same-day",
            completed_at="2025-11-01T11:00:00",
            rebooked_at="2025-11-01T11:30:00",
        ),
        _appointment("undated", date="not a date"),
    ]

    metrics = calculate_retention_metrics(appointments, [], now=REFERENCE_NOW)

    assert metrics.rebook_count_0_to_24h == 1
    assert metrics.rebook_rate_0_to_24h == pytest.approx(50.0)


# --------------------------------------------------------------------------
# Breakdowns
# --------------------------------------------------------------------------
def test_service_breakdown_groups_and_sorts_by_net_revenue() -> None:
    services = [
        Service(id="svc-1", name="Bath & Brush", category="Bathing", estimated_supply_cost=5.0),
        Service(id="svc-2", name="Full Groom", category="Grooming", estimated_supply_cost=9.5),
    ]
    appointments = [
        _appointment("a1", service_id="svc-1", price=45.0, discount=5.0, actual_duration=70),
        _appointment("a2", service_id="svc-1", price=45.0, actual_duration=50),
        _appointment("a3", service_id="svc-2", price=85.0),
        _appointment("a4", service_id="svc-2", price=85.0, status="cancelled"),
        _appointment("a5", service_id="svc-x", price=10.0),
    ]

    rows = calculate_service_breakdown(appointments, services)

    assert [row.service_id for row in rows] == ["svc-1", "svc-2", "svc-x"]
    bath = rows[0]
    assert bath.count == 2
    assert bath.revenue == pytest.approx(90.0)
    assert bath.net_revenue == pytest.approx(85.0)
    assert bath.avg_ticket == pytest.approx(42.5)
    assert bath.discount_pct == pytest.approx(5 / 90 * 100)
    assert bath.avg_duration_variance == pytest.approx(0.0)
    assert bath.estimated_cogs == pytest.approx(10.0)
    assert rows[1].count == 1
    unknown = rows[2]
    assert unknown.service_name == "Unknown Service"
    assert unknown.service_category == "Uncategorized"
    assert unknown.estimated_cogs == 0


def test_service_breakdown_keeps_first_seen_order_on_ties() -> None:
    appointments = [
        _appointment("a1", service_id="svc-b", price=40.0),
        _appointment("a2", service_id="svc-a", price=40.0),
    ]

    rows = calculate_service_breakdown(appointments, [])

    assert [row.service_id for row in rows] == ["svc-b", "svc-a"]


def test_staff_performance_tracks_hours_rebooks_and_no_shows() -> None:
    staff = [
        Staff(id="s1", name="Sarah Johnson"),
        Staff(id="s2", first_name="Mike", last_name="Chen"),
    ]
    appointments = [
        _appointment("a1", staff_id="s1", price=90.0, actual_duration=90, rebooked_at="2025-11-12"),
        _appointment("a2", staff_id="s1", price=30.0, discount=0.0, planned_duration=30),
        _appointment("a3", staff_id="s1", status="no-show", planned_duration=60),
        _appointment("a4", staff_id="s2", price=200.0, planned_duration=120),
        _appointment("a5", staff_id=None, price=500.0),
    ]

    rows = calculate_staff_performance(appointments, staff)

    assert [row.staff_id for row in rows] == ["s2", "s1"]
    sarah = rows[1]
    assert sarah.staff_name == "Sarah Johnson"
    assert sarah.appointments == 2
    assert sarah.revenue == pytest.approx(120.0)
    assert sarah.hours_worked == pytest.approx(2.0)
    assert sarah.hours_booked == pytest.approx(2.5)
    assert sarah.revenue_per_hour == pytest.approx(60.0)
    assert sarah.rebook_count == 1
    assert sarah.rebook_rate == pytest.approx(50.0)
    assert sarah.no_shows == 1
    assert sarah.no_show_rate == pytest.approx(100 / 3)
    assert rows[0].staff_name == "Mike Chen"


def test_calculators_do_not_mutate_inputs() -> None:
    appointments = [_appointment("b", date="2025-11-12"), _appointment("a", date="2025-11-01")]
    snapshot = list(appointments)

    calculate_retention_metrics(appointments, [], now=REFERENCE_NOW)
    calculate_service_breakdown(appointments, [])

    assert appointments == snapshot
