from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from salon_reports.config import Settings, get_settings
from salon_reports.schemas.report_settings import ReportSettings
from salon_reports.schemas.reports import (
    AppointmentMetrics,
    DateRangeResponse,
    MarginMetrics,
    ReportRequest,
    ReportSummaryResponse,
    RetentionMetrics,
    RevenueMetrics,
    ServiceBreakdownResponse,
    StaffPerformanceResponse,
)
from salon_reports.schemas.salon import Appointment, Transaction
from salon_reports.services.calculations import (
    LAPSED_THRESHOLD_DAYS,
    calculate_appointment_metrics,
    calculate_margin_metrics,
    calculate_retention_metrics,
    calculate_revenue_metrics,
    calculate_service_breakdown,
    calculate_staff_performance,
)
from salon_reports.services.date_ranges import DateRange, resolve_date_range
from salon_reports.services.exceptions import ServiceError
from salon_reports.services.filters import filter_appointments, filter_transactions
from salon_reports.services.store import SalonDataRepository, SalonSnapshot, get_store

logger = logging.getLogger(__name__)


def _format_instant(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds")


@dataclass(frozen=True)
class _ReportContext:
    """One snapshot narrowed to a request's filters."""

    snapshot: SalonSnapshot
    date_range: DateRange
    now: datetime
    appointments: List[Appointment]
    transactions: List[Transaction]
    settings: Optional[ReportSettings]


class ReportService:
    def __init__(
        self,
        repository: SalonDataRepository | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
        config: Settings | None = None,
    ) -> None:
        self._repository = repository or get_store()
        self._clock = clock or datetime.now
        self._config = config or get_settings()

    async def _load_snapshot(self) -> SalonSnapshot:
        try:
            return await self._repository.snapshot()
        except ServiceError:
            raise
        except Exception as exc:  # pragma: no cover - defensive
            logger.exception("Unexpected error while loading salon snapshot")
            raise ServiceError("Failed to load salon data", cause=exc)

    async def _context(self, request: ReportRequest) -> _ReportContext:
        snapshot = await self._load_snapshot()
        now = self._clock()
        filters = request.filters
        date_range = resolve_date_range(filters.date_range, now=now)
        appointments = filter_appointments(
            snapshot.appointments, filters, date_range=date_range
        )
        transactions = filter_transactions(
            snapshot.transactions, filters, filters.time_basis, date_range=date_range
        )
        logger.debug(
            "Report window %s..%s kept %d/%d appointments and %d/%d transactions",
            date_range.start,
            date_range.end,
            len(appointments),
            len(snapshot.appointments),
            len(transactions),
            len(snapshot.transactions),
        )
        return _ReportContext(
            snapshot=snapshot,
            date_range=date_range,
            now=now,
            appointments=appointments,
            transactions=transactions,
            settings=request.settings or snapshot.settings,
        )

    def _lapsed_threshold(self, settings: Optional[ReportSettings]) -> int:
        # 90 days unless the deployment opts in to the configured business setting.
        if self._config.retention_use_settings_threshold and settings is not None:
            return settings.retention.lapsed_threshold_days
        return LAPSED_THRESHOLD_DAYS

    @staticmethod
    def _date_range_response(request: ReportRequest, date_range: DateRange) -> DateRangeResponse:
        return DateRangeResponse(
            preset=request.filters.date_range.preset,
            start=_format_instant(date_range.start),
            end=_format_instant(date_range.end),
        )

    async def date_range(self, request: ReportRequest) -> DateRangeResponse:
        date_range = resolve_date_range(request.filters.date_range, now=self._clock())
        return self._date_range_response(request, date_range)

    async def revenue(self, request: ReportRequest) -> RevenueMetrics:
        logger.info("Building revenue report for %s", request.filters.date_range.preset)
        ctx = await self._context(request)
        return calculate_revenue_metrics(ctx.appointments, ctx.transactions, ctx.settings)

    async def margin(self, request: ReportRequest) -> MarginMetrics:
        logger.info("Building margin report for %s", request.filters.date_range.preset)
        ctx = await self._context(request)
        return calculate_margin_metrics(
            ctx.appointments,
            ctx.transactions,
            ctx.snapshot.services,
            ctx.snapshot.staff,
            ctx.settings,
        )

    async def appointments(self, request: ReportRequest) -> AppointmentMetrics:
        logger.info("Building appointment report for %s", request.filters.date_range.preset)
        ctx = await self._context(request)
        return calculate_appointment_metrics(ctx.appointments)

    def _retention(self, ctx: _ReportContext) -> RetentionMetrics:
        completed = [item for item in ctx.appointments if item.status == "completed"]
        return calculate_retention_metrics(
            completed,
            ctx.snapshot.customers,
            now=ctx.now,
            lapsed_threshold_days=self._lapsed_threshold(ctx.settings),
        )

    async def retention(self, request: ReportRequest) -> RetentionMetrics:
        logger.info("Building retention report for %s", request.filters.date_range.preset)
        ctx = await self._context(request)
        return self._retention(ctx)

    async def services(self, request: ReportRequest) -> ServiceBreakdownResponse:
        logger.info("Building service breakdown for %s", request.filters.date_range.preset)
        ctx = await self._context(request)
        rows = calculate_service_breakdown(ctx.appointments, ctx.snapshot.services)
        return ServiceBreakdownResponse(total=len(rows), items=rows)

    async def staff(self, request: ReportRequest) -> StaffPerformanceResponse:
        logger.info("Building staff performance for %s", request.filters.date_range.preset)
        ctx = await self._context(request)
        rows = calculate_staff_performance(ctx.appointments, ctx.snapshot.staff)
        return StaffPerformanceResponse(total=len(rows), items=rows)

    async def summary(self, request: ReportRequest) -> ReportSummaryResponse:
        logger.info("Building report summary for %s", request.filters.date_range.preset)
        ctx = await self._context(request)
        revenue = calculate_revenue_metrics(ctx.appointments, ctx.transactions, ctx.settings)
        return ReportSummaryResponse(
            date_range=self._date_range_response(request, ctx.date_range),
            generated_at=_format_instant(ctx.now),
            revenue=revenue,
            margin=calculate_margin_metrics(
                ctx.appointments,
                ctx.transactions,
                ctx.snapshot.services,
                ctx.snapshot.staff,
                ctx.settings,
            ),
            appointments=calculate_appointment_metrics(ctx.appointments),
            retention=self._retention(ctx),
            services=calculate_service_breakdown(ctx.appointments, ctx.snapshot.services),
            staff=calculate_staff_performance(ctx.appointments, ctx.snapshot.staff),
            revenue_gap=revenue.appointment_revenue - revenue.net_sales,
        )
