# salon_reports/mcp_server.py
from __future__ import annotations

import logging
from typing import List, Literal, Optional

from mcp.server.fastmcp import Context, FastMCP
from pydantic import BaseModel, Field

from salon_reports.schemas.filters import DateRangeFilter, GlobalFilters
from salon_reports.schemas.reports import (
    MarginMetrics,
    ReportRequest,
    ReportSummaryResponse,
    RetentionMetrics,
    RevenueMetrics,
    ServiceBreakdownResponse,
    StaffPerformanceResponse,
)
from salon_reports.services.reports import ReportService

log = logging.getLogger("salon_reports.mcp")

# Name shown to MCP clients
mcp = FastMCP("salon_reports_mcp")


# --------------------------
# Tool I/O models
# --------------------------
class ReportToolInput(BaseModel):
    preset: Literal[
        "today", "yesterday", "last7", "thisWeek", "last30",
        "thisMonth", "lastMonth", "quarter", "ytd", "custom",
    ] = Field("last30", description="Named reporting period")
    start_date: Optional[str] = Field(None, description="Custom range start, YYYY-MM-DD")
    end_date: Optional[str] = Field(None, description="Custom range end, YYYY-MM-DD")
    time_basis: Literal["service", "checkout", "transaction"] = "checkout"
    staff_ids: List[str] = Field(default_factory=list)
    service_ids: List[str] = Field(default_factory=list)
    payment_method: List[str] = Field(default_factory=list)

    def to_request(self) -> ReportRequest:
        return ReportRequest(
            filters=GlobalFilters(
                date_range=DateRangeFilter(
                    preset=self.preset,
                    start_date=self.start_date,
                    end_date=self.end_date,
                ),
                time_basis=self.time_basis,
                staff_ids=self.staff_ids,
                service_ids=self.service_ids,
                payment_method=self.payment_method,
            )
        )


# --------------------------
# Tools
# --------------------------
@mcp.tool(name="reports_summary", description="All salon metrics for a reporting period")
async def reports_summary(input: ReportToolInput, ctx: Context) -> ReportSummaryResponse:
    log.debug("reports_summary input=%s", input.model_dump())
    out = await ReportService().summary(input.to_request())
    log.debug("reports_summary net_sales=%s", out.revenue.net_sales)
    return out


@mcp.tool(name="reports_revenue", description="Sales, fees, tips and average ticket")
async def reports_revenue(input: ReportToolInput, ctx: Context) -> RevenueMetrics:
    log.debug("reports_revenue input=%s", input.model_dump())
    return await ReportService().revenue(input.to_request())


@mcp.tool(name="reports_margin", description="COGS, direct labor and contribution margin")
async def reports_margin(input: ReportToolInput, ctx: Context) -> MarginMetrics:
    log.debug("reports_margin input=%s", input.model_dump())
    return await ReportService().margin(input.to_request())


@mcp.tool(name="reports_retention", description="Rebooking rates and lapsed customers")
async def reports_retention(input: ReportToolInput, ctx: Context) -> RetentionMetrics:
    log.debug("reports_retention input=%s", input.model_dump())
    return await ReportService().retention(input.to_request())


@mcp.tool(name="reports_service_breakdown", description="Revenue and COGS per service")
async def reports_service_breakdown(
    input: ReportToolInput, ctx: Context
) -> ServiceBreakdownResponse:
    log.debug("reports_service_breakdown input=%s", input.model_dump())
    return await ReportService().services(input.to_request())


@mcp.tool(name="reports_staff_performance", description="Revenue, hours and rebooks per groomer")
async def reports_staff_performance(
    input: ReportToolInput, ctx: Context
) -> StaffPerformanceResponse:
    log.debug("reports_staff_performance input=%s", input.model_dump())
    return await ReportService().staff(input.to_request())


@mcp.tool(name="ping", description="Health check")
async def ping(message: str) -> str:
    log.debug("ping %s", message)
    return f"pong: {message}"
