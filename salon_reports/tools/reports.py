from fastapi import APIRouter, Depends, HTTPException

from salon_reports.dependencies.services import get_report_service
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
from salon_reports.services import ReportService
from salon_reports.services.exceptions import ServiceError

router = APIRouter()


@router.post("/date-range", response_model=DateRangeResponse)
async def resolve_range(
    req: ReportRequest,
    service: ReportService = Depends(get_report_service),
):
    return await service.date_range(req)


@router.post("/revenue", response_model=RevenueMetrics)
async def revenue_report(
    req: ReportRequest,
    service: ReportService = Depends(get_report_service),
):
    try:
        return await service.revenue(req)
    except ServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.post("/margin", response_model=MarginMetrics)
async def margin_report(
    req: ReportRequest,
    service: ReportService = Depends(get_report_service),
):
    try:
        return await service.margin(req)
    except ServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.post("/appointments", response_model=AppointmentMetrics)
async def appointment_report(
    req: ReportRequest,
    service: ReportService = Depends(get_report_service),
):
    try:
        return await service.appointments(req)
    except ServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.post("/retention", response_model=RetentionMetrics)
async def retention_report(
    req: ReportRequest,
    service: ReportService = Depends(get_report_service),
):
    try:
        return await service.retention(req)
    except ServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.post("/services", response_model=ServiceBreakdownResponse)
async def service_breakdown(
    req: ReportRequest,
    service: ReportService = Depends(get_report_service),
):
    try:
        return await service.services(req)
    except ServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.post("/staff", response_model=StaffPerformanceResponse)
async def staff_performance(
    req: ReportRequest,
    service: ReportService = Depends(get_report_service),
):
    try:
        return await service.staff(req)
    except ServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.post("/summary", response_model=ReportSummaryResponse)
async def report_summary(
    req: ReportRequest,
    service: ReportService = Depends(get_report_service),
):
    try:
        return await service.summary(req)
    except ServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
