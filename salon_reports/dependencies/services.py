from __future__ import annotations

from fastapi import Depends

from salon_reports.config import Settings, get_settings
from salon_reports.services import ReportService
from salon_reports.services.store import SalonDataRepository, get_store


def get_repository() -> SalonDataRepository:
    return get_store()


def get_report_service(
    repository: SalonDataRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> ReportService:
    return ReportService(repository, config=settings)
