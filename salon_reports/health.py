# salon_reports/health.py
from fastapi import APIRouter, Depends, HTTPException

from salon_reports.dependencies.services import get_repository
from salon_reports.services.exceptions import ServiceError
from salon_reports.services.store import SalonDataRepository

router = APIRouter()

@router.get("/health")
def health():
    return {"ok": True}

@router.get("/health/ready")
async def ready(repository: SalonDataRepository = Depends(get_repository)):
    try:
        snapshot = await repository.snapshot()
    except ServiceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {
        "ok": True,
        "store": type(repository).__name__,
        "appointments": len(snapshot.appointments),
        "transactions": len(snapshot.transactions),
    }
