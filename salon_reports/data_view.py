"""Routes for browsing the salon snapshot the reports are computed from."""
from __future__ import annotations

import html
import json
from typing import Any, Dict, Iterable, List, Mapping

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse

from salon_reports.dependencies.services import get_repository
from salon_reports.schemas.salon import Staff
from salon_reports.services.exceptions import ServiceError
from salon_reports.services.store import COLLECTIONS, InMemorySalonStore, SalonDataRepository

router = APIRouter()

_TABLE_COLUMNS: Dict[str, List[str]] = {
    "appointments": [
        "id", "date", "customer_id", "pet_name", "service_id", "staff_id",
        "status", "price", "discount", "planned_duration", "actual_duration",
        "channel", "rebooked_at",
    ],
    "transactions": [
        "id", "checkout_date", "appointment_id", "subtotal", "discount_total",
        "tax_total", "tip_total", "refund_total", "total_collected",
        "payment_method", "processing_fee", "status",
    ],
    "services": [
        "id", "name", "category", "default_duration", "base_price",
        "estimated_supply_cost", "active",
    ],
    "customers": [
        "id", "first_name", "last_name", "email", "phone", "first_visit",
        "last_visit", "total_visits", "pets",
    ],
}


def _stringify(value: Any) -> str:
    """Return a JSON-friendly string representation for table cells."""
    if value is None:
        return ""
    if isinstance(value, (str, int, float, bool)):
        return str(value)
    return json.dumps(value, default=str)


def _build_table(title: str, rows: Iterable[Mapping[str, Any]]) -> str:
    row_list: List[Dict[str, Any]] = [dict(row) for row in rows]
    section_parts = [f"<section><h2>{html.escape(title)}</h2>"]
    if not row_list:
        section_parts.append("<p>No records found.</p></section>")
        return "".join(section_parts)

    columns: List[str] = []
    for row in row_list:
        for key in row.keys():
            if key not in columns:
                columns.append(key)

    header = "".join(f"<th>{html.escape(column)}</th>" for column in columns)
    body_rows: List[str] = []
    for row in row_list:
        cells = []
        for column in columns:
            value = _stringify(row.get(column))
            cells.append(f"<td>{html.escape(value)}</td>")
        body_rows.append("<tr>" + "".join(cells) + "</tr>")
    table_html = (
        "<table><thead><tr>"
        + header
        + "</tr></thead><tbody>"
        + "".join(body_rows)
        + "</tbody></table>"
    )
    section_parts.append(table_html)
    section_parts.append("</section>")
    return "".join(section_parts)


def _record_rows(collection: str, records: Iterable[Any]) -> List[Dict[str, Any]]:
    columns = _TABLE_COLUMNS[collection]
    rows: List[Dict[str, Any]] = []
    for record in records:
        dumped = record.model_dump(mode="json")
        rows.append({column: dumped.get(column) for column in columns})
    return rows


def _staff_rows(staff: Iterable[Staff]) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for member in staff:
        compensation = member.compensation
        rows.append(
            {
                "id": member.id,
                "name": member.display_name,
                "role": member.role,
                "compensation": compensation.kind,
                "rate": getattr(compensation, "rate", None),
                "employer_burden_pct": member.employer_burden_pct,
                "active": member.active,
            }
        )
    return rows


@router.get("/data", response_class=HTMLResponse)
async def view_salon_data(
    repository: SalonDataRepository = Depends(get_repository),
) -> HTMLResponse:
    """Render the current salon snapshot as HTML tables."""
    try:
        snapshot = await repository.snapshot()
    except ServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    sections = [
        _build_table("Staff", _staff_rows(snapshot.staff)),
        _build_table("Services", _record_rows("services", snapshot.services)),
        _build_table("Customers", _record_rows("customers", snapshot.customers)),
        _build_table("Appointments", _record_rows("appointments", snapshot.appointments)),
        _build_table("Transactions", _record_rows("transactions", snapshot.transactions)),
    ]

    sections_html = "".join(sections)
    html_content = f"""
    <html>
        <head>
            <title>Salon Data Overview</title>
            <style>
                body {{ font-family: Arial, sans-serif; margin: 2rem; }}
                h1 {{ text-align: center; }}
                section {{ margin-bottom: 2rem; }}
                table {{ border-collapse: collapse; width: 100%; }}
                th, td {{ border: 1px solid #ccc; padding: 0.5rem; text-align: left; }}
                th {{ background-color: #f0f0f0; }}
                tbody tr:nth-child(even) {{ background-color: #fafafa; }}
            </style>
        </head>
        <body>
            <h1>Salon Data Overview</h1>
            {sections_html}
        </body>
    </html>
    """

    return HTMLResponse(content=html_content)


@router.delete("/data/{collection}/{record_id}")
async def delete_salon_record(
    collection: str,
    record_id: str,
    repository: SalonDataRepository = Depends(get_repository),
) -> Dict[str, str]:
    """Remove a record from the in-memory store."""

    if not isinstance(repository, InMemorySalonStore):
        raise HTTPException(status_code=405, detail="The active salon store is read-only")

    normalized = collection.strip().lower()
    canonical_name = normalized if normalized in COLLECTIONS else f"{normalized}s"
    if canonical_name not in COLLECTIONS:
        raise HTTPException(status_code=404, detail="Unsupported salon data collection")

    deleted = await repository.delete(canonical_name, record_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Record not found")

    return {"status": "deleted", "collection": canonical_name, "record_id": record_id}
