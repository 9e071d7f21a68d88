from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from salon_reports.schemas.filters import GlobalFilters, TimeBasis
from salon_reports.schemas.salon import Appointment, Transaction
from salon_reports.services.date_ranges import DateRange, resolve_date_range

logger = logging.getLogger(__name__)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 value onto the naive local clock, or return None."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _in_range(value: Optional[str], date_range: DateRange) -> bool:
    moment = parse_timestamp(value)
    if moment is None:
        if value:
            logger.debug("Skipping record with unparsable date %r", value)
        return False
    return date_range.contains(moment)


def _matches_appointment_facets(appointment: Appointment, filters: GlobalFilters) -> bool:
    if filters.staff_ids and appointment.staff_id not in filters.staff_ids:
        return False
    if filters.service_ids and appointment.service_id not in filters.service_ids:
        return False
    if filters.pet_size and appointment.pet_size not in filters.pet_size:
        return False
    if filters.channel and appointment.channel not in filters.channel:
        return False
    # The status facet only names terminal states, so scheduled work never matches it.
    if filters.appointment_status and appointment.status not in filters.appointment_status:
        return False
    return True


def filter_appointments(
    appointments: Iterable[Appointment],
    filters: GlobalFilters,
    *,
    now: datetime | None = None,
    date_range: DateRange | None = None,
) -> List[Appointment]:
    date_range = date_range or resolve_date_range(filters.date_range, now=now)
    return [
        appointment
        for appointment in appointments
        if _in_range(appointment.date, date_range)
        and _matches_appointment_facets(appointment, filters)
    ]


def filter_transactions(
    transactions: Iterable[Transaction],
    filters: GlobalFilters,
    time_basis: TimeBasis = "checkout",
    *,
    now: datetime | None = None,
    date_range: DateRange | None = None,
) -> List[Transaction]:
    date_range = date_range or resolve_date_range(filters.date_range, now=now)
    filtered: List[Transaction] = []
    for transaction in transactions:
        governing = (
            transaction.transaction_date
            if time_basis == "transaction"
            else transaction.checkout_date
        )
        if not _in_range(governing, date_range):
            continue
        if filters.payment_method and transaction.payment_method not in filters.payment_method:
            continue
        filtered.append(transaction)
    return filtered
