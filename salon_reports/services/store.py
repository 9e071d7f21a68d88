from __future__ import annotations

import asyncio
import itertools
import json
import logging
import random
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple, Type

from pydantic import ValidationError

from salon_reports.config import get_settings
from salon_reports.schemas.base import SnapshotModel
from salon_reports.schemas.report_settings import ReportSettings
from salon_reports.schemas.salon import (
    Appointment,
    Customer,
    Pet,
    Service,
    Staff,
    Transaction,
    TransactionItem,
)
from salon_reports.services.exceptions import SnapshotUnavailableError

logger = logging.getLogger(__name__)

COLLECTIONS = ("appointments", "transactions", "services", "staff", "customers")

# Keys used by the web client's local key-value store.
STORAGE_KEYS: Dict[str, Tuple[str, ...]] = {
    "appointments": ("appointments",),
    "transactions": ("transactions",),
    "services": ("services",),
    "staff": ("staff-members", "staff"),
    "customers": ("customers",),
}
SETTINGS_KEY = "report-settings"


@dataclass(frozen=True)
class SalonSnapshot:
    """Consistent, read-only view of every collection a report needs."""

    appointments: Tuple[Appointment, ...] = ()
    transactions: Tuple[Transaction, ...] = ()
    services: Tuple[Service, ...] = ()
    staff: Tuple[Staff, ...] = ()
    customers: Tuple[Customer, ...] = ()
    settings: Optional[ReportSettings] = None

    def collection(self, name: str) -> Tuple[Any, ...]:
        if name not in COLLECTIONS:
            raise KeyError(name)
        return getattr(self, name)


class SalonDataRepository(Protocol):
    async def snapshot(self) -> SalonSnapshot:
        """Return the current state of the salon data."""


class InMemorySalonStore:
    """Process-local store, seeded with a demo salon unless told otherwise."""

    def __init__(
        self,
        *,
        seed: bool = True,
        reference_date: date | None = None,
        settings: ReportSettings | None = None,
    ) -> None:
        self._records: Dict[str, Dict[str, Any]] = {name: {} for name in COLLECTIONS}
        self._settings = settings
        if seed:
            _SeedBuilder(reference_date or date.today()).populate(self)

    async def snapshot(self) -> SalonSnapshot:
        return SalonSnapshot(
            appointments=tuple(self._records["appointments"].values()),
            transactions=tuple(self._records["transactions"].values()),
            services=tuple(self._records["services"].values()),
            staff=tuple(self._records["staff"].values()),
            customers=tuple(self._records["customers"].values()),
            settings=self._settings,
        )

    def _put(self, collection: str, record: Any) -> Any:
        self._records[collection][record.id] = record
        return record

    def add_appointment(self, appointment: Appointment) -> Appointment:
        return self._put("appointments", appointment)

    def add_transaction(self, transaction: Transaction) -> Transaction:
        return self._put("transactions", transaction)

    def add_service(self, service: Service) -> Service:
        return self._put("services", service)

    def add_staff(self, member: Staff) -> Staff:
        return self._put("staff", member)

    def add_customer(self, customer: Customer) -> Customer:
        return self._put("customers", customer)

    def set_settings(self, settings: ReportSettings | None) -> None:
        self._settings = settings

    def replace(self, snapshot: SalonSnapshot) -> None:
        """Swap every collection for the contents of ``snapshot``."""
        for name in COLLECTIONS:
            self._records[name] = {record.id: record for record in snapshot.collection(name)}
        self._settings = snapshot.settings

    async def delete(self, collection: str, record_id: str) -> bool:
        records = self._records.get(collection)
        if records is None:
            raise KeyError(collection)
        return records.pop(record_id, None) is not None


class JsonFileSalonStore:
    """Reads a JSON document laid out like the web client's key-value storage.

    Records are validated one at a time; a record that does not fit its model
    is logged and left out so the rest of the file still reports.
    """

    _models: Dict[str, Type[SnapshotModel]] = {
        "appointments": Appointment,
        "transactions": Transaction,
        "services": Service,
        "staff": Staff,
        "customers": Customer,
    }

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def snapshot(self) -> SalonSnapshot:
        document = await asyncio.to_thread(self._read)
        return self._build_snapshot(document)

    def _read(self) -> Mapping[str, Any]:
        try:
            with self._path.open(encoding="utf-8") as handle:
                document = json.load(handle)
        except FileNotFoundError as exc:
            raise SnapshotUnavailableError(
                f"Salon data file {self._path} does not exist", str(self._path), cause=exc
            ) from exc
        except (OSError, json.JSONDecodeError) as exc:
            logger.exception("Unable to read salon data file %s", self._path)
            raise SnapshotUnavailableError(
                f"Salon data file {self._path} could not be read", str(self._path), cause=exc
            ) from exc
        if not isinstance(document, dict):
            raise SnapshotUnavailableError(
                "Salon data file must contain a JSON object", str(self._path)
            )
        return document

    def _records(self, name: str, raw: Any) -> Tuple[Any, ...]:
        if not isinstance(raw, list):
            raise SnapshotUnavailableError(
                f"Salon data file {self._path} stores {name} as {type(raw).__name__}, not a list",
                str(self._path),
            )
        model = self._models[name]
        records: List[Any] = []
        for index, item in enumerate(raw):
            try:
                records.append(model.model_validate(item))
            except ValidationError as exc:
                logger.warning(
                    "Skipping %s[%d] in %s: %s",
                    name,
                    index,
                    self._path,
                    exc.errors(include_url=False),
                )
        return tuple(records)

    def _settings(self, raw: Any) -> Optional[ReportSettings]:
        if raw is None:
            return None
        try:
            return ReportSettings.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Ignoring invalid report settings in %s: %s", self._path, exc)
            return None

    def _build_snapshot(self, document: Mapping[str, Any]) -> SalonSnapshot:
        values: Dict[str, Any] = {}
        for name, keys in STORAGE_KEYS.items():
            raw = next((document[key] for key in keys if key in document), [])
            values[name] = self._records(name, raw)

        logger.debug(
            "Loaded snapshot from %s: %s",
            self._path,
            {name: len(items) for name, items in values.items()},
        )
        return SalonSnapshot(settings=self._settings(document.get(SETTINGS_KEY)), **values)


_SEED_STAFF = [
    {"id": "staff-1", "name": "Sarah Johnson", "role": "Lead Groomer", "color": "#6366f1",
     "compensationModel": "commission", "commissionRate": 40, "employerBurdenPct": 10},
    {"id": "staff-2", "name": "Mike Chen", "role": "Senior Groomer", "color": "#8b5cf6",
     "compensationModel": "commission", "commissionRate": 35, "employerBurdenPct": 10},
    {"id": "staff-3", "name": "Emily Rodriguez", "role": "Groomer", "color": "#ec4899",
     "compensationModel": "hourly", "hourlyRate": 20, "employerBurdenPct": 8},
    {"id": "staff-4", "name": "Alex Thompson", "role": "Bather", "color": "#f59e0b",
     "compensationModel": "hourly", "hourlyRate": 18},
]

_SEED_SERVICES = [
    {"id": "service-1", "name": "Full Groom", "category": "Grooming", "defaultDuration": 120,
     "basePrice": 85, "estimatedSupplyCost": 9.5},
    {"id": "service-2", "name": "Bath & Brush", "category": "Bathing", "defaultDuration": 60,
     "basePrice": 45, "estimatedSupplyCost": 5.0},
    {"id": "service-3", "name": "Nail Trim", "category": "Maintenance", "defaultDuration": 15,
     "basePrice": 15, "estimatedSupplyCost": 0.75},
    {"id": "service-4", "name": "De-shedding Treatment", "category": "Grooming",
     "defaultDuration": 90, "basePrice": 65, "estimatedSupplyCost": 7.25},
    {"id": "service-5", "name": "Teeth Brushing", "category": "Maintenance",
     "defaultDuration": 15, "basePrice": 12},
]

_SEED_CUSTOMERS = [
    ("Jordan", "River", "Biscuit", "Golden Retriever", "large"),
    ("Priya", "Nair", "Mochi", "Shih Tzu", "small"),
    ("Sam", "Okafor", "Rex", "Kelpie", "medium"),
    ("Lena", "Fischer", "Pepper", "Miniature Schnauzer", "small"),
    ("Diego", "Alvarez", "Luna", "Border Collie", "medium"),
    ("Hannah", "Kim", "Waffles", "Poodle", "medium"),
    ("Marcus", "Bell", "Tank", "Newfoundland", "large"),
    ("Aisha", "Rahman", "Coco", "Cavalier King Charles", "small"),
]

# Customers whose only visits fall before the regular booking window.
_LAPSED_SEED_CUSTOMERS = [
    ("Olivia", "Grant", "Scout", "Beagle", "medium", 120),
    ("Tom", "Weller", "Bruno", "Boxer", "large", 150),
]

_SIZE_PRICE_FACTOR = {"small": 0.9, "medium": 1.0, "large": 1.25}
_PAYMENT_METHODS = ["card", "cash", "card", "cashapp", "chime"]
_CHANNELS = ["walk-in", "phone", "online", "online"]
_TAX_RATE = 0.08


@dataclass
class _SeedBuilder:
    """Deterministic demo data covering ~90 days before the reference date."""

    reference_date: date
    history_days: int = 90
    rng: random.Random = field(default_factory=lambda: random.Random(20240917))

    def populate(self, store: InMemorySalonStore) -> None:
        staff = [Staff.model_validate(payload) for payload in _SEED_STAFF]
        services = [Service.model_validate(payload) for payload in _SEED_SERVICES]
        for member in staff:
            store.add_staff(member)
        for service in services:
            store.add_service(service)

        appointment_ids = itertools.count(1)
        transaction_ids = itertools.count(1)
        customers = self._customers()
        visits: Dict[str, List[date]] = {customer["id"]: [] for customer in customers}

        bookings: List[Tuple[Dict[str, Any], int, int]] = [
            (customer, offset, 0) for customer, offset in self._lapsed_visits(customers)
        ]
        regulars = customers[: len(_SEED_CUSTOMERS)]
        # Negative offsets are upcoming, still-scheduled bookings.
        for offset in range(self.history_days, -8, -1):
            for slot in range(self.rng.randint(1, 4)):
                bookings.append((self.rng.choice(regulars), offset, slot))

        for customer, offset, slot in bookings:
            day = self.reference_date - timedelta(days=offset)
            appointment = self._appointment(
                f"APT-{next(appointment_ids):05d}", customer, day, slot, offset, staff, services,
                force_completed=customer not in regulars,
            )
            store.add_appointment(appointment)
            if appointment.status == "completed":
                visits[customer["id"]].append(day)
                transaction_id = f"TXN-{next(transaction_ids):05d}"
                store.add_transaction(self._transaction(transaction_id, appointment))

        for customer in customers:
            dates = sorted(visits[customer["id"]])
            if dates:
                customer["firstVisit"] = dates[0].isoformat()
                customer["lastVisit"] = dates[-1].isoformat()
                customer["totalVisits"] = len(dates)
            store.add_customer(Customer.model_validate(customer))

        logger.debug("Seeded demo salon relative to %s", self.reference_date)

    def _customers(self) -> List[Dict[str, Any]]:
        rows = [(*row, None) for row in _SEED_CUSTOMERS] + list(_LAPSED_SEED_CUSTOMERS)
        customers: List[Dict[str, Any]] = []
        for index, (first, last, pet_name, breed, size, _) in enumerate(rows, start=1):
            customers.append(
                {
                    "id": f"customer-{index}",
                    "firstName": first,
                    "lastName": last,
                    "email": f"{first.lower()}.{last.lower()}@example.com",
                    "phone": f"555-01{index:02d}",
                    "pets": [
                        Pet(id=f"pet-{index}", name=pet_name, breed=breed, size=size).model_dump()
                    ],
                }
            )
        return customers

    def _lapsed_visits(self, customers: List[Dict[str, Any]]) -> Iterable[Tuple[Dict[str, Any], int]]:
        lapsed = customers[len(_SEED_CUSTOMERS):]
        return [(customer, row[5]) for customer, row in zip(lapsed, _LAPSED_SEED_CUSTOMERS)]

    def _appointment(
        self,
        appointment_id: str,
        customer: Dict[str, Any],
        day: date,
        slot: int,
        offset: int,
        staff: List[Staff],
        services: List[Service],
        *,
        force_completed: bool = False,
    ) -> Appointment:
        rng = self.rng
        pet = customer["pets"][0]
        service = rng.choice(services)
        member = rng.choice(staff)
        start = datetime.combine(day, time(9 + slot * 2, 0))
        price = round(service.base_price * _SIZE_PRICE_FACTOR[pet["size"]], 2)
        discount = 5.0 if rng.random() < 0.15 else None

        if force_completed:
            status = "completed"
        elif offset <= 0:
            status = "scheduled"
        else:
            status = rng.choices(
                ["completed", "cancelled", "no-show"], weights=[85, 10, 5]
            )[0]

        payload: Dict[str, Any] = {
            "id": appointment_id,
            "customerId": customer["id"],
            "customerFirstName": customer["firstName"],
            "customerLastName": customer["lastName"],
            "petId": pet["id"],
            "petName": pet["name"],
            "petSize": pet["size"],
            "serviceId": service.id,
            "service": service.name,
            "serviceCategory": service.category,
            "staffId": member.id,
            "date": start.isoformat(),
            "time": start.strftime("%H:%M"),
            "plannedDuration": service.default_duration,
            "status": status,
            "price": price,
            "discount": discount,
            "channel": rng.choice(_CHANNELS),
            "bookedAt": (start - timedelta(days=rng.randint(1, 14))).isoformat(),
        }
        if status == "completed":
            actual = service.default_duration + rng.choice([-10, -5, 0, 0, 5, 10, 15])
            finished = start + timedelta(minutes=actual)
            payload["actualDuration"] = actual
            payload["completedAt"] = finished.isoformat()
            if rng.random() < 0.55:
                payload["rebookedAt"] = (finished + timedelta(days=rng.choice([0, 0, 3, 6, 14, 28, 45]))).isoformat()
        elif status == "cancelled":
            payload["cancelledAt"] = (start - timedelta(hours=rng.randint(2, 48))).isoformat()
        return Appointment.model_validate(payload)

    def _transaction(self, transaction_id: str, appointment: Appointment) -> Transaction:
        rng = self.rng
        discount = appointment.discount or 0.0
        subtotal = appointment.price
        tax = round((subtotal - discount) * _TAX_RATE, 2)
        tip = float(rng.choice([0, 5, 10, 15]))
        checkout = appointment.completed_at or appointment.date
        return Transaction(
            id=transaction_id,
            appointment_id=appointment.id,
            customer_id=appointment.customer_id,
            checkout_date=checkout,
            transaction_date=checkout,
            items=[
                TransactionItem(
                    type="service",
                    name=appointment.service or appointment.service_id,
                    service_id=appointment.service_id,
                    staff_id=appointment.staff_id,
                    quantity=1,
                    unit_price=appointment.price,
                    line_discount=appointment.discount,
                )
            ],
            subtotal=subtotal,
            discount_total=discount,
            tax_total=tax,
            tip_total=tip,
            total_collected=round(subtotal - discount + tax + tip, 2),
            payment_method=rng.choice(_PAYMENT_METHODS),
            status="completed",
        )


_store: Optional[SalonDataRepository] = None


def get_store() -> SalonDataRepository:
    global _store
    if _store is None:
        settings = get_settings()
        if settings.data_file:
            logger.info("Using salon data file %s", settings.data_file)
            _store = JsonFileSalonStore(settings.data_file)
        else:
            _store = InMemorySalonStore(
                reference_date=settings.seed_reference_date,
                settings=settings.default_report_settings(),
            )
    return _store


def reset_store() -> None:
    global _store
    _store = None
