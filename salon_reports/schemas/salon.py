"""Entity records shared by the snapshot store and the reporting core.

Every record is frozen: the reporting layer only ever reads snapshots, and
the store hands out the same instances to concurrent requests. Timestamps stay
as the ISO strings the client stored; parsing happens when a report needs them
so that a single malformed value only drops that record.
"""
from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import Field, model_validator

from salon_reports.schemas.base import SnapshotModel

PetSize = Literal["small", "medium", "large"]
BookingChannel = Literal["walk-in", "phone", "online"]
AppointmentStatus = Literal[
    "scheduled",
    "confirmed",
    "checked-in",
    "in-progress",
    "ready-for-pickup",
    "completed",
    "cancelled",
    "no-show",
]
# Booked but not yet finished; reported together as scheduled work.
OPEN_STATUSES = ("scheduled", "confirmed", "checked-in", "in-progress", "ready-for-pickup")
TransactionStatus = Literal["completed", "pending", "refunded"]


class ReminderLogEntry(SnapshotModel):
    sent_at: str
    channel: Literal["sms", "email"]
    confirmed_at: Optional[str] = None


class Appointment(SnapshotModel):
    id: str
    customer_id: str
    customer_first_name: Optional[str] = None
    customer_last_name: Optional[str] = None
    pet_id: str
    pet_name: Optional[str] = None
    pet_size: PetSize = "medium"
    service_id: str
    service: Optional[str] = None
    service_category_id: Optional[str] = None
    service_category: Optional[str] = None
    staff_id: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    planned_duration: int = 0
    actual_duration: Optional[int] = None
    status: AppointmentStatus = "scheduled"
    price: float = 0.0
    discount: Optional[float] = None
    channel: BookingChannel = "walk-in"
    booked_at: Optional[str] = None
    completed_at: Optional[str] = None
    cancelled_at: Optional[str] = None
    rebooked_at: Optional[str] = None
    reminders_sent: List[ReminderLogEntry] = Field(default_factory=list)
    notes: Optional[str] = None

    @property
    def net_price(self) -> float:
        return self.price - (self.discount or 0.0)


class TransactionItem(SnapshotModel):
    id: Optional[str] = None
    type: Literal["service", "product"] = "service"
    name: str
    service_id: Optional[str] = None
    staff_id: Optional[str] = None
    quantity: int = 1
    unit_price: float = 0.0
    line_discount: Optional[float] = None
    line_cost: Optional[float] = None


class Transaction(SnapshotModel):
    id: str
    appointment_id: Optional[str] = None
    customer_id: Optional[str] = None
    checkout_date: Optional[str] = None
    transaction_date: Optional[str] = None
    items: List[TransactionItem] = Field(default_factory=list)
    subtotal: float = 0.0
    discount_total: float = 0.0
    tax_total: float = 0.0
    tip_total: float = 0.0
    refund_total: Optional[float] = None
    total_collected: float = 0.0
    payment_method: str = "card"
    processing_fee: Optional[float] = None
    batch_id: Optional[str] = None
    status: TransactionStatus = "completed"


class SizePricing(SnapshotModel):
    price: float
    duration: int


class Service(SnapshotModel):
    id: str
    name: str
    category: str = "Uncategorized"
    default_duration: int = 0
    estimated_supply_cost: Optional[float] = None
    pet_size_rules: Optional[Dict[PetSize, SizePricing]] = None
    active: bool = True
    base_price: float = 0.0


class CommissionCompensation(SnapshotModel):
    kind: Literal["commission"] = "commission"
    rate: float


class HourlyCompensation(SnapshotModel):
    kind: Literal["hourly"] = "hourly"
    rate: float


class UnsetCompensation(SnapshotModel):
    kind: Literal["unset"] = "unset"


Compensation = Annotated[
    Union[CommissionCompensation, HourlyCompensation, UnsetCompensation],
    Field(discriminator="kind"),
]


class Staff(SnapshotModel):
    id: str
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str = "Groomer"
    compensation: Compensation = Field(default_factory=UnsetCompensation)
    employer_burden_pct: Optional[float] = None
    color: Optional[str] = None
    active: bool = True
    email: Optional[str] = None
    phone: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _fold_compensation(cls, data: Any) -> Any:
        """Build the compensation variant from the flat fields older payloads carry."""
        if not isinstance(data, dict) or "compensation" in data:
            return data

        data = dict(data)
        model = _pop_either(data, "compensationModel", "compensation_model")
        commission_rate = _pop_either(data, "commissionRate", "commission_rate")
        hourly_rate = _pop_either(data, "hourlyRate", "hourly_rate")

        if model == "commission" and commission_rate is not None:
            data["compensation"] = {"kind": "commission", "rate": commission_rate}
        elif model == "hourly" and hourly_rate is not None:
            data["compensation"] = {"kind": "hourly", "rate": hourly_rate}
        else:
            data["compensation"] = {"kind": "unset"}
        return data

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        parts = [part for part in (self.first_name, self.last_name) if part]
        return " ".join(parts) or "Unknown"


class Pet(SnapshotModel):
    id: str
    name: str
    breed: Optional[str] = None
    size: PetSize = "medium"
    age: Optional[float] = None
    notes: Optional[str] = None


class Customer(SnapshotModel):
    id: str
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    first_visit: Optional[str] = None
    last_visit: Optional[str] = None
    total_visits: Optional[int] = None
    total_spent: Optional[float] = None
    pets: List[Pet] = Field(default_factory=list)
    notes: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


def _pop_either(data: Dict[str, Any], *keys: str) -> Any:
    value = None
    for key in keys:
        if key in data:
            popped = data.pop(key)
            if value is None:
                value = popped
    return value
