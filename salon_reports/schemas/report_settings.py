from __future__ import annotations

from typing import List, Literal

from pydantic import Field

from salon_reports.schemas.base import SnapshotModel

FeeBasePolicy = Literal["subtotal", "subtotal+tax", "subtotal+tax+tip"]


class ProcessorSettings(SnapshotModel):
    fee_rate_pct: float = 0.0
    fee_fixed: float = 0.0
    fee_base_policy: FeeBasePolicy = "subtotal"


class TipSettings(SnapshotModel):
    tip_fees_apply: bool = True
    tip_fee_payer: Literal["business", "staff"] = "business"


class LaborSettings(SnapshotModel):
    default_compensation_model: Literal["commission", "hourly"] = "commission"
    default_commission_rate: float = 0.0
    default_hourly_rate: float = 0.0
    employer_burden_pct: float = 0.0


class RetentionSettings(SnapshotModel):
    rebook_window_0_to_24h: bool = Field(default=True, alias="rebookWindow0to24h")
    rebook_window_7d: bool = Field(default=True, alias="rebookWindow7d")
    rebook_window_30d: bool = Field(default=True, alias="rebookWindow30d")
    lapsed_threshold_days: int = 90


class AttributionSettings(SnapshotModel):
    window_days: int = 7
    confirmation_window_hours: int = 48


class MessagingSettings(SnapshotModel):
    reminder_schedule: List[str] = Field(default_factory=list)
    message_cost: float = 0.0


class ReportSettings(SnapshotModel):
    """Business-level settings that shape fee, labor and retention reporting."""

    processor: ProcessorSettings = Field(default_factory=ProcessorSettings)
    tips: TipSettings = Field(default_factory=TipSettings)
    labor: LaborSettings = Field(default_factory=LaborSettings)
    retention: RetentionSettings = Field(default_factory=RetentionSettings)
    attribution: AttributionSettings = Field(default_factory=AttributionSettings)
    messaging: MessagingSettings = Field(default_factory=MessagingSettings)
