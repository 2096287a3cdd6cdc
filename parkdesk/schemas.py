from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class SessionStatus(str, Enum):
    active = "active"
    exited = "exited"


class VehicleSession(BaseModel):
    id: str
    session_id: str
    driver_phone: Optional[str] = None
    vehicle_type: str
    vehicle_number: Optional[str] = None
    entry_time: datetime
    status: SessionStatus = SessionStatus.active
    base_fee_paid: Decimal = Decimal("0")
    duration_minutes: Optional[float] = None
    is_overstay: Optional[bool] = None
    overstay_minutes: Optional[float] = None
    declared_duration_hours: Optional[float] = Field(default=None, ge=0)

    @field_validator("id", "session_id", mode="before")
    @classmethod
    def _coerce_identifier(cls, value):
        return str(value) if value is not None else value

    @field_validator("entry_time")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("status", mode="before")
    @classmethod
    def _lower_status(cls, value):
        return value.lower() if isinstance(value, str) else value

    @field_validator("base_fee_paid", mode="before")
    @classmethod
    def _missing_fee_is_zero(cls, value):
        return Decimal("0") if value is None else value


class PricingRule(BaseModel):
    id: Optional[str] = None
    vehicle_type: str
    base_fee: Decimal = Field(ge=0)
    base_hours: int = Field(ge=1)
    extra_hour_rate: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_identifier(cls, value):
        return str(value) if value is not None else value


class ExitQuote(BaseModel):
    session_id: str
    quoted_at: datetime
    actual_duration_hours: int
    effective_base_hours: float
    overstay_hours: float
    base_fee: Decimal
    base_fee_paid: Decimal
    overstay_fee: Decimal
    total_cost: Decimal
    balance_due: Decimal


class OverstayCharge(BaseModel):
    id: str
    fee_amount: Decimal = Decimal("0")
    is_collected: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_identifier(cls, value):
        return str(value)


class ProcessedExit(BaseModel):
    session_id: str
    total_amount: Decimal
    overstay_fee: Decimal = Decimal("0")
    overstay_record: Optional[OverstayCharge] = None

    @field_validator("overstay_fee", mode="before")
    @classmethod
    def _missing_fee_is_zero(cls, value):
        return Decimal("0") if value is None else value


class DashboardStats(BaseModel):
    active_vehicles: int = 0
    completed_today: int = 0
    base_fees_collected: Decimal = Decimal("0")
    overstay_fees_collected: Decimal = Decimal("0")
    total_revenue_today: Decimal = Decimal("0")


class VehicleEntryCreate(BaseModel):
    driver_phone: str
    vehicle_number: str
    vehicle_type: str = "car"


class VehicleEntryResponse(BaseModel):
    id: str
    session_id: str
    base_fee_paid: Decimal
    vehicle_number: Optional[str] = None

    @field_validator("id", "session_id", mode="before")
    @classmethod
    def _coerce_identifier(cls, value):
        return str(value)


class EntryFee(BaseModel):
    vehicle_type: str
    base_fee: Decimal
    base_hours: int


class SessionView(BaseModel):
    session: VehicleSession
    elapsed_hours: float
    effective_base_hours: Optional[float] = None
    is_overstaying: bool


class SessionListResponse(BaseModel):
    sessions: List[SessionView]
    refreshed_at: Optional[datetime] = None
    error: Optional[str] = None


class ExitOutcomeResponse(BaseModel):
    state: str
    session_id: str
    quote: ExitQuote
    total_amount: Optional[Decimal] = None
    overstay_fee: Optional[Decimal] = None
    charge: Optional[OverstayCharge] = None
    ledger_recorded: Optional[bool] = None
    message: str


class LiveOccupancy(BaseModel):
    active_count: int
    capacity: int
    occupancy_percent: float
    vehicle_types: Dict[str, int]
    overstay_count: int


class DashboardSummary(BaseModel):
    live: LiveOccupancy
    reported: Optional[DashboardStats] = None
    error: Optional[str] = None


class UnsettledChargeResponse(BaseModel):
    overstay_charge_id: str
    session_id: str
    vehicle_number: Optional[str] = None
    fee_amount: Decimal
    exited_at: datetime
    collected_at: Optional[datetime] = None
    is_outstanding: bool

    model_config = {"from_attributes": True}
