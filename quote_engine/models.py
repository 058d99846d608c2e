"""Unified data models for vehicle identification and quoting."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class _Record(BaseModel):
    """Immutable record serialized with camelCase field names."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class VehicleClass(str, Enum):
    CAR = "car"
    MOTORCYCLE = "motorcycle"
    SCOOTER = "scooter"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EMERGENCY = "emergency"


class QuoteStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DEPOSIT_PAID = "deposit_paid"
    PAID = "paid"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CARD = "card"
    APPLE_PAY = "apple_pay"
    GOOGLE_PAY = "google_pay"
    CASH = "cash"
    PAYPAL = "paypal"
    CHIME = "chime"
    CASHAPP = "cashapp"
    STRIPE = "stripe"


# ─── Vehicle identity ───

class VehicleIdentity(_Record):
    """Normalized vehicle record produced by VIN or plate decoding."""
    vin: str
    make: str = "Unknown"
    model: str = "Unknown Model"
    year: int = Field(ge=1000, le=9999)
    vehicle_class: VehicleClass = VehicleClass.CAR
    trim: Optional[str] = None
    engine: Optional[str] = None
    transmission: Optional[str] = None
    body_style: Optional[str] = None
    fuel_type: Optional[str] = None
    drive_type: Optional[str] = None
    mileage: Optional[int] = Field(default=None, ge=0)


class Jurisdiction(_Record):
    code: str
    display_name: str
    allows_space: bool = False


class PlateLookupResult(_Record):
    """Plate lookup outcome: a full vehicle, or a low-confidence miss."""
    plate: str
    jurisdiction: str
    confidence: str  # "high" or "low"
    vin: Optional[str] = None
    vehicle: Optional[VehicleIdentity] = None
    error: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.vehicle is not None


# ─── Pricing ───

class PriceRange(_Record):
    min: float = Field(ge=0)
    max: float = Field(ge=0)

    @model_validator(mode="after")
    def _check_order(self):
        if self.min > self.max:
            raise ValueError(f"price range min {self.min} exceeds max {self.max}")
        return self

    @property
    def midpoint(self) -> float:
        return (self.min + self.max) / 2


class PartPrice(_Record):
    name: str
    price: float = Field(ge=0)


class PricingEntry(_Record):
    """Base costs for one service type."""
    service_type: str
    labor_rate: float = Field(gt=0)
    estimated_hours: float = Field(gt=0)
    common_parts: tuple[PartPrice, ...] = ()
    price_range: PriceRange
    base_price: Optional[float] = Field(default=None, ge=0)

    def part_price(self, name: str) -> Optional[float]:
        for part in self.common_parts:
            if part.name == name:
                return part.price
        return None


class PricingSnapshot(_Record):
    """A complete, versioned pricing table. Never mutated after construction."""
    version: int = Field(ge=1)
    entries: dict[str, PricingEntry]

    def get(self, service_type: str) -> Optional[PricingEntry]:
        return self.entries.get(service_type)


# ─── Diagnosis & quote inputs ───

class DiagnosticResult(_Record):
    """Output of the external diagnosis collaborator."""
    confidence: float = Field(ge=0, le=1)
    urgency_level: Urgency = Urgency.MEDIUM
    estimated_cost: Optional[PriceRange] = None
    diagnostic_step_count: int = Field(default=0, ge=0)


class Location(_Record):
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)


class QuoteOptions(_Record):
    service_type: str
    vehicle: VehicleIdentity
    urgency: Urgency = Urgency.MEDIUM
    location: Optional[Location] = None
    travel_distance_miles: Optional[float] = Field(default=None, ge=0)
    diagnostic_result: Optional[DiagnosticResult] = None
    selected_parts: Optional[list[str]] = None
    discount_percent: Optional[float] = Field(default=None, ge=0, le=100)
    custom_labor_hours: Optional[float] = Field(default=None, gt=0)


# ─── Quote ───

class StatusChange(_Record):
    """One timestamped lifecycle event, emitted for callers to persist."""
    from_status: Optional[QuoteStatus]
    to_status: QuoteStatus
    at: datetime
    note: Optional[str] = None


class Quote(_Record):
    id: str
    service_request_id: str
    service_type: str
    description: str
    vehicle: VehicleIdentity
    labor_cost: float = Field(ge=0)
    parts_cost: float = Field(ge=0)
    travel_cost: float = Field(ge=0)
    total_cost: float = Field(ge=0)
    deposit_amount: float = Field(ge=0)
    estimated_duration_hours: float = Field(ge=0)
    adjustments: tuple[str, ...] = ()
    status: QuoteStatus = QuoteStatus.PENDING
    created_at: datetime
    valid_until: datetime
    accepted_at: Optional[datetime] = None
    deposit_paid_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None
    history: tuple[StatusChange, ...] = ()

    @model_validator(mode="after")
    def _check_validity_window(self):
        if self.valid_until <= self.created_at:
            raise ValueError("valid_until must be later than created_at")
        return self


class TransitionContext(_Record):
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None
    now: Optional[datetime] = None
