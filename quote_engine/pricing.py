"""
Pricing Table - the versioned service catalog and the business rules around it.

The catalog is held as an immutable PricingSnapshot. Administrative updates build
a complete replacement snapshot and swap it in under a lock, so a quote
calculation always reads one consistent table.
"""

import threading
from pathlib import Path
from typing import Mapping, Optional, Union

import pandas as pd
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

from quote_engine.config.settings import load_rules_config
from quote_engine.errors import PricingEntryNotFound
from quote_engine.models import Location, PricingEntry, PricingSnapshot, Urgency


# ─── Business rules ───

class DiagnosticRules(BaseModel):
    low_confidence_threshold: float = 0.6
    high_confidence_threshold: float = 0.8
    max_diagnostic_steps: int = 3
    low_confidence_multiplier: float = 1.2
    high_confidence_multiplier: float = 0.9


class AgeBand(BaseModel):
    min_age: int  # applies when age > min_age
    multiplier: float


class VehicleAgeRules(BaseModel):
    bands: list[AgeBand] = Field(default_factory=lambda: [
        AgeBand(min_age=15, multiplier=1.3),
        AgeBand(min_age=10, multiplier=1.15),
    ])

    @field_validator("bands")
    @classmethod
    def _widest_first(cls, bands: list[AgeBand]) -> list[AgeBand]:
        return sorted(bands, key=lambda b: b.min_age, reverse=True)


class MileageRules(BaseModel):
    threshold: int = 150000
    multiplier: float = 1.1


class BrandMarkup(BaseModel):
    multiplier: float
    brands: list[str]

    def matches(self, brand_key: str) -> bool:
        return brand_key in {b.strip().lower() for b in self.brands}


class BrandMarkupRules(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    luxury: BrandMarkup = BrandMarkup(
        multiplier=1.3,
        brands=["BMW", "Mercedes", "Audi", "Lexus", "Acura", "Infiniti", "Cadillac"],
    )
    imports: BrandMarkup = Field(
        default=BrandMarkup(
            multiplier=1.1,
            brands=["Toyota", "Honda", "Nissan", "Subaru", "Mazda", "Mitsubishi"],
        ),
        alias="import",
    )


class TravelRules(BaseModel):
    base_fee: float = 25.0
    per_mile: float = 2.0
    free_radius_miles: float = 10.0
    origin: Location = Location(lat=40.7128, lon=-74.0060)


class QuoteRules(BaseModel):
    """Business constants for the quote calculator (loaded from pricing.yaml)."""
    fallback_service: str = "oil_change"
    validity_days: int = Field(default=7, gt=0)
    deposit_ratio: float = Field(default=0.3, ge=0, le=1)
    diagnostics: DiagnosticRules = DiagnosticRules()
    vehicle_age: VehicleAgeRules = VehicleAgeRules()
    mileage: MileageRules = MileageRules()
    urgency_multipliers: dict[Urgency, float] = Field(default_factory=lambda: {
        Urgency.LOW: 0.95,
        Urgency.MEDIUM: 1.1,
        Urgency.HIGH: 1.25,
        Urgency.EMERGENCY: 1.5,
    })
    brand_markup: BrandMarkupRules = BrandMarkupRules()
    travel: TravelRules = TravelRules()


def load_rules(path: Path | None = None) -> QuoteRules:
    """Load QuoteRules from YAML; sections absent from the file keep their defaults."""
    config = load_rules_config(path)
    config.pop("services", None)
    return QuoteRules.model_validate(config)


def load_pricing_defaults(path: Path | None = None) -> dict[str, PricingEntry]:
    """Load the default service catalog from YAML."""
    services = load_rules_config(path).get("services") or {}
    return {
        service_type: PricingEntry.model_validate({**fields, "service_type": service_type})
        for service_type, fields in services.items()
    }


# ─── Table ───

class PricingTable:
    """Holds the current pricing snapshot and applies whole-table swaps."""

    def __init__(self, defaults: Optional[Mapping[str, PricingEntry]] = None):
        self._defaults = dict(defaults) if defaults is not None else load_pricing_defaults()
        self._lock = threading.Lock()
        self._snapshot = PricingSnapshot(version=1, entries=dict(self._defaults))

    def snapshot(self) -> PricingSnapshot:
        return self._snapshot

    @property
    def version(self) -> int:
        return self._snapshot.version

    def get_entry(self, service_type: str) -> PricingEntry:
        entry = self._snapshot.get(service_type)
        if entry is None:
            raise PricingEntryNotFound(service_type)
        return entry

    def get_all_entries(self) -> list[tuple[str, PricingEntry]]:
        snapshot = self._snapshot
        return sorted(snapshot.entries.items())

    def set_entry(self, service_type: str, entry: Union[PricingEntry, dict]) -> PricingSnapshot:
        """Add or replace one entry by swapping in a new complete snapshot."""
        if isinstance(entry, PricingEntry):
            entry = entry.model_copy(update={"service_type": service_type})
        else:
            entry = PricingEntry.model_validate({**entry, "service_type": service_type})

        with self._lock:
            current = self._snapshot
            entries = dict(current.entries)
            entries[service_type] = entry
            self._snapshot = PricingSnapshot(version=current.version + 1, entries=entries)

        logger.info(f"Pricing entry {service_type} set (table v{self._snapshot.version})")
        return self._snapshot

    def reset_to_defaults(self) -> PricingSnapshot:
        """Restore the default catalog; a table already at defaults is left as is."""
        with self._lock:
            current = self._snapshot
            if current.entries == self._defaults:
                return current
            self._snapshot = PricingSnapshot(version=current.version + 1, entries=dict(self._defaults))

        logger.info(f"Pricing table reset to defaults (table v{self._snapshot.version})")
        return self._snapshot

    def to_dataframe(self) -> pd.DataFrame:
        """One row per (service, part); services without parts get a single row."""
        rows = []
        for service_type, entry in self.get_all_entries():
            base = {
                "service_type": service_type,
                "labor_rate": entry.labor_rate,
                "estimated_hours": entry.estimated_hours,
                "price_min": entry.price_range.min,
                "price_max": entry.price_range.max,
            }
            if not entry.common_parts:
                rows.append({**base, "part_name": None, "part_price": None})
            for part in entry.common_parts:
                rows.append({**base, "part_name": part.name, "part_price": part.price})
        return pd.DataFrame(rows)

    def export_csv(self, out_path: Path) -> Path:
        df = self.to_dataframe()
        out_path = Path(out_path)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(out_path, index=False)
        logger.info(f"Exported {len(df)} pricing rows to {out_path}")
        return out_path


_default_table: PricingTable | None = None
_default_table_lock = threading.Lock()


def get_pricing_table() -> PricingTable:
    """Process-wide table loaded from the configured YAML on first use."""
    global _default_table
    with _default_table_lock:
        if _default_table is None:
            _default_table = PricingTable()
        return _default_table


def get_all_pricing_entries() -> list[tuple[str, PricingEntry]]:
    return get_pricing_table().get_all_entries()


def set_pricing_entry(service_type: str, entry: Union[PricingEntry, dict]) -> PricingSnapshot:
    return get_pricing_table().set_entry(service_type, entry)


def reset_pricing_to_defaults() -> PricingSnapshot:
    return get_pricing_table().reset_to_defaults()


def export_pricing_csv(out_path: Path) -> Path:
    return get_pricing_table().export_csv(out_path)
