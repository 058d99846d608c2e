"""
Quote Calculator - turns a service request into a priced, time-bounded Quote.

Uses:
- Pricing snapshot (labor rate, estimated hours, common parts per service)
- QuoteRules (diagnostic, age, mileage, urgency, brand and travel constants)
- Optional AI diagnosis, customer location and selected parts

Stages run in a fixed order; each multiplies or adds onto the previous result:
pricing lookup -> labor hours -> diagnosis -> vehicle age -> mileage ->
urgency rate -> labor cost -> parts (+ brand markup) -> travel -> discount.
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from geopy.distance import great_circle
from loguru import logger

from quote_engine.errors import ConfigurationError
from quote_engine.models import (
    DiagnosticResult,
    PricingEntry,
    PricingSnapshot,
    Quote,
    QuoteOptions,
    QuoteStatus,
    StatusChange,
    Urgency,
    VehicleIdentity,
)
from quote_engine.pricing import PricingTable, QuoteRules, get_pricing_table, load_rules


def round_money(value: float, places: int = 0) -> float:
    """Round half away from zero (0.5 -> 1), unlike Python's banker's rounding."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def brand_key(make: str) -> str:
    """Leading brand word, lowercased: 'Mercedes-Benz' -> 'mercedes'."""
    words = make.strip().lower().replace("-", " ").split()
    return words[0] if words else ""


def service_label(service_type: str) -> str:
    return service_type.replace("_", " ")


def vehicle_label(vehicle: VehicleIdentity) -> str:
    parts = [str(vehicle.year), vehicle.make]
    if vehicle.model and vehicle.model != "Unknown Model":
        parts.append(vehicle.model)
    return " ".join(parts)


class QuoteCalculator:
    """Multi-factor cost calculator over an explicit pricing snapshot."""

    def __init__(self, rules: QuoteRules | None = None, pricing_table: PricingTable | None = None):
        self.rules = rules or load_rules()
        self.pricing_table = pricing_table

    def _snapshot(self, pricing: Union[PricingSnapshot, PricingTable, None]) -> PricingSnapshot:
        if isinstance(pricing, PricingSnapshot):
            return pricing
        if isinstance(pricing, PricingTable):
            return pricing.snapshot()
        table = self.pricing_table or get_pricing_table()
        return table.snapshot()

    def resolve_pricing(self, snapshot: PricingSnapshot, service_type: str, notes: list[str]) -> PricingEntry:
        """Entry for the service, or the fallback entry (noted) when the table has a gap."""
        entry = snapshot.get(service_type)
        if entry is not None:
            return entry

        fallback = self.rules.fallback_service
        entry = snapshot.get(fallback)
        if entry is None:
            raise ConfigurationError(
                f"Pricing table v{snapshot.version} has no entry for {service_type!r} "
                f"and no fallback entry {fallback!r}"
            )
        logger.warning(f"No pricing for {service_type}; falling back to {fallback}")
        notes.append(f"Pricing for '{service_type}' unavailable; quoted as {service_label(fallback)}")
        return entry

    def adjust_for_diagnosis(self, hours: float, diagnosis: Optional[DiagnosticResult], notes: list[str]) -> float:
        """High confidence shortens labor; low confidence or a long diagnosis lengthens it (never both)."""
        if diagnosis is None:
            return hours
        rules = self.rules.diagnostics
        if diagnosis.confidence > rules.high_confidence_threshold:
            notes.append(f"High-confidence diagnosis: labor x{rules.high_confidence_multiplier}")
            return hours * rules.high_confidence_multiplier
        if (diagnosis.confidence < rules.low_confidence_threshold
                or diagnosis.diagnostic_step_count > rules.max_diagnostic_steps):
            notes.append(f"Additional diagnostic work: labor x{rules.low_confidence_multiplier}")
            return hours * rules.low_confidence_multiplier
        return hours

    def adjust_for_age(self, hours: float, vehicle: VehicleIdentity, current_year: int, notes: list[str]) -> float:
        age = current_year - vehicle.year
        for band in self.rules.vehicle_age.bands:
            if age > band.min_age:
                notes.append(f"Vehicle age {age} years: labor x{band.multiplier}")
                return hours * band.multiplier
        return hours

    def adjust_for_mileage(self, hours: float, vehicle: VehicleIdentity, notes: list[str]) -> float:
        rules = self.rules.mileage
        if vehicle.mileage is not None and vehicle.mileage > rules.threshold:
            notes.append(f"High mileage ({vehicle.mileage:,} mi): labor x{rules.multiplier}")
            return hours * rules.multiplier
        return hours

    def urgency_multiplier(self, urgency: Urgency, diagnosis: Optional[DiagnosticResult], notes: list[str]) -> float:
        """Rate multiplier; an emergency diagnosis sets the floor at the emergency rate."""
        multipliers = self.rules.urgency_multipliers
        multiplier = multipliers.get(urgency, 1.0)
        if diagnosis is not None and diagnosis.urgency_level == Urgency.EMERGENCY:
            floor = multipliers.get(Urgency.EMERGENCY, 1.5)
            if multiplier < floor:
                notes.append(f"Diagnosis flagged emergency: rate x{floor}")
                multiplier = floor
        return multiplier

    def parts_cost(self, pricing: PricingEntry, options: QuoteOptions, notes: list[str]) -> float:
        if options.selected_parts:
            total = 0.0
            for name in options.selected_parts:
                price = pricing.part_price(name)
                if price is None:
                    logger.warning(f"Unknown part {name!r} for {pricing.service_type}; priced at 0")
                    notes.append(f"Part '{name}' not in catalog")
                    continue
                total += price
            cost = total
        elif options.diagnostic_result and options.diagnostic_result.estimated_cost:
            cost = round_money(options.diagnostic_result.estimated_cost.midpoint)
        elif pricing.common_parts:
            cost = round_money(sum(p.price for p in pricing.common_parts) / len(pricing.common_parts))
        else:
            cost = 0.0

        markup = self.rules.brand_markup
        key = brand_key(options.vehicle.make)
        if markup.luxury.matches(key):
            notes.append(f"Luxury brand parts x{markup.luxury.multiplier}")
            cost *= markup.luxury.multiplier
        elif markup.imports.matches(key):
            notes.append(f"Import brand parts x{markup.imports.multiplier}")
            cost *= markup.imports.multiplier
        return round_money(cost, 2)

    def travel_distance(self, options: QuoteOptions) -> Optional[float]:
        """Precomputed distance wins; else great-circle miles from the shop origin."""
        if options.travel_distance_miles is not None:
            return options.travel_distance_miles
        if options.location is not None:
            origin = self.rules.travel.origin
            return great_circle((origin.lat, origin.lon), (options.location.lat, options.location.lon)).miles
        return None

    def travel_cost(self, options: QuoteOptions, notes: list[str]) -> float:
        distance = self.travel_distance(options)
        if distance is None:
            return 0.0
        rules = self.rules.travel
        extra_miles = max(0.0, distance - rules.free_radius_miles)
        if extra_miles:
            notes.append(f"Travel {distance:.1f} mi ({extra_miles:.1f} mi beyond free radius)")
        return round_money(rules.base_fee + extra_miles * rules.per_mile, 2)

    def generate_quote(
        self,
        request_id: str,
        options: Union[QuoteOptions, dict],
        pricing: Union[PricingSnapshot, PricingTable, None] = None,
        now: datetime | None = None,
    ) -> Quote:
        """
        Price a service request.

        Args:
            request_id: Service request the quote answers
            options: QuoteOptions (or a dict validated into one)
            pricing: Snapshot or table to read; the process-wide table when omitted
            now: Clock for vehicle age and the validity window (defaults to UTC now)

        Returns:
            A pending Quote valid for the configured number of days.

        Raises:
            ConfigurationError: neither the service nor the fallback entry is priced
        """
        if not isinstance(options, QuoteOptions):
            options = QuoteOptions.model_validate(options)
        now = now or datetime.now(timezone.utc)
        snapshot = self._snapshot(pricing)
        notes: list[str] = []

        pricing_entry = self.resolve_pricing(snapshot, options.service_type, notes)

        hours = options.custom_labor_hours or pricing_entry.estimated_hours
        hours = self.adjust_for_diagnosis(hours, options.diagnostic_result, notes)
        hours = self.adjust_for_age(hours, options.vehicle, now.year, notes)
        hours = self.adjust_for_mileage(hours, options.vehicle, notes)

        multiplier = self.urgency_multiplier(options.urgency, options.diagnostic_result, notes)
        labor_rate = pricing_entry.labor_rate * multiplier
        labor_cost = round_money(hours * labor_rate)

        parts_cost = self.parts_cost(pricing_entry, options, notes)
        travel_cost = self.travel_cost(options, notes)

        subtotal = labor_cost + parts_cost + travel_cost
        if options.discount_percent:
            notes.append(f"Discount {options.discount_percent:g}%")
            total = round_money(subtotal * (1 - options.discount_percent / 100))
        else:
            total = round_money(subtotal)

        description = (
            f"Professional {service_label(options.service_type)} service for "
            f"{vehicle_label(options.vehicle)} ({options.urgency.value} urgency)"
        )
        if notes:
            description += ". " + "; ".join(notes)

        quote = Quote(
            id=uuid.uuid4().hex,
            service_request_id=request_id,
            service_type=options.service_type,
            description=description,
            vehicle=options.vehicle,
            labor_cost=labor_cost,
            parts_cost=parts_cost,
            travel_cost=travel_cost,
            total_cost=total,
            deposit_amount=round_money(total * self.rules.deposit_ratio),
            estimated_duration_hours=round(hours, 2),
            adjustments=tuple(notes),
            status=QuoteStatus.PENDING,
            created_at=now,
            valid_until=now + timedelta(days=self.rules.validity_days),
            history=(StatusChange(from_status=None, to_status=QuoteStatus.PENDING, at=now),),
        )
        logger.info(
            f"Quote {quote.id} for request {request_id}: {options.service_type} "
            f"on {vehicle_label(options.vehicle)} = ${total:.0f} (pricing v{snapshot.version})"
        )
        return quote


def describe_quote(quote: Quote) -> list[tuple[str, float]]:
    """Display line items; a negative adjustment line reconciles discount and rounding to the total."""
    items = [
        ("Labor", quote.labor_cost),
        ("Parts", quote.parts_cost),
    ]
    if quote.travel_cost:
        items.append(("Travel", quote.travel_cost))
    subtotal = quote.labor_cost + quote.parts_cost + quote.travel_cost
    difference = round_money(quote.total_cost - subtotal, 2)
    if difference < 0:
        items.append(("Discount & rounding", difference))
    items.append(("Total", quote.total_cost))
    return items


_default_calculator: QuoteCalculator | None = None


def get_calculator() -> QuoteCalculator:
    global _default_calculator
    if _default_calculator is None:
        _default_calculator = QuoteCalculator()
    return _default_calculator


def generate_quote(
    request_id: str,
    options: Union[QuoteOptions, dict],
    pricing: Union[PricingSnapshot, PricingTable, None] = None,
    now: datetime | None = None,
) -> Quote:
    return get_calculator().generate_quote(request_id, options, pricing=pricing, now=now)
