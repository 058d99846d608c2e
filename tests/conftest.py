"""Shared fixtures: a fixed clock, fresh tables and sample vehicles."""

from datetime import datetime, timezone

import pytest

from quote_engine.calculator import QuoteCalculator
from quote_engine.models import VehicleIdentity
from quote_engine.pricing import PricingTable, load_pricing_defaults, load_rules
from quote_engine.resolver import VehicleIdentityResolver

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture(scope="session")
def resolver():
    return VehicleIdentityResolver()


@pytest.fixture(scope="session")
def rules():
    return load_rules()


@pytest.fixture
def table():
    return PricingTable(load_pricing_defaults())


@pytest.fixture
def calculator(rules, table):
    return QuoteCalculator(rules=rules, pricing_table=table)


@pytest.fixture
def make_vehicle():
    def _make(make="Ford", model="Focus", year=2018, vehicle_class="car", mileage=None, vin="1FADP3F20JL000001"):
        return VehicleIdentity(
            vin=vin,
            make=make,
            model=model,
            year=year,
            vehicle_class=vehicle_class,
            mileage=mileage,
        )
    return _make
