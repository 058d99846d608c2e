"""Vehicle identification and smart quote generation for mobile auto service."""

from quote_engine.calculator import QuoteCalculator, describe_quote, generate_quote
from quote_engine.errors import (
    ConfigurationError,
    DecodeError,
    ErrorKind,
    InvalidTransitionError,
    PricingEntryNotFound,
    QuoteEngineError,
)
from quote_engine.lifecycle import allowed_transitions, expire_if_due, is_terminal, transition
from quote_engine.models import (
    DiagnosticResult,
    Jurisdiction,
    Location,
    PaymentMethod,
    PlateLookupResult,
    PricingEntry,
    PricingSnapshot,
    Quote,
    QuoteOptions,
    QuoteStatus,
    TransitionContext,
    Urgency,
    VehicleClass,
    VehicleIdentity,
)
from quote_engine.pricing import (
    PricingTable,
    QuoteRules,
    get_all_pricing_entries,
    reset_pricing_to_defaults,
    set_pricing_entry,
)
from quote_engine.resolver import (
    VehicleIdentityResolver,
    decode_plate,
    decode_vin,
    list_supported_jurisdictions,
)

__version__ = "0.1.0"
