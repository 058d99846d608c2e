#!/usr/bin/env python3
"""
Command line access to the quote engine.

Usage:
  # Decode a VIN (optionally hinting the vehicle class)
  quote-engine vin 1HGCM82633A123456
  quote-engine vin ZAPC31100 --vehicle-class scooter

  # Look up a license plate
  quote-engine plate ABC123 --state CA
  quote-engine states

  # Quote: a VIN or year/make/model, a service and urgency
  quote-engine quote --vin 1HGCM82633A123456 --service oil_change --urgency medium
  quote-engine quote --year 2015 --make BMW --model X5 --mileage 125000 \
      --service brake_service --urgency high --distance 14 --discount 10

  # Pricing table administration
  quote-engine pricing list
  quote-engine pricing export --out pricing.csv
  quote-engine pricing reset

  # Apply a lifecycle transition to a saved quote
  quote-engine transition quote.json accepted
  quote-engine transition quote.json paid --payment-method card
"""

import argparse
import json
import sys
from pathlib import Path

from loguru import logger

from quote_engine.config.settings import configure_logging
from quote_engine.errors import QuoteEngineError


def _print_json(payload) -> None:
    if hasattr(payload, "model_dump_json"):
        print(payload.model_dump_json(indent=2, by_alias=True))
    else:
        print(json.dumps(payload, indent=2, default=str))


def run_vin(args):
    from quote_engine.resolver import decode_vin

    _print_json(decode_vin(args.vin, args.vehicle_class))


def run_plate(args):
    from quote_engine.resolver import decode_plate

    _print_json(decode_plate(args.plate, args.state))


def run_states(args):
    from quote_engine.resolver import list_supported_jurisdictions

    for j in list_supported_jurisdictions():
        print(f"  {j.code}  {j.display_name}")


def run_quote(args):
    """Quote a service for a VIN or a year/make/model."""
    from quote_engine.calculator import describe_quote, generate_quote
    from quote_engine.models import DiagnosticResult, Location, PriceRange, VehicleIdentity
    from quote_engine.resolver import decode_vin

    if args.vin:
        vehicle = decode_vin(args.vin, args.vehicle_class)
        if args.mileage is not None:
            vehicle = vehicle.model_copy(update={"mileage": args.mileage})
    elif args.year and args.make:
        vehicle = VehicleIdentity(
            vin="",
            make=args.make,
            model=args.model or "Unknown Model",
            year=args.year,
            vehicle_class=args.vehicle_class or "car",
            mileage=args.mileage,
        )
    else:
        print("Provide --vin, or --year and --make (--model optional)")
        sys.exit(2)

    diagnosis = None
    if args.diag_confidence is not None:
        estimated = None
        if args.diag_min is not None and args.diag_max is not None:
            estimated = PriceRange(min=args.diag_min, max=args.diag_max)
        diagnosis = DiagnosticResult(
            confidence=args.diag_confidence,
            urgency_level=args.diag_urgency or args.urgency,
            estimated_cost=estimated,
            diagnostic_step_count=args.diag_steps,
        )

    location = Location(lat=args.lat, lon=args.lon) if args.lat is not None and args.lon is not None else None

    quote = generate_quote(args.request_id, {
        "service_type": args.service,
        "urgency": args.urgency,
        "vehicle": vehicle,
        "location": location,
        "travel_distance_miles": args.distance,
        "diagnostic_result": diagnosis,
        "selected_parts": args.parts,
        "discount_percent": args.discount,
        "custom_labor_hours": args.hours,
    })

    if args.json:
        _print_json(quote)
        return

    print(f"{'='*60}")
    print(f"QUOTE {quote.id[:8]} - {quote.description.split('. ')[0]}")
    print(f"{'='*60}")
    for label, amount in describe_quote(quote):
        print(f"  {label:<22} ${amount:>9.2f}")
    print(f"\nEstimated duration: {quote.estimated_duration_hours} hrs")
    print(f"Deposit (if paying in two steps): ${quote.deposit_amount:.2f}")
    print(f"Valid until: {quote.valid_until:%Y-%m-%d %H:%M %Z}")
    for note in quote.adjustments:
        print(f"  * {note}")


def run_pricing(args):
    from quote_engine.pricing import export_pricing_csv, get_all_pricing_entries, reset_pricing_to_defaults

    if args.action == "list":
        print("Available services (from config/pricing.yaml):")
        for service_type, entry in get_all_pricing_entries():
            print(
                f"  - {service_type:<22} {entry.estimated_hours} hrs @ ${entry.labor_rate:.0f}/hr "
                f"(range ${entry.price_range.min:.0f}-{entry.price_range.max:.0f})"
            )
    elif args.action == "export":
        out = export_pricing_csv(Path(args.out))
        print(f"Wrote {out}")
    elif args.action == "reset":
        snapshot = reset_pricing_to_defaults()
        print(f"Pricing table at defaults (v{snapshot.version}, {len(snapshot.entries)} services)")


def run_transition(args):
    from quote_engine.lifecycle import transition
    from quote_engine.models import Quote

    quote = Quote.model_validate_json(Path(args.quote_file).read_text())
    updated = transition(quote, args.status, {
        "payment_method": args.payment_method,
        "notes": args.notes,
    })
    if args.write:
        Path(args.quote_file).write_text(updated.model_dump_json(indent=2, by_alias=True))
    _print_json(updated)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Vehicle identification and service quoting")
    parser.add_argument("--log-level", default=None, help="Log level (default from QUOTE_ENGINE_LOG_LEVEL)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    classes = ["car", "motorcycle", "scooter"]
    urgencies = ["low", "medium", "high", "emergency"]

    # vin
    vp = subparsers.add_parser("vin", help="Decode a VIN")
    vp.add_argument("vin", help="VIN (9-17 characters for two-wheelers, 17 for cars)")
    vp.add_argument("--vehicle-class", choices=classes, help="Hinted vehicle class")
    vp.set_defaults(func=run_vin)

    # plate
    pp = subparsers.add_parser("plate", help="Look up a license plate")
    pp.add_argument("plate", help="Plate text, e.g. ABC123")
    pp.add_argument("--state", required=True, help="Jurisdiction code, e.g. CA")
    pp.set_defaults(func=run_plate)

    # states
    sp = subparsers.add_parser("states", help="List supported jurisdictions")
    sp.set_defaults(func=run_states)

    # quote
    qp = subparsers.add_parser("quote", help="Generate a quote")
    qp.add_argument("--request-id", default="cli-request", help="Service request id")
    qp.add_argument("--vin", help="VIN of the vehicle")
    qp.add_argument("--year", type=int, help="Year (without --vin)")
    qp.add_argument("--make", help="Make (without --vin)")
    qp.add_argument("--model", help="Model (without --vin)")
    qp.add_argument("--vehicle-class", choices=classes)
    qp.add_argument("--mileage", type=int, help="Odometer reading")
    qp.add_argument("--service", required=True, help="Service type (see: pricing list)")
    qp.add_argument("--urgency", choices=urgencies, default="medium")
    qp.add_argument("--distance", type=float, help="Travel distance in miles")
    qp.add_argument("--lat", type=float, help="Customer latitude (with --lon)")
    qp.add_argument("--lon", type=float, help="Customer longitude (with --lat)")
    qp.add_argument("--parts", nargs="+", help='Selected parts, e.g. "Oil Filter"')
    qp.add_argument("--discount", type=float, help="Discount percent")
    qp.add_argument("--hours", type=float, help="Custom labor hours")
    qp.add_argument("--diag-confidence", type=float, help="Diagnosis confidence 0-1")
    qp.add_argument("--diag-urgency", choices=urgencies, help="Diagnosis urgency level")
    qp.add_argument("--diag-steps", type=int, default=0, help="Diagnostic step count")
    qp.add_argument("--diag-min", type=float, help="Diagnosis estimated cost low")
    qp.add_argument("--diag-max", type=float, help="Diagnosis estimated cost high")
    qp.add_argument("--json", action="store_true", help="Print the quote as JSON")
    qp.set_defaults(func=run_quote)

    # pricing
    prp = subparsers.add_parser("pricing", help="Pricing table administration")
    prp.add_argument("action", choices=["list", "export", "reset"])
    prp.add_argument("--out", default="pricing.csv", help="CSV path for export")
    prp.set_defaults(func=run_pricing)

    # transition
    tp = subparsers.add_parser("transition", help="Apply a status transition to a quote JSON file")
    tp.add_argument("quote_file", help="Quote JSON (as printed by quote --json)")
    tp.add_argument("status", help="New status")
    tp.add_argument("--payment-method", help="card, cash, paypal, ...")
    tp.add_argument("--notes", help="Reason (required for rejected)")
    tp.add_argument("--write", action="store_true", help="Write the updated quote back to the file")
    tp.set_defaults(func=run_transition)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    try:
        args.func(args)
    except QuoteEngineError as e:
        logger.error(e.message)
        print(json.dumps(e.to_dict()), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
