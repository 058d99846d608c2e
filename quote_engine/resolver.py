"""
Vehicle-Identity Resolver - decodes a VIN or a license plate into a VehicleIdentity.

Uses:
- World Manufacturer Identifier tables (data/reference/wmi_*.csv)
- Jurisdiction registry (data/reference/jurisdictions.csv)
- Known plate registry (data/reference/plate_registry.csv)

Decoding is a pure table lookup: no network calls. Unrecognized manufacturers
degrade to make "Unknown"; malformed input is always reported as InvalidFormat.
"""

import csv
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from loguru import logger

from quote_engine.config.settings import REFERENCE_DIR
from quote_engine.errors import DecodeError
from quote_engine.models import Jurisdiction, PlateLookupResult, VehicleClass, VehicleIdentity

# I, O and Q are never used in VINs (confusable with 1 and 0)
CAR_VIN_PATTERN = re.compile(r"^[A-HJ-NPR-Z0-9]{17}$")
TWO_WHEELER_VIN_PATTERN = re.compile(r"^[A-HJ-NPR-Z0-9]{9,17}$")
PLATE_PATTERN = re.compile(r"^[A-Z0-9]{2,8}$")

STANDARD_VIN_LENGTH = 17
YEAR_CODE_POSITION = 9  # 10th character

UNKNOWN_MAKE = "Unknown"
UNKNOWN_MODEL = "Unknown Model"


def _build_year_codes() -> dict[str, int]:
    """Letters A-Y (skipping I, O, Q, U, Z) -> 2010-2030; digits 1-9 -> 2001-2009."""
    letters = [c for c in "ABCDEFGHIJKLMNOPQRSTUVWXY" if c not in "IOQUZ"]
    codes = {letter: 2010 + i for i, letter in enumerate(letters)}
    codes.update({str(d): 2000 + d for d in range(1, 10)})
    return codes


YEAR_CODES = _build_year_codes()


def _as_vehicle_class(value) -> Optional[VehicleClass]:
    if value is None or isinstance(value, VehicleClass):
        return value
    try:
        return VehicleClass(str(value).strip().lower())
    except ValueError:
        raise DecodeError(f"Unknown vehicle class {value!r}") from None


class VehicleIdentityResolver:
    """Resolves vehicles from reference tables shipped with the package."""

    def __init__(self, ref_dir: Path | None = None):
        self.ref_dir = Path(ref_dir) if ref_dir else REFERENCE_DIR
        self._car_wmi: dict[str, str] = {}
        self._two_wheeler_wmi: dict[str, tuple[str, VehicleClass]] = {}
        self._car_short: dict[str, str] = {}
        self._two_wheeler_short: dict[str, tuple[str, VehicleClass]] = {}
        self._jurisdictions: dict[str, Jurisdiction] = {}
        self._plates: dict[tuple[str, str], dict] = {}  # (jurisdiction, compact plate) -> row
        self._load_reference_data()

    def _load_reference_data(self):
        """Load all reference data from CSV files."""
        with open(self.ref_dir / "wmi_car.csv") as f:
            for row in csv.DictReader(f):
                self._car_wmi[row["wmi"].strip().upper()] = row["make"].strip()

        with open(self.ref_dir / "wmi_two_wheeler.csv") as f:
            for row in csv.DictReader(f):
                vclass = VehicleClass(row["vehicle_class"].strip())
                self._two_wheeler_wmi[row["wmi"].strip().upper()] = (row["make"].strip(), vclass)

        # 2-char fallback prefixes for both families
        with open(self.ref_dir / "wmi_short.csv") as f:
            for row in csv.DictReader(f):
                prefix, make = row["prefix"].strip().upper(), row["make"].strip()
                vclass = VehicleClass(row["vehicle_class"].strip())
                if vclass == VehicleClass.CAR:
                    self._car_short[prefix] = make
                else:
                    self._two_wheeler_short[prefix] = (make, vclass)

        with open(self.ref_dir / "jurisdictions.csv") as f:
            for row in csv.DictReader(f):
                code = row["code"].strip().upper()
                self._jurisdictions[code] = Jurisdiction(
                    code=code,
                    display_name=row["name"].strip(),
                    allows_space=row["allows_space"].strip().lower() == "true",
                )

        with open(self.ref_dir / "plate_registry.csv") as f:
            for row in csv.DictReader(f):
                key = (row["jurisdiction"].strip().upper(), row["plate"].replace(" ", "").upper())
                self._plates[key] = row

    # ─── VIN ───

    def validate_vin(self, vin: Optional[str], hinted_class=None) -> bool:
        """True when the VIN passes the length/charset rule for the hinted class."""
        if not vin:
            return False
        vclass = _as_vehicle_class(hinted_class) or VehicleClass.CAR
        pattern = CAR_VIN_PATTERN if vclass == VehicleClass.CAR else TWO_WHEELER_VIN_PATTERN
        return bool(pattern.match(vin.strip().upper()))

    def _invalid_reason(self, vin: str, vclass: VehicleClass) -> str:
        bad = sorted(set(vin) & set("IOQ"))
        if bad:
            return f"VIN contains disallowed character(s) {', '.join(bad)}"
        if not vin.isalnum():
            return "VIN must be alphanumeric"
        if vclass == VehicleClass.CAR:
            return f"Car VIN must be {STANDARD_VIN_LENGTH} characters, got {len(vin)}"
        return f"{vclass.value.title()} VIN must be 9-{STANDARD_VIN_LENGTH} characters, got {len(vin)}"

    def _lookup_manufacturer(self, vin: str, vclass: VehicleClass) -> Optional[tuple[str, VehicleClass]]:
        """3-char tables (hinted family first), then the hinted family's 2-char table only."""
        wmi, prefix = vin[:3], vin[:2]
        car_3 = (self._car_wmi[wmi], VehicleClass.CAR) if wmi in self._car_wmi else None
        car_2 = (self._car_short[prefix], VehicleClass.CAR) if prefix in self._car_short else None
        moto_3 = self._two_wheeler_wmi.get(wmi)
        moto_2 = self._two_wheeler_short.get(prefix)

        if vclass == VehicleClass.CAR:
            candidates = (car_3, moto_3, car_2)
        else:
            candidates = (moto_3, car_3, moto_2)
        return next((match for match in candidates if match), None)

    def decode_year(self, vin: str, current_year: int | None = None) -> int:
        """Model year from the 10th character of a 17-char VIN, else the current year."""
        current_year = current_year or datetime.now(timezone.utc).year
        if len(vin) != STANDARD_VIN_LENGTH:
            return current_year
        return YEAR_CODES.get(vin[YEAR_CODE_POSITION], current_year)

    def decode_vin(
        self,
        vin: Optional[str],
        hinted_class=None,
        current_year: int | None = None,
    ) -> VehicleIdentity:
        """
        Decode a VIN into a VehicleIdentity.

        Args:
            vin: Raw VIN; trimmed and uppercased before validation
            hinted_class: Caller's guess (car when omitted); kept only when no WMI table matches
            current_year: Year used when the model year cannot be decoded (defaults to today)

        Raises:
            DecodeError: empty or malformed VIN
        """
        if vin is None or not str(vin).strip():
            raise DecodeError("VIN is empty")

        vin = str(vin).strip().upper()
        vclass = _as_vehicle_class(hinted_class) or VehicleClass.CAR
        if not self.validate_vin(vin, vclass):
            raise DecodeError(self._invalid_reason(vin, vclass))

        make = UNKNOWN_MAKE
        match = self._lookup_manufacturer(vin, vclass)
        if match:
            # The matched table decides the class, whatever the hint said
            make, vclass = match
        else:
            logger.warning(f"Unrecognized WMI {vin[:3]} for VIN {vin[:8]}...; make set to {UNKNOWN_MAKE}")

        year = self.decode_year(vin, current_year)
        logger.info(f"Decoded VIN {vin[:8]}... -> {year} {make} ({vclass.value})")
        return VehicleIdentity(
            vin=vin,
            make=make,
            model=UNKNOWN_MODEL,
            year=year,
            vehicle_class=vclass,
        )

    # ─── License plates ───

    def list_supported_jurisdictions(self) -> list[Jurisdiction]:
        return sorted(self._jurisdictions.values(), key=lambda j: j.code)

    def get_jurisdiction_name(self, code: str) -> str:
        """Display name for a jurisdiction code; unknown codes are returned unchanged."""
        jurisdiction = self._jurisdictions.get((code or "").strip().upper())
        return jurisdiction.display_name if jurisdiction else code

    def _normalize_plate(self, plate: Optional[str], jurisdiction: Optional[str]) -> tuple[str, Jurisdiction, str]:
        """Returns (display plate, jurisdiction, compact plate) or raises DecodeError."""
        code = (jurisdiction or "").strip().upper()
        if code not in self._jurisdictions:
            raise DecodeError(f"Unsupported jurisdiction {jurisdiction!r}")
        region = self._jurisdictions[code]

        plate = (plate or "").strip().upper()
        if not plate:
            raise DecodeError("License plate is empty")

        compact = plate
        if " " in plate:
            if not region.allows_space:
                raise DecodeError(f"Spaces are not allowed in {region.display_name} plates")
            if plate.count(" ") > 1:
                raise DecodeError("License plate may contain at most one space")
            compact = plate.replace(" ", "")

        if not PLATE_PATTERN.match(compact):
            raise DecodeError(
                f"License plate {plate!r} must be 2-8 letters or digits"
            )
        return plate, region, compact

    def validate_plate_format(self, plate: Optional[str], jurisdiction: Optional[str]) -> bool:
        try:
            self._normalize_plate(plate, jurisdiction)
        except DecodeError:
            return False
        return True

    def decode_plate(
        self,
        plate: Optional[str],
        jurisdiction: Optional[str],
        current_year: int | None = None,
    ) -> PlateLookupResult:
        """
        Look a plate up in the known registry.

        A malformed plate or unsupported jurisdiction raises DecodeError; a
        well-formed plate that is not registered returns a low-confidence result
        with an error message and no vehicle.
        """
        plate, region, compact = self._normalize_plate(plate, jurisdiction)

        row = self._plates.get((region.code, compact))
        if row is None:
            logger.warning(f"Plate {plate} ({region.code}) not found in registry")
            return PlateLookupResult(
                plate=plate,
                jurisdiction=region.code,
                confidence="low",
                error="Vehicle information not found",
            )

        decoded = self.decode_vin(row["vin"], current_year=current_year)
        vehicle = decoded.model_copy(update={
            "make": row["make"].strip() or decoded.make,
            "model": row["model"].strip() or decoded.model,
            "year": int(row["year"]) if row.get("year") else decoded.year,
            "engine": row.get("engine") or None,
            "body_style": row.get("body_style") or None,
            "fuel_type": row.get("fuel_type") or None,
        })
        logger.info(f"Plate {plate} ({region.code}) -> {vehicle.year} {vehicle.make} {vehicle.model}")
        return PlateLookupResult(
            plate=plate,
            jurisdiction=region.code,
            confidence="high",
            vin=vehicle.vin,
            vehicle=vehicle,
        )


_default_resolver: VehicleIdentityResolver | None = None


def get_resolver() -> VehicleIdentityResolver:
    """Process-wide resolver over the packaged reference tables (loaded once)."""
    global _default_resolver
    if _default_resolver is None:
        _default_resolver = VehicleIdentityResolver()
    return _default_resolver


def decode_vin(vin: Optional[str], hinted_class=None, current_year: int | None = None) -> VehicleIdentity:
    return get_resolver().decode_vin(vin, hinted_class, current_year=current_year)


def decode_plate(
    plate: Optional[str],
    jurisdiction: Optional[str],
    current_year: int | None = None,
) -> PlateLookupResult:
    return get_resolver().decode_plate(plate, jurisdiction, current_year=current_year)


def list_supported_jurisdictions() -> list[Jurisdiction]:
    return get_resolver().list_supported_jurisdictions()
