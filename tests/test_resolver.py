"""
Tests for VIN and license plate decoding.
"""

from datetime import datetime, timezone

import pytest

from quote_engine.errors import DecodeError, ErrorKind
from quote_engine.models import VehicleClass
from quote_engine.resolver import decode_plate

CAR_VINS = [
    ("1HGBH41JXMN109186", "Honda"),
    ("1FTFW1ET5DFC10312", "Ford"),
    ("WVWZZZ3BZWE689725", "Volkswagen"),
    ("1G1ZT53806F109149", "Chevrolet"),
    ("JTDKN3DU8A0123456", "Toyota"),
]

MOTORCYCLE_VINS = [
    ("JH2RC5006LM200001", "Honda"),
    ("JYAVP31E8LA000001", "Yamaha"),
    ("JS1GR7JA5L2100001", "Suzuki"),
    ("JKA1KFD66A0000001", "Kawasaki"),
    ("1HD1KEL19LB000001", "Harley-Davidson"),
]

SCOOTER_VINS = [
    ("RFBLA4157L0000001", "Vespa"),
    ("L5YCGACB0A0000001", "TaoTao"),
    ("L6TCGACB0A0000001", "Kymco"),
    ("ZAPC31100", "Piaggio"),
    ("5J6TC1200A", "Yamaha"),
]

INVALID_VINS = [
    "INVALID",
    "1HGBH41JXMN109186TOOLONG",
    "1HGBH41JXMN10918O",
    "1HGBH41JXMN10918I",
    "1HGBH41JXMN10918Q",
    "",
    "   ",
    "123",
    None,
    "1HGBH41JXMN10918-",
]


class TestDecodeVin:
    """Tests for VehicleIdentityResolver.decode_vin."""

    @pytest.mark.parametrize("vin,make", CAR_VINS)
    def test_car_vins(self, resolver, vin, make):
        vehicle = resolver.decode_vin(vin, "car")
        assert vehicle.make == make
        assert vehicle.vehicle_class == VehicleClass.CAR
        assert vehicle.vin == vin

    @pytest.mark.parametrize("vin,make", MOTORCYCLE_VINS)
    def test_motorcycle_vins_without_hint(self, resolver, vin, make):
        vehicle = resolver.decode_vin(vin)
        assert vehicle.make == make
        assert vehicle.vehicle_class == VehicleClass.MOTORCYCLE

    @pytest.mark.parametrize("vin,make", SCOOTER_VINS)
    def test_scooter_vins(self, resolver, vin, make):
        vehicle = resolver.decode_vin(vin, VehicleClass.SCOOTER, current_year=2025)
        assert vehicle.make == make
        assert vehicle.vehicle_class == VehicleClass.SCOOTER

    def test_honda_accord_year_from_tenth_character(self, resolver):
        vehicle = resolver.decode_vin("1HGCM82633A123456", "car")
        assert vehicle.make == "Honda"
        assert vehicle.year == 2003
        assert vehicle.vehicle_class == VehicleClass.CAR

    def test_motorcycle_table_overrides_car_hint(self, resolver):
        vehicle = resolver.decode_vin("JH2RC5006LM200001", "car")
        assert vehicle.make == "Honda"
        assert vehicle.vehicle_class == VehicleClass.MOTORCYCLE
        assert vehicle.year == 2020

    def test_shared_wmi_follows_hint(self, resolver):
        # JHM is listed in both the car and the two-wheeler tables
        car = resolver.decode_vin("JHMCM56557C404453", "car")
        bike = resolver.decode_vin("JHMCM56557C404453", "motorcycle")
        assert car.vehicle_class == VehicleClass.CAR
        assert bike.vehicle_class == VehicleClass.MOTORCYCLE
        assert car.make == bike.make == "Honda"

    def test_two_char_fallback(self, resolver):
        vehicle = resolver.decode_vin("JTNBE46K073000001")
        assert vehicle.make == "Toyota"
        assert vehicle.vehicle_class == VehicleClass.CAR

    def test_car_hint_ignores_two_wheeler_prefixes(self, resolver):
        # JHL is in no 3-char table; JH is only a two-wheeler prefix
        vehicle = resolver.decode_vin("JHLRD78836C000001", "car")
        assert vehicle.make == "Unknown"
        assert vehicle.vehicle_class == VehicleClass.CAR
        assert vehicle.year == 2006

    def test_two_wheeler_hint_ignores_car_prefixes(self, resolver):
        # JTN is in no 3-char table; JT is only a car prefix
        vehicle = resolver.decode_vin("JTNBE46K073000001", "motorcycle")
        assert vehicle.make == "Unknown"
        assert vehicle.vehicle_class == VehicleClass.MOTORCYCLE

    def test_default_year_is_utc(self, resolver):
        assert resolver.decode_year("ZAPC31100") == datetime.now(timezone.utc).year

    def test_two_char_fallback_two_wheeler(self, resolver):
        vehicle = resolver.decode_vin("L5ZABC1234", "scooter", current_year=2025)
        assert vehicle.make == "Chinese Manufacturer"
        assert vehicle.vehicle_class == VehicleClass.SCOOTER

    def test_unknown_wmi_degrades_to_unknown_make(self, resolver):
        vehicle = resolver.decode_vin("ZZZ1234567A123456")
        assert vehicle.make == "Unknown"
        assert vehicle.model == "Unknown Model"
        assert vehicle.vehicle_class == VehicleClass.CAR
        assert vehicle.year == 2007

    def test_unmapped_year_code_uses_current_year(self, resolver):
        vehicle = resolver.decode_vin("1HGCM82630A123456", current_year=2025)
        assert vehicle.year == 2025

    def test_short_vin_uses_current_year(self, resolver):
        vehicle = resolver.decode_vin("ZAPC31100", "scooter", current_year=2031)
        assert vehicle.year == 2031

    def test_input_is_trimmed_and_uppercased(self, resolver):
        vehicle = resolver.decode_vin("  1hgcm82633a123456 ")
        assert vehicle.vin == "1HGCM82633A123456"
        assert vehicle.make == "Honda"

    def test_deterministic(self, resolver):
        first = resolver.decode_vin("JH2RC5006LM200001", "motorcycle", current_year=2025)
        second = resolver.decode_vin("JH2RC5006LM200001", "motorcycle", current_year=2025)
        assert first == second

    @pytest.mark.parametrize("vin", INVALID_VINS)
    def test_invalid_vins_rejected(self, resolver, vin):
        with pytest.raises(DecodeError) as exc_info:
            resolver.decode_vin(vin, "car")
        assert exc_info.value.kind == ErrorKind.INVALID_FORMAT
        assert exc_info.value.to_dict()["kind"] == "invalid_format"

    @pytest.mark.parametrize("hint", [None, "car", "motorcycle", "scooter"])
    @pytest.mark.parametrize("vin", ["JH2RC5006LM20000I", "ZAPC3110O", "1HGCQ82633A123456"])
    def test_excluded_letters_rejected_for_every_class(self, resolver, vin, hint):
        with pytest.raises(DecodeError):
            resolver.decode_vin(vin, hint)

    def test_car_requires_seventeen_characters(self, resolver):
        assert not resolver.validate_vin("ZAPC31100", "car")
        assert resolver.validate_vin("ZAPC31100", "scooter")
        with pytest.raises(DecodeError):
            resolver.decode_vin("ZAPC31100")

    @pytest.mark.parametrize("length,valid", [(8, False), (9, True), (10, True), (16, True), (17, True), (18, False)])
    def test_two_wheeler_length_bounds(self, resolver, length, valid):
        vin = ("JH2RC5006LM2000012")[:length]
        assert resolver.validate_vin(vin, "motorcycle") is valid

    def test_unknown_hint_rejected(self, resolver):
        with pytest.raises(DecodeError):
            resolver.decode_vin("1HGCM82633A123456", "truck")


VALID_PLATES = [
    ("ABC123", "CA", "Volkswagen", "Passat", 2008),
    ("XYZ789", "NY", "Honda", "Civic", 2021),
    ("DEF456", "TX", "Ford", "F-150", 2013),
    ("GHI012", "FL", "Chevrolet", "Malibu", 2006),
    ("JKL345", "CA", "Toyota", "Prius", 2010),
]


class TestDecodePlate:
    """Tests for plate validation and registry lookups."""

    @pytest.mark.parametrize("plate,state,make,model,year", VALID_PLATES)
    def test_known_plates(self, resolver, plate, state, make, model, year):
        result = resolver.decode_plate(plate, state)
        assert result.found
        assert result.confidence == "high"
        assert result.vin is not None
        assert result.vehicle.vin == result.vin
        assert (result.vehicle.make, result.vehicle.model, result.vehicle.year) == (make, model, year)

    def test_known_plate_lowercase(self, resolver):
        result = resolver.decode_plate(" abc123 ", "ca")
        assert result.vehicle.model == "Passat"
        assert result.jurisdiction == "CA"

    def test_module_decode_plate_passes_current_year(self, resolver, monkeypatch):
        calls = []

        class Recorder:
            def decode_plate(self, plate, jurisdiction, current_year=None):
                calls.append(current_year)
                return resolver.decode_plate(plate, jurisdiction, current_year=current_year)

        monkeypatch.setattr("quote_engine.resolver.get_resolver", Recorder)
        result = decode_plate("JKL345", "CA", current_year=2025)
        assert calls == [2025]
        assert result.vehicle.make == "Toyota"

    def test_motorcycle_plate_with_space(self, resolver):
        result = resolver.decode_plate("MC 4821", "NY")
        assert result.vehicle.make == "Harley-Davidson"
        assert result.vehicle.vehicle_class == VehicleClass.MOTORCYCLE

    @pytest.mark.parametrize("plate,state", [("UNKNOWN1", "CA"), ("TEST123", "NY"), ("SAMPLE1", "TX")])
    def test_unknown_plates_are_low_confidence(self, resolver, plate, state):
        result = resolver.decode_plate(plate, state)
        assert not result.found
        assert result.vin is None
        assert result.confidence == "low"
        assert result.error == "Vehicle information not found"

    @pytest.mark.parametrize("plate", ["X", "TOOLONGPLATE", "ABC@123", "ABC 123", "", None, "!@#$%^&"])
    def test_malformed_plates_fail_fast(self, resolver, plate):
        assert not resolver.validate_plate_format(plate, "CA")
        with pytest.raises(DecodeError) as exc_info:
            resolver.decode_plate(plate, "CA")
        assert exc_info.value.kind == ErrorKind.INVALID_FORMAT

    def test_space_allowed_by_jurisdiction(self, resolver):
        assert resolver.validate_plate_format("ABC 123", "NY")
        assert not resolver.validate_plate_format("ABC 123", "CA")
        assert not resolver.validate_plate_format("AB 12 3", "NY")

    def test_unsupported_jurisdiction(self, resolver):
        with pytest.raises(DecodeError):
            resolver.decode_plate("ABC123", "ZZ")


class TestJurisdictions:
    """Tests for the supported jurisdiction registry."""

    def test_fifty_states_and_dc(self, resolver):
        codes = [j.code for j in resolver.list_supported_jurisdictions()]
        assert len(codes) == 51
        assert {"CA", "NY", "TX", "FL", "DC"} <= set(codes)
        assert codes == sorted(codes)

    @pytest.mark.parametrize("code,name", [
        ("CA", "California"),
        ("NY", "New York"),
        ("DC", "District of Columbia"),
    ])
    def test_display_names(self, resolver, code, name):
        assert resolver.get_jurisdiction_name(code) == name

    def test_unknown_code_returned_unchanged(self, resolver):
        assert resolver.get_jurisdiction_name("ZZ") == "ZZ"
