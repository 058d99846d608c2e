"""Error taxonomy shared by the resolver, pricing table, calculator and lifecycle."""

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_FORMAT = "invalid_format"
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    CONFIGURATION_ERROR = "configuration_error"


class QuoteEngineError(Exception):
    """Base class for every error raised by the engine."""

    kind: ErrorKind = ErrorKind.CONFIGURATION_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}


class DecodeError(QuoteEngineError):
    """A VIN or license plate that cannot be decoded."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.INVALID_FORMAT):
        super().__init__(message)
        self.kind = kind


class PricingEntryNotFound(QuoteEngineError, KeyError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, service_type: str):
        super().__init__(f"No pricing entry for service type {service_type!r}")
        self.service_type = service_type

    def __str__(self) -> str:
        return self.message


class InvalidTransitionError(QuoteEngineError):
    kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, from_status: str, to_status: str, reason: str):
        super().__init__(f"Cannot move quote from {from_status} to {to_status}: {reason}")
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason


class ConfigurationError(QuoteEngineError):
    """The pricing table cannot price anything (fallback entry missing)."""

    kind = ErrorKind.CONFIGURATION_ERROR
