"""
Domain-specific exception hierarchy for the slot allocation engine.
"""


class SlotEngineError(Exception):
    """Base class for all application-level errors."""


class ProviderNotFoundError(SlotEngineError):
    """Raised when the template source has no record for a provider."""


class DataSourceError(SlotEngineError):
    """Raised when an external read boundary cannot be reached."""


class TemplateParseError(SlotEngineError):
    """Raised when a stored weekly template cannot be interpreted."""


class BusyQueryError(SlotEngineError):
    """Raised when committed reservations cannot be fetched."""


class InvalidDurationError(SlotEngineError, ValueError):
    """Raised when a session duration is not one of the offered lengths."""


class BookingStateError(SlotEngineError):
    """Raised when an orchestrator operation is invalid in the current state."""


class BookingError(SlotEngineError):
    """Base class for user-visible booking failures."""


class SlotNoLongerAvailableError(BookingError):
    """Raised when the commit-time overlap check loses to another booking."""


class BookingValidationError(BookingError):
    """Raised when a booking request is rejected as malformed."""


class BookingCreationError(BookingError):
    """Raised when the booking collaborator fails for any other reason."""


class HoldExpiredError(BookingError):
    """Raised when payment arrives after the provisional hold lapsed."""
