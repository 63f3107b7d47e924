class NewsEventsError(Exception):
    """Base class for errors raised by the event pipeline."""


class ConfigurationError(NewsEventsError):
    """Raised when required configuration is missing or invalid."""


class AIDisabledError(ConfigurationError):
    """Raised when summary generation is requested while AI_DISABLED=1."""


class EventNotFoundError(NewsEventsError, LookupError):
    """Raised when a referenced event does not exist in the store."""

    def __init__(self, event_id: str) -> None:
        super().__init__(f"Event not found: {event_id}")
        self.event_id = event_id


class OracleError(NewsEventsError):
    """Raised when the generative-text backend times out, fails, or returns nothing usable."""


class OracleUnavailableError(OracleError):
    """Raised when no credential is configured for the generative-text backend."""


class StoreError(NewsEventsError):
    """Raised when the event store cannot be read or written."""


class DuplicateItemError(StoreError):
    """Raised when an item with the same dedup hash already exists."""


class ItemAlreadyLinkedError(StoreError):
    """Raised when an item is attached to a second event."""
