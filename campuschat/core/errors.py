# campuschat/core/errors.py


class CampusChatError(Exception):
    """Base class for errors raised by campuschat."""


class InvalidConversationId(CampusChatError, ValueError):
    """A conversation ID could not be decoded from its wire form."""

    def __init__(self, value: str, reason: str = "expected 64 hex characters") -> None:
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid conversation id {value!r}: {reason}")


class PersistenceError(CampusChatError):
    """The durable conversation repository failed to read or write."""
