"""Exception hierarchy for ESI processing.

Directive-local errors (ScanError, ConfigError) are caught by the
substitution engine and recorded as failures; only SubstitutionError and
its subclasses escape a resolution call.
"""


class EsiError(Exception):
    """Base exception for all ESI processing errors."""

    pass


class ScanError(EsiError):
    """Raised for a malformed directive, e.g. an include without ``src``.

    Attributes:
        offset: Position of the offending tag in the scanned text.
    """

    def __init__(self, message: str, offset: int = -1) -> None:
        super().__init__(message)
        self.offset = offset


class ConfigError(EsiError):
    """Raised when an include cannot be turned into a fetchable URL."""

    pass


class SubstitutionError(EsiError):
    """Fatal error that aborts a whole resolution call."""

    pass


class BodyDecodeError(SubstitutionError):
    """Raised when the document body is not valid UTF-8 text."""

    pass


class SubstitutionTimeoutError(SubstitutionError):
    """Raised when a resolution call exceeds its deadline."""

    pass
