"""Errors raised while parsing and querying HL7 messages."""


class HL7Error(Exception):
    """Base error for this package."""


class ParseError(HL7Error):
    """Raised when message text cannot be turned into a Message."""


class MissingHeaderError(ParseError):
    """Raised when no line of the message matches the header pattern."""


class MissingControlIdError(ParseError):
    """Raised when the header exists but carries no message control id."""


class UnsupportedFieldNameError(HL7Error, KeyError):
    """Raised for a name lookup on a segment type without a field table, or an unknown name."""

    def __str__(self):
        return str(self.args[0]) if self.args else ""


class FormatError(HL7Error, ValueError):
    """Raised when a field's text does not match the shape a typed interpreter expects."""


class DelimiterError(HL7Error, ValueError):
    """Raised for an invalid delimiter configuration."""


class RegistryError(HL7Error):
    """Raised when the segment registry cannot accept a registration."""


class RegistryConflictError(RegistryError):
    """Raised when a segment code is registered again with a different field table."""
