"""Detective exception hierarchy for precise error handling."""


class DetectiveError(Exception):
    """Base exception for all Detective errors."""


class DatabaseConnectionError(DetectiveError):
    """Failed to establish a database connection."""


class DatabaseQueryError(DetectiveError):
    """A SQL query failed."""


class DatabaseTimeoutError(DatabaseQueryError):
    """A query exceeded its timeout."""


class ConfigurationError(DetectiveError):
    """Invalid or missing configuration."""


class DecodeError(DetectiveError):
    """A wait resource could not be resolved.

    Raised inside the decoder and catalog lookups only; ``WaitResourceDecoder.decode``
    converts every subclass into an ``error_message`` on the result.
    """


class MalformedInputError(DecodeError):
    """The wait resource text does not have the expected numeric shape."""


class DatabaseNotFoundError(DecodeError):
    """No database with the parsed database id exists."""


class DatabaseNotOnlineError(DecodeError):
    """The database exists but is not ONLINE."""


class ResourceNotFoundError(DecodeError):
    """A HOBT, object or page lookup returned nothing."""


class UnsupportedFeatureError(DecodeError):
    """Page inspection is unavailable on this server or was denied."""
