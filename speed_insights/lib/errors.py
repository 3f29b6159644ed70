"""Exceptions raised by the drain ingestion and aggregation services."""


class SpeedInsightsError(Exception):
    """Base class for all service errors."""


class MalformedInputError(SpeedInsightsError):
    """Raised when a drain payload cannot be parsed or normalized.

    The whole batch is rejected; no event from it is written.
    """


class StoreUnavailableError(SpeedInsightsError):
    """Raised when the event store is not configured or cannot be reached."""


class StoreWriteError(SpeedInsightsError):
    """Raised when inserting a parsed batch into the event store fails."""


class MissingProjectIdError(SpeedInsightsError):
    """Raised when a query has no resolvable project identifier.

    Always raised before any store call is made.
    """
