"""Exception hierarchy for sitestress.

Probe failures are never raised through the engine; they are recorded as
failed outcomes. These exceptions cover misuse and invalid configuration.
"""


class SitestressError(Exception):
    """Base class for all sitestress errors."""


class ConfigError(SitestressError):
    """Raised when a configuration file or value is invalid."""


class AggregatorClosedError(SitestressError):
    """Raised when an outcome is ingested after the step was finalized."""
