"""
Error taxonomy.

The poller reacts differently to each type:
TransportError marks the host Unknown for this cycle.
ResourceMissing is not a failure on its own, the client tries the next path.
DataUnavailable leaves one summary off the snapshot.
CatalogError keeps the previous catalog index.
DiscoveryError abandons the whole cycle.
"""


class InsightsError(Exception):
    """Base class for all baremetal_insights exceptions."""


class TransportError(InsightsError):
    """Raised when a controller cannot be reached or answers with garbage."""


class AuthenticationError(TransportError):
    """Raised when a controller rejects the credentials."""


class ResourceMissing(InsightsError):
    """Raised when a Redfish resource does not exist on this controller."""


class DataUnavailable(InsightsError):
    """Raised when neither the modern nor the legacy resource has data."""


class CatalogError(InsightsError):
    """Raised when the firmware catalog cannot be fetched or parsed."""


class DiscoveryError(InsightsError):
    """Raised when the host list cannot be obtained."""


class ConfigError(InsightsError):
    """Raised for invalid settings."""
