"""Error taxonomy for request resolution.

Every error here is fatal for the current request only. The endpoint layer turns
them into a single terminal failure response.
"""


class ProxyError(Exception):
    """Base class for failures that end a proxied request."""


class ConfigurationError(ProxyError):
    """No remote origin configured, or no local fallback file available."""


class RemoteUnavailableError(ProxyError):
    """Remote fetch failed and the current mode has no degradation path."""


class ImageProcessingError(ProxyError):
    """A local source image could not be opened or resized."""


class StorageWriteError(ProxyError):
    """Fetched bytes could not be persisted locally."""


class ResolutionError(ProxyError):
    """The engine would need more passes than it is allowed to take."""
