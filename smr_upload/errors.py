"""
Error types raised while publishing a mod version.
"""


class UploadError(Exception):
    """Base class for all publishing failures."""


class ConfigurationError(UploadError):
    """Invalid chunk size, stability or other configuration value."""


class FileSystemError(UploadError):
    """The artifact is missing, a directory, empty or unreadable."""


class RemoteError(UploadError):
    """Creating or finalizing the version failed on the API side."""


class TransportError(UploadError):
    """A chunk upload request failed at the network layer."""


class PollError(UploadError):
    """Querying the version upload state failed."""


class UploadCancelledError(UploadError):
    """The session was cancelled before it reached a terminal state."""
