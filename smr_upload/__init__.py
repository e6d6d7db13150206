from .api import SMRApiClient
from .config import PublisherConfig, build_config
from .errors import (
    ConfigurationError,
    FileSystemError,
    PollError,
    RemoteError,
    TransportError,
    UploadCancelledError,
    UploadError
)
from .models import Stability, UploadOutcome, UploadReport, UploadTarget
from .orchestrator import UploadOrchestrator
from .transport import HttpTransport

__version__ = "0.1.0"

__all__ = [
    "SMRApiClient",
    "PublisherConfig",
    "build_config",
    "ConfigurationError",
    "FileSystemError",
    "PollError",
    "RemoteError",
    "TransportError",
    "UploadCancelledError",
    "UploadError",
    "Stability",
    "UploadOutcome",
    "UploadReport",
    "UploadTarget",
    "UploadOrchestrator",
    "HttpTransport",
]
