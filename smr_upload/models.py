"""
Module containing data models for the publishing pipeline.
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from .errors import ConfigurationError, FileSystemError


class Stability(str, Enum):
    """Release channel of a published version."""
    ALPHA = "alpha"
    BETA = "beta"
    RELEASE = "release"

    @property
    def api_value(self) -> str:
        """Value of the VersionStabilities GraphQL enum."""
        return self.value.upper()

    @classmethod
    def parse(cls, value: "str | Stability") -> "Stability":
        """Parse a user supplied stability name.

        Raises:
            ConfigurationError: If the value is not alpha, beta or release
        """
        if isinstance(value, Stability):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigurationError(f"invalid version stability: {value}") from None


class UploadPhase(Enum):
    """States of an upload session."""
    INIT = "init"
    CREATING = "creating"
    UPLOADING = "uploading"
    FINALIZING = "finalizing"
    POLLING = "polling"
    DONE = "done"


class UploadOutcome(Enum):
    """Review outcome reported once the session is done."""
    AUTO_APPROVED = "auto_approved"
    MANUAL_REVIEW = "manual_review"
    UNKNOWN = "unknown"


_VERSIONED_PHASES = frozenset({
    UploadPhase.UPLOADING,
    UploadPhase.FINALIZING,
    UploadPhase.POLLING,
})


@dataclass(frozen=True)
class UploadTarget:
    """Represents the artifact to publish."""
    file_path: Path
    total_size: int
    mod_id: str
    changelog: str
    stability: Stability

    def __post_init__(self):
        """Validate the upload target."""
        if not self.mod_id:
            raise ConfigurationError("mod_id cannot be empty")
        object.__setattr__(self, "stability", Stability.parse(self.stability))
        if self.total_size <= 0:
            raise FileSystemError(f"{self.file_path} is empty")

    @property
    def file_name(self) -> str:
        return self.file_path.name

    @classmethod
    def from_path(cls, mod_id: str, file_path: "Path | str", changelog: str,
                  stability: "Stability | str" = Stability.RELEASE) -> "UploadTarget":
        """Build a target from a path on disk.

        Args:
            mod_id: Identifier of the mod on the repository
            file_path: Path to the artifact
            changelog: Changelog text for the new version
            stability: Release channel

        Returns:
            UploadTarget for the resolved path

        Raises:
            FileSystemError: If the path is missing, a directory or unreadable
            ConfigurationError: If the stability is not recognised
        """
        stability = Stability.parse(stability)
        path = Path(file_path).expanduser().resolve()
        try:
            stat = path.stat()
        except OSError as e:
            raise FileSystemError(f"failed to stat file: {e}") from e

        if path.is_dir():
            raise FileSystemError("file cannot be a directory")

        return cls(
            file_path=path,
            total_size=stat.st_size,
            mod_id=mod_id,
            changelog=changelog,
            stability=stability
        )


@dataclass(frozen=True)
class ChunkDescriptor:
    """A contiguous byte range of the artifact sent as one request."""
    index: int
    part_number: int
    byte_offset: int
    byte_length: int

    @property
    def end(self) -> int:
        return self.byte_offset + self.byte_length


@dataclass
class UploadSession:
    """Mutable state of a single publishing run."""
    mod_id: str
    chunk_plan: List[ChunkDescriptor] = field(default_factory=list)
    current_chunk_index: int = 0
    phase: UploadPhase = UploadPhase.INIT
    _version_id: Optional[str] = field(default=None, repr=False)

    @property
    def version_id(self) -> Optional[str]:
        return self._version_id

    @version_id.setter
    def version_id(self, value: str) -> None:
        if self._version_id is not None:
            raise RuntimeError("version_id is already assigned")
        if not value:
            raise ValueError("version_id cannot be empty")
        self._version_id = value

    def advance(self, phase: UploadPhase) -> None:
        """Move the session to a new phase."""
        if phase in _VERSIONED_PHASES and self._version_id is None:
            raise RuntimeError(f"cannot enter {phase.name} without a version id")
        self.phase = phase

    @property
    def bytes_uploaded(self) -> int:
        return sum(c.byte_length for c in self.chunk_plan[:self.current_chunk_index])


@dataclass(frozen=True)
class VersionReviewState:
    """Server-reported snapshot of a version's upload state."""
    version_id: Optional[str]
    has_version: bool
    auto_approved: bool


@dataclass
class UploadReport:
    """Represents a summary of a publishing run."""
    mod_id: str
    version_id: Optional[str]
    outcome: UploadOutcome
    chunks_uploaded: int
    bytes_uploaded: int
    finalize_succeeded: Optional[bool] = None
    error: Optional[str] = None
