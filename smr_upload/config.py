"""
Configuration for publishing a mod version.
"""
import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .errors import ConfigurationError
from .models import Stability

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.ficsit.app"
DEFAULT_GRAPHQL_PATH = "/v2/query"
MIN_CHUNK_SIZE = 1_000_000
DEFAULT_CHUNK_SIZE = 10_000_000
DEFAULT_REQUEST_TIMEOUT = (10.0, 300.0)

ENV_PREFIX = "FICSIT_"
_ENV_KEYS = {
    "api_base": "API_BASE",
    "graphql_path": "GRAPHQL_API",
    "api_key": "API_KEY",
    "chunk_size": "CHUNK_SIZE",
    "stability": "STABILITY",
}


def validate_chunk_size(chunk_size: Any) -> int:
    """Check that a chunk size is an integer of at least 1MB.

    Raises:
        ConfigurationError: If the value is too small or not an integer
    """
    try:
        value = int(chunk_size)
    except (TypeError, ValueError):
        raise ConfigurationError(f"invalid chunk size: {chunk_size}") from None
    if value < MIN_CHUNK_SIZE:
        raise ConfigurationError("chunk size cannot be smaller than 1MB")
    return value


def _as_number(kind: Callable[[Any], Any], name: str, value: Any) -> Any:
    if isinstance(value, bool):
        raise ConfigurationError(f"invalid {name}: {value}")
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"invalid {name}: {value}") from None


def _as_delay(name: str, value: Any) -> float:
    delay = _as_number(float, name, value)
    if delay < 0:
        raise ConfigurationError(f"{name} cannot be negative: {value}")
    return delay


def _as_timeout(value: Any) -> Optional[Tuple[float, float]]:
    """Normalise a request timeout to a (connect, read) tuple.

    A single number applies to both phases. None disables the timeout.
    """
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        if len(value) != 2:
            raise ConfigurationError(f"request_timeout must be a (connect, read) pair: {value}")
        connect, read = value
    else:
        connect = read = value
    timeout = (_as_number(float, "request_timeout", connect),
               _as_number(float, "request_timeout", read))
    if min(timeout) <= 0:
        raise ConfigurationError(f"request_timeout must be positive: {value}")
    return timeout


@dataclass(frozen=True)
class PublisherConfig:
    """Explicit configuration for an upload session."""
    api_key: str = ""
    api_base: str = DEFAULT_API_BASE
    graphql_path: str = DEFAULT_GRAPHQL_PATH
    chunk_size: int = DEFAULT_CHUNK_SIZE
    # Default for targets built by the CLI; a session publishes its target's stability
    stability: Stability = Stability.RELEASE
    poll_initial_delay: float = 1.0
    poll_interval: float = 10.0
    request_timeout: Optional[Tuple[float, float]] = DEFAULT_REQUEST_TIMEOUT
    max_workers: int = 1
    dry_run: bool = False

    @property
    def endpoint_url(self) -> str:
        return self.api_base + self.graphql_path

    def validate(self) -> "PublisherConfig":
        """Return a copy with every value checked and normalised.

        Raises:
            ConfigurationError: If any value is invalid
        """
        max_workers = _as_number(int, "max_workers", self.max_workers)
        if max_workers < 1:
            raise ConfigurationError(f"max_workers must be at least 1: {self.max_workers}")

        return replace(
            self,
            chunk_size=validate_chunk_size(self.chunk_size),
            stability=Stability.parse(self.stability),
            max_workers=max_workers,
            poll_initial_delay=_as_delay("poll_initial_delay", self.poll_initial_delay),
            poll_interval=_as_delay("poll_interval", self.poll_interval),
            request_timeout=_as_timeout(self.request_timeout)
        )

    def merged(self, overrides: Mapping[str, Any]) -> "PublisherConfig":
        """Return a copy with the non-None overrides applied."""
        known = {f.name for f in fields(self)}
        values = {k: v for k, v in overrides.items() if k in known and v is not None}
        unknown = set(overrides) - known
        if unknown:
            logger.debug(f"Ignoring unknown config keys: {sorted(unknown)}")
        return replace(self, **values)


def load_config(config_file: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from a JSON file.

    Args:
        config_file: Path to config file

    Returns:
        Dictionary of configuration values

    Raises:
        ConfigurationError: If the file cannot be read or parsed
    """
    if not config_file:
        return {}

    try:
        with open(config_file) as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Error loading config file {config_file}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_file} must contain a JSON object")

    # Accept the dashed flag names used on the command line as well
    return {key.replace('-', '_'): value for key, value in data.items()}


def config_from_env(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Read FICSIT_* environment variables into config keys."""
    environ = os.environ if environ is None else environ
    values = {}
    for key, suffix in _ENV_KEYS.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value:
            values[key] = value
    return values


def build_config(config_file: Optional[Path] = None,
                 environ: Optional[Mapping[str, str]] = None,
                 **overrides: Any) -> PublisherConfig:
    """Assemble a validated config from defaults, file, environment and overrides.

    Later sources win: overrides beat the environment, which beats the file.
    """
    config = PublisherConfig()
    config = config.merged(load_config(config_file))
    config = config.merged(config_from_env(environ))
    config = config.merged(overrides)
    return config.validate()
