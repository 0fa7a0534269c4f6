"""wktarchive core: configuration, errors, logging and diagnostics."""

from wktarchive.core.config import ConfigResolver, ConfigSource, LoggingPolicy
from wktarchive.core.errors import (
    ArchiveError,
    ArchiveReadError,
    ConfigError,
    ExternalProcessError,
    InvalidOperationError,
    SourcePathError,
    UnknownOperationError,
    WktArchiveError,
    WriteError,
)
from wktarchive.core.events import EventBus, get_event_bus
from wktarchive.core.logging import (
    VerbosityLevel,
    apply_logging_policy,
    get_logger,
    get_verbosity,
    set_colors,
    set_verbosity,
)

__all__ = [
    # Config
    "ConfigResolver",
    "ConfigSource",
    "LoggingPolicy",
    # Errors
    "WktArchiveError",
    "ConfigError",
    "ArchiveError",
    "ArchiveReadError",
    "SourcePathError",
    "UnknownOperationError",
    "InvalidOperationError",
    "WriteError",
    "ExternalProcessError",
    # Events
    "EventBus",
    "get_event_bus",
    # Logging
    "VerbosityLevel",
    "apply_logging_policy",
    "get_logger",
    "get_verbosity",
    "set_colors",
    "set_verbosity",
]
