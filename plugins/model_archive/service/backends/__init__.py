"""Backend strategies for model_archive."""

from __future__ import annotations

from pathlib import Path

from wktarchive.core.config import ConfigResolver
from wktarchive.core.errors import ConfigError

from ..types import BackendType
from .base import ArchiveBackend, read_zip_entries, validate_source
from .helper import HelperBackend
from .memory import InMemoryBackend
from .streaming import StreamingBackend


def _str_from_resolver(resolver: ConfigResolver, key: str) -> str | None:
    val = resolver.resolve_optional(key)
    if val is None or val == "":
        return None
    return str(val)


def create_backend(
    backend_type: BackendType | str,
    *,
    resolver: ConfigResolver | None = None,
    project_dir: Path | None = None,
) -> ArchiveBackend:
    """Create the backend for a BackendType (or its string value).

    Raises:
        ConfigError: If backend_type is not a known backend.
    """
    _resolver = resolver or ConfigResolver(cli_args={})
    try:
        _type = BackendType(str(backend_type))
    except ValueError:
        allowed = ", ".join(t.value for t in BackendType)
        raise ConfigError(f"Unknown archive backend {backend_type!r}; allowed: {allowed}") from None

    if _type == BackendType.IN_MEMORY:
        return InMemoryBackend()
    if _type == BackendType.STREAMING:
        return StreamingBackend(tmp_dir=_str_from_resolver(_resolver, "archive.tmp_dir"))
    return HelperBackend(
        script=_str_from_resolver(_resolver, "archive.helper.script"),
        java_home=_str_from_resolver(_resolver, "archive.helper.java_home"),
        project_dir=project_dir,
    )


__all__ = [
    "ArchiveBackend",
    "BackendType",
    "HelperBackend",
    "InMemoryBackend",
    "StreamingBackend",
    "create_backend",
    "read_zip_entries",
    "validate_source",
]
