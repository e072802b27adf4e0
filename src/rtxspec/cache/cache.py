"""On-disk cache of generated :class:`~rtxspec.models.CommandArtifacts`.

Generation is a pure function of the command spec, the capability catalog,
the generation options and the rtxspec version, so those four are hashed
into the key and an entry never needs invalidating by hand; editing a spec
simply misses.  Entries still expire after ``CacheConfig.ttl_seconds`` so
the directory does not grow without bound.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Optional

import diskcache

from rtxspec import __version__
from rtxspec.models import CacheConfig, CapabilityCatalog, CommandArtifacts, CommandSpec

logger = logging.getLogger(__name__)

_SUBDIR = "artifacts"


def artifact_key(
    command: CommandSpec,
    catalog: Optional[CapabilityCatalog],
    options: dict[str, Any],
) -> str:
    """SHA-256 over everything that can change the generated artifacts."""
    digest = hashlib.sha256(__version__.encode())
    for part in (
        command.model_dump(mode="json"),
        catalog.model_dump(mode="json") if catalog else None,
        options,
    ):
        digest.update(b"\0")
        digest.update(json.dumps(part, sort_keys=True).encode())
    return digest.hexdigest()


class ArtifactCache:
    """Artifacts keyed by :func:`artifact_key`, stored under ``<cache_dir>/artifacts``.

    A disabled cache opens nothing on disk; every lookup misses and every
    store is dropped.  Use it as a context manager, or call :meth:`close`.
    """

    def __init__(self, cache_dir: str | Path, config: CacheConfig) -> None:
        self.directory = Path(cache_dir) / _SUBDIR
        self.ttl_seconds = config.ttl_seconds
        self._store: Optional[diskcache.Cache] = (
            diskcache.Cache(str(self.directory)) if config.enabled else None
        )

    def __enter__(self) -> ArtifactCache:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def enabled(self) -> bool:
        return self._store is not None

    def get(
        self,
        command: CommandSpec,
        catalog: Optional[CapabilityCatalog],
        options: dict[str, Any],
    ) -> Optional[CommandArtifacts]:
        if self._store is None:
            return None
        cached = self._store.get(artifact_key(command, catalog, options))
        logger.debug("Artifact cache %s for '%s'", "miss" if cached is None else "hit", command.name)
        return None if cached is None else CommandArtifacts.model_validate(cached)

    def set(
        self,
        command: CommandSpec,
        catalog: Optional[CapabilityCatalog],
        options: dict[str, Any],
        artifacts: CommandArtifacts,
    ) -> None:
        if self._store is None:
            return
        self._store.set(
            artifact_key(command, catalog, options),
            artifacts.model_dump(mode="json"),
            expire=self.ttl_seconds,
        )

    def clear(self) -> None:
        if self._store is not None:
            self._store.clear()

    def stats(self) -> dict[str, Any]:
        if self._store is None:
            return {"enabled": False}
        return {
            "enabled": True,
            "size": len(self._store),
            "directory": str(self.directory),
            "ttl_seconds": self.ttl_seconds,
        }

    def close(self) -> None:
        if self._store is not None:
            self._store.close()
