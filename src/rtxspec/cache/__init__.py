"""Artifact cache for ``rtxspec generate all``.

:class:`ArtifactCache` persists :class:`~rtxspec.models.CommandArtifacts`
with :mod:`diskcache`; the ``cache`` section of
:class:`~rtxspec.models.GlobalConfig` turns it off or changes its TTL.
"""

from rtxspec.cache.cache import ArtifactCache, artifact_key

__all__ = ["ArtifactCache", "artifact_key"]
