"""Data models for npm registry metadata."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from ...versioning.semver import normalize, precedence


@dataclass(frozen=True)
class Dependency:
    """A declared (unresolved) dependency: package name and npm range."""

    name: str
    version_range: str


@dataclass(frozen=True)
class DistributionInfo:
    """Where to download a version's tarball and how to verify it."""

    shasum: str
    tarball: str
    integrity: Optional[str] = None


@dataclass(frozen=True)
class PackageVersion:
    """One published version of a package.

    ``version`` is the canonical ``v``-prefixed form, ``raw_version`` the
    string exactly as the registry published it.
    """

    name: str
    version: str
    raw_version: str
    dependencies: Tuple[Dependency, ...] = ()
    dist: DistributionInfo = field(default_factory=lambda: DistributionInfo("", ""))
    time: Optional[datetime] = None


@dataclass(frozen=True)
class Package:
    """A package with its versions sorted ascending."""

    name: str
    latest: str
    versions: Tuple[PackageVersion, ...] = ()

    def by_version(self, version: str) -> Optional[PackageVersion]:
        """Find a version by exact canonical match; raw input is normalized first."""
        wanted = normalize(version)
        for candidate in self.versions:
            if candidate.version == wanted:
                return candidate
        return None

    def version_strings(self) -> Tuple[str, ...]:
        return tuple(v.version for v in self.versions)

    def latest_version(self) -> Optional[PackageVersion]:
        """The version tagged ``latest``, else the highest published one."""
        if self.latest:
            tagged = self.by_version(self.latest)
            if tagged is not None:
                return tagged
        if not self.versions:
            return None
        return self.versions[-1]


def sort_versions(versions) -> Tuple[PackageVersion, ...]:
    """Order versions by canonical precedence, ties by the raw string."""
    return tuple(sorted(versions, key=lambda v: (precedence(v.version), v.raw_version)))
