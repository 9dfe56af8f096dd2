"""The module proxy operations, independent of any HTTP framework.

Every method is blocking: it performs registry reads and disk I/O on the
calling thread. The aiohttp server runs them in its executor; the CLI calls
them directly.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..archive.repacker import ArchiveHandle, ArchiveRepacker
from ..constants import Constants
from ..exceptions import NotFoundError, PackageNotFoundError, VersionNotFoundError
from ..gomod.manifest import render_manifest
from ..gomod.module import ModuleIdentity, identity_for
from ..registry.npm.client import RegistryClient
from ..registry.npm.models import Dependency, PackageVersion
from ..registry.npm.tarball import TarballFetcher
from ..versioning.resolver import pick_matching
from .request_parser import RequestContext

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]+")


def format_time(value: Optional[datetime]) -> Optional[str]:
    """RFC 3339 in UTC with millisecond precision, as npm publishes it."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ModuleProxy:
    """Translate module proxy requests into npm registry reads."""

    def __init__(
        self,
        registry: Optional[RegistryClient] = None,
        fetcher: Optional[TarballFetcher] = None,
        repacker: Optional[ArchiveRepacker] = None,
        go_version: str = Constants.GO_VERSION,
    ):
        self.registry = registry or RegistryClient()
        self.fetcher = fetcher or TarballFetcher(timeout=self.registry.timeout)
        self.repacker = repacker or ArchiveRepacker()
        self.go_version = go_version

    @property
    def module_path_base(self) -> str:
        return self.repacker.module_path_base

    def _version(self, ctx: RequestContext, full: bool = False) -> PackageVersion:
        version = self.registry.fetch_package_version(ctx.package, ctx.version, full=full)
        if ctx.major_suffix != self.repacker.identity(version).suffix:
            logger.debug("Path suffix %r does not match %s", ctx.major_suffix, version.version)
        return version

    def list_versions(self, ctx: RequestContext) -> str:
        """Newline-separated canonical versions, ascending.

        A package unknown to the registry has no versions.
        """
        logger.info("list %s", ctx)
        try:
            package = self.registry.fetch_package(ctx.package)
        except PackageNotFoundError:
            return ""
        return "\n".join(package.version_strings())

    def info(self, ctx: RequestContext) -> Dict[str, Any]:
        """``{"Version": ..., "Time": ...}`` for one version."""
        logger.info("info %s", ctx)
        return self._info_record(self._version(ctx, full=True))

    def latest(self, ctx: RequestContext) -> Dict[str, Any]:
        """Info record of the version tagged ``latest``."""
        logger.info("latest %s", ctx)
        package = self.registry.fetch_package(ctx.package, full=True)
        version = package.latest_version()
        if version is None:
            raise VersionNotFoundError(ctx.package, "latest")
        return self._info_record(version)

    @staticmethod
    def _info_record(version: PackageVersion) -> Dict[str, Any]:
        record: Dict[str, Any] = {"Version": version.version}
        published = format_time(version.time)
        if published:
            record["Time"] = published
        return record

    def manifest(self, ctx: RequestContext) -> str:
        """Synthetic go.mod: the module line plus one require per npm dependency."""
        logger.info("mod %s", ctx)
        version = self._version(ctx)
        identity = self.repacker.identity(version)
        requires: List[ModuleIdentity] = []
        for dep in version.dependencies:
            resolved = self.resolve_dependency(dep)
            if resolved is not None:
                requires.append(resolved)
        return render_manifest(identity, requires, self.go_version)

    def resolve_dependency(self, dep: Dependency) -> Optional[ModuleIdentity]:
        """Pick the highest published version of ``dep`` satisfying its range.

        Falls back to the dependency's ``latest`` tag when the range matches
        nothing or is not a semver range. Returns None when the dependency
        does not exist upstream or its name cannot be embedded in a module path.
        """
        try:
            package = self.registry.fetch_package(dep.name)
        except NotFoundError:
            logger.warning("Dependency %s does not exist upstream; leaving it out", dep.name)
            return None

        picked = pick_matching(dep.version_range, package.version_strings())
        if picked is None:
            fallback = package.latest_version()
            if fallback is None:
                logger.warning("Dependency %s has no published versions; leaving it out", dep.name)
                return None
            logger.warning(
                "No version of %s satisfies %r; using %s",
                dep.name, dep.version_range, fallback.version,
            )
            picked = fallback.version
        try:
            return identity_for(self.module_path_base, package.name, picked)
        except ValueError as exc:
            logger.warning("Dependency %s has no module path: %s; leaving it out", dep.name, exc)
            return None

    def archive(self, ctx: RequestContext) -> ArchiveHandle:
        """Download, verify and repack one version.

        The caller owns the returned handle and must call ``cleanup()``.
        """
        logger.info("zip %s", ctx)
        # Only the full document carries the publish time used for Last-Modified.
        version = self._version(ctx, full=True)
        return self.build_archive(version)

    def build_archive(self, version: PackageVersion) -> ArchiveHandle:
        workdir = tempfile.mkdtemp(prefix=Constants.STAGING_PREFIX)
        try:
            filename = _UNSAFE_FILENAME.sub("_", f"{version.name}-{version.raw_version}") + ".tgz"
            tarball_path = os.path.join(workdir, filename)
            self.fetcher.fetch(version.dist, tarball_path)
            return self.repacker.repack(tarball_path, version, workdir=workdir)
        except BaseException:
            shutil.rmtree(workdir, ignore_errors=True)
            raise
