"""npm registry client: package metadata and version lookup."""

from __future__ import annotations

import json
import logging
import urllib.parse
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from ...common.http_client import safe_get
from ...common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from ...constants import Constants
from ...exceptions import DecodeError, PackageNotFoundError, UpstreamError, VersionNotFoundError
from ...versioning.semver import normalize
from .models import Dependency, DistributionInfo, Package, PackageVersion, sort_versions

logger = logging.getLogger(__name__)


class RegistryClient:
    """Read-only client for one npm registry.

    Each call issues a single bounded-timeout GET; nothing is cached between
    calls.
    """

    def __init__(
        self,
        base_url: str = Constants.REGISTRY_URL_NPM,
        timeout: float = Constants.REQUEST_TIMEOUT,
        retries: int = Constants.HTTP_RETRY_MAX,
    ):
        """Initialize the client.

        Args:
            base_url: Registry root, e.g. ``https://registry.npmjs.org``.
            timeout: Seconds allowed for each request.
            retries: Extra attempts on timeouts and connection errors.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retries = retries

    def package_url(self, name: str) -> str:
        return f"{self.base_url}/{urllib.parse.quote(name, safe='@/')}"

    def fetch_package(self, name: str, full: bool = False) -> Package:
        """Fetch and decode a package document.

        Args:
            name: npm package name, scoped names included (``@vue/reactivity``).
            full: Request the full document instead of the abbreviated install
                metadata. Only the full document carries publish times.

        Returns:
            Package with versions sorted ascending.

        Raises:
            PackageNotFoundError: The registry answered 404.
            UpstreamError: Transport failure or any other non-2xx status.
            DecodeError: The body is not a package document.
        """
        url = self.package_url(name)
        headers = {
            "Accept": Constants.NPM_FULL_ACCEPT if full else Constants.NPM_INSTALL_ACCEPT,
            "User-Agent": Constants.USER_AGENT,
        }

        with Timer() as timer:
            res = safe_get(
                url,
                context="npm",
                timeout=self.timeout,
                retries=self.retries,
                headers=headers,
            )

        if res.status_code == 404:
            logger.info(
                "Package not found upstream: %s",
                name,
                extra=extra_context(event="http_response", outcome="not_found", status_code=404),
            )
            raise PackageNotFoundError(name)
        if not 200 <= res.status_code < 300:
            logger.warning(
                "HTTP non-2xx from registry",
                extra=extra_context(
                    event="http_response",
                    outcome="non_2xx",
                    status_code=res.status_code,
                    duration_ms=timer.duration_ms(),
                    target=safe_url(url),
                ),
            )
            raise UpstreamError(f"registry answered {res.status_code} for {name!r}", res.status_code)

        try:
            document = json.loads(res.content)
        except json.JSONDecodeError as exc:
            raise DecodeError(f"invalid JSON for package {name!r}: {exc}") from exc

        package = decode_package(document, name)
        if is_debug_enabled(logger):
            logger.debug(
                "Decoded package %s with %d versions",
                package.name,
                len(package.versions),
                extra=extra_context(event="decode", duration_ms=timer.duration_ms()),
            )
        return package

    def fetch_package_version(self, name: str, version: str, full: bool = False) -> PackageVersion:
        """Fetch a package and select one version by exact canonical match.

        Raises:
            VersionNotFoundError: The package exists but not this version.
        """
        package = self.fetch_package(name, full=full)
        found = package.by_version(version)
        if found is None:
            raise VersionNotFoundError(name, normalize(version))
        return found


def _parse_time(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _decode_dependencies(raw: Any, where: str) -> Tuple[Dependency, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, dict):
        raise DecodeError(f"dependencies of {where} is not an object")
    return tuple(
        Dependency(name=str(dep), version_range=str(rng))
        for dep, rng in sorted(raw.items())
    )


def _decode_dist(raw: Any, where: str) -> DistributionInfo:
    if not isinstance(raw, dict):
        raise DecodeError(f"dist of {where} is missing")
    return DistributionInfo(
        shasum=str(raw.get("shasum", "")),
        tarball=str(raw.get("tarball", "")),
        integrity=raw.get("integrity") or None,
    )


def decode_package(document: Any, requested_name: str) -> Package:
    """Build a Package from a decoded registry document.

    Map order in the document is irrelevant: versions are sorted by canonical
    precedence (ties by raw string) and dependencies by name.
    """
    if not isinstance(document, dict):
        raise DecodeError(f"package document for {requested_name!r} is not an object")

    name = document.get("name") or requested_name
    raw_versions: Dict[str, Any] = document.get("versions") or {}
    if not isinstance(raw_versions, dict):
        raise DecodeError(f"versions of {name!r} is not an object")
    times = document.get("time") if isinstance(document.get("time"), dict) else {}
    tags = document.get("dist-tags") if isinstance(document.get("dist-tags"), dict) else {}

    versions = []
    for key, meta in raw_versions.items():
        if not isinstance(meta, dict):
            raise DecodeError(f"metadata of {name}@{key} is not an object")
        raw_version = str(meta.get("version") or key)
        where = f"{name}@{raw_version}"
        versions.append(
            PackageVersion(
                name=str(meta.get("name") or name),
                version=normalize(raw_version),
                raw_version=raw_version,
                dependencies=_decode_dependencies(meta.get("dependencies"), where),
                dist=_decode_dist(meta.get("dist"), where),
                time=_parse_time(times.get(raw_version)),
            )
        )

    latest = tags.get("latest")
    return Package(
        name=name,
        latest=normalize(latest) if latest else "",
        versions=sort_versions(versions),
    )
