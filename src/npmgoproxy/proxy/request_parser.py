"""Parse module proxy request paths into npm package requests."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Pattern, Tuple

from ..constants import Constants
from ..gomod.module import split_path_version, unescape_package, unescape_path, unescape_version


class Operation(Enum):
    """Module proxy protocol endpoints."""

    LIST = "list"
    INFO = "info"
    MOD = "mod"
    ZIP = "zip"
    LATEST = "latest"


@dataclass(frozen=True)
class RequestContext:
    """Package, requested version and path major suffix of one request."""

    package: str
    version: str = ""
    major_suffix: str = ""

    def __str__(self) -> str:
        return f"{self.package}|{self.version}|{self.major_suffix}"


@dataclass(frozen=True)
class ParsedRequest:
    """Result of parsing a module proxy request."""

    operation: Operation
    context: RequestContext
    raw_path: str = ""


class InvalidRequestPath(ValueError):
    """The path matched a route but its escaping is malformed."""


# Evaluated in order; the first match wins.
ROUTES: Tuple[Tuple[Operation, Pattern[str]], ...] = (
    (Operation.LIST, re.compile(r"^/(?P<module>.+)/@v/list$")),
    (Operation.INFO, re.compile(r"^/(?P<module>.+)/@v/(?P<version>[^/]+)\.info$")),
    (Operation.MOD, re.compile(r"^/(?P<module>.+)/@v/(?P<version>[^/]+)\.mod$")),
    (Operation.ZIP, re.compile(r"^/(?P<module>.+)/@v/(?P<version>[^/]+)\.zip$")),
    (Operation.LATEST, re.compile(r"^/(?P<module>.+)/@latest$")),
)


class RequestParser:
    """Parser for ``/{base}/{module}/@v/...`` request paths."""

    def __init__(self, module_path_base: str = Constants.MODULE_PATH_BASE, routes=ROUTES):
        """Initialize the request parser.

        Args:
            module_path_base: Module path prefix all served modules live under.
            routes: Ordered (operation, pattern) table.
        """
        self.module_path_base = module_path_base.strip("/")
        self._prefix = self.module_path_base + "/"
        self._routes = routes

    def parse(self, path: str) -> Optional[ParsedRequest]:
        """Parse a request path.

        Returns:
            ParsedRequest, or None when the path is outside the base path,
            matches no route, or names no package.

        Raises:
            InvalidRequestPath: The module path or version is badly escaped.
        """
        if not path.startswith("/" + self._prefix):
            return None

        for operation, pattern in self._routes:
            match = pattern.match(path)
            if not match:
                continue
            groups = match.groupdict()
            try:
                module_path = unescape_path(groups["module"])
                version = unescape_version(groups["version"]) if groups.get("version") else ""
            except ValueError as exc:
                raise InvalidRequestPath(str(exc)) from exc

            if module_path == self.module_path_base:
                return None
            package_path, major_suffix = split_path_version(module_path)
            if not package_path.startswith(self._prefix):
                return None
            package = unescape_package(package_path[len(self._prefix):])
            if not package or Constants.SCOPE_MARKER in package[1:]:
                return None

            return ParsedRequest(
                operation=operation,
                context=RequestContext(package=package, version=version, major_suffix=major_suffix),
                raw_path=path,
            )
        return None
