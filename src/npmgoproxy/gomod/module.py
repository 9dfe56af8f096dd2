"""Module paths and identities.

Two independent escapes are involved:

* package escape: npm's scope marker ``@`` is not allowed in a module path,
  so ``@vue/reactivity`` is embedded as ``___vue/reactivity``;
* case escape: the module proxy protocol spells upper-case letters in paths
  and versions as ``!`` plus the lower-case letter (``Foo`` -> ``!foo``).
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from typing import Tuple

from ..constants import Constants
from ..versioning.semver import major

_PATH_VERSION = re.compile(r"^(.+)/(v(?:0|[2-9]|[1-9]\d+))$")


def escape_package(name: str) -> str:
    """Spell the scope marker as ``___``.

    Names that already contain ``___`` cannot round-trip and are rejected
    with ValueError.
    """
    if Constants.SCOPE_ESCAPE in name:
        raise ValueError(f"package name {name!r} contains {Constants.SCOPE_ESCAPE!r}")
    return name.replace(Constants.SCOPE_MARKER, Constants.SCOPE_ESCAPE)


def unescape_package(escaped: str) -> str:
    """Inverse of escape_package; a scope marker is only valid as the first character."""
    return escaped.replace(Constants.SCOPE_ESCAPE, Constants.SCOPE_MARKER)


def _case_escape(value: str, what: str) -> str:
    if "!" in value:
        raise ValueError(f"invalid {what} {value!r}: contains '!'")
    return "".join("!" + c.lower() if "A" <= c <= "Z" else c for c in value)


def _case_unescape(value: str, what: str) -> str:
    out = []
    bang = False
    for c in value:
        if bang:
            if not "a" <= c <= "z":
                raise ValueError(f"invalid escaped {what} {value!r}")
            out.append(c.upper())
            bang = False
        elif c == "!":
            bang = True
        elif "A" <= c <= "Z":
            raise ValueError(f"invalid escaped {what} {value!r}: upper-case letter")
        else:
            out.append(c)
    if bang:
        raise ValueError(f"invalid escaped {what} {value!r}: trailing '!'")
    return "".join(out)


def escape_path(path: str) -> str:
    return _case_escape(path, "module path")


def unescape_path(escaped: str) -> str:
    return _case_unescape(escaped, "module path")


def escape_version(version: str) -> str:
    return _case_escape(version, "version")


def unescape_version(escaped: str) -> str:
    return _case_unescape(escaped, "version")


def split_path_version(path: str) -> Tuple[str, str]:
    """Split a trailing major suffix off a module path.

    ``split_path_version("a/b/v3") == ("a/b", "/v3")``. Every major other
    than 1 carries a suffix, so ``/v0`` splits as well; ``/v1`` and suffixes
    with leading zeros do not.
    """
    m = _PATH_VERSION.match(path)
    if not m:
        return path, ""
    return m.group(1), "/" + m.group(2)


def major_suffix(version: str) -> str:
    """``""`` for major version 1, otherwise ``/vN``."""
    m = major(version)
    if m in ("", "v1"):
        return ""
    return "/" + m


@dataclass(frozen=True)
class ModuleIdentity:
    """Canonical (path, version) of a module archive.

    ``path`` already includes ``suffix``.
    """

    path: str
    suffix: str
    version: str

    @property
    def prefix(self) -> str:
        """Directory every archive member lives under."""
        return f"{self.path}@{self.version}/"

    def __str__(self) -> str:
        return f"{self.path}@{self.version}"


def identity_for(base: str, package: str, version: str) -> ModuleIdentity:
    """Module identity of an npm package version under ``base``."""
    suffix = major_suffix(version)
    path = posixpath.join(base, escape_package(package)) + suffix
    return ModuleIdentity(path=path, suffix=suffix, version=version)
