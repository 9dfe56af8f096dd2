"""Go module conventions: path escaping, identities, manifests and zips."""

from .module import (
    ModuleIdentity,
    escape_package,
    escape_path,
    escape_version,
    identity_for,
    major_suffix,
    split_path_version,
    unescape_package,
    unescape_path,
    unescape_version,
)

__all__ = [
    "ModuleIdentity",
    "escape_package",
    "escape_path",
    "escape_version",
    "identity_for",
    "major_suffix",
    "split_path_version",
    "unescape_package",
    "unescape_path",
    "unescape_version",
]
