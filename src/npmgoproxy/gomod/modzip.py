"""Module zip builder.

Produces the archive a Go module proxy serves for ``.zip`` requests: every
member lives under ``{path}@{version}/``. Output is deterministic for a given
tree: members are sorted, timestamps and permissions are fixed.

Files are classified the way the Go toolchain does:

* omitted: VCS directories, nested modules (directories with their own
  ``go.mod``), vendored sub-packages and anything that is not a regular file;
* invalid: paths the toolchain refuses to extract and case-insensitive
  duplicates. Any invalid file fails the build.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import zipfile
from dataclasses import dataclass, field
from typing import BinaryIO, List, Tuple

from ..exceptions import ModuleZipError
from ..versioning.semver import is_valid
from .module import ModuleIdentity

logger = logging.getLogger(__name__)

MAX_ZIP_FILE = 500 << 20
MAX_GO_MOD = 16 << 20
MAX_LICENSE = 16 << 20

ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)
FILE_MODE = 0o644

_VCS_DIRS = {".bzr", ".git", ".hg", ".svn"}
_ALLOWED_PUNCT = set("!#$%&()+,-.=@[]^_{}~ ")
_RESERVED_NAMES = {"CON", "PRN", "AUX", "NUL"} | {f"COM{i}" for i in range(1, 10)} | {
    f"LPT{i}" for i in range(1, 10)
}


@dataclass
class CheckedFiles:
    """Result of classifying a directory tree."""

    valid: List[Tuple[str, str]] = field(default_factory=list)
    omitted: List[Tuple[str, str]] = field(default_factory=list)
    invalid: List[Tuple[str, str]] = field(default_factory=list)
    size_error: str = ""

    def error(self) -> str:
        if self.size_error:
            return self.size_error
        if not self.invalid:
            return ""
        return "; ".join(f"{name}: {reason}" for name, reason in self.invalid)


def _check_element(elem: str) -> str:
    if elem == "":
        return "empty path element"
    if elem in (".", ".."):
        return f"invalid path element {elem!r}"
    if elem.endswith("."):
        return "trailing dot in path element"
    for c in elem:
        if c.isascii():
            if not (c.isalnum() or c in _ALLOWED_PUNCT):
                return f"invalid char {c!r}"
        elif not c.isalpha():
            return f"invalid char {c!r}"
    short = elem.split(".", 1)[0]
    if short.upper() in _RESERVED_NAMES:
        return f"{short} is a disallowed path element"
    return ""


def check_file_path(name: str) -> str:
    """Return why ``name`` is not a valid module file path, or "" if it is."""
    if not name:
        return "empty string"
    if name.startswith("/"):
        return "leading slash"
    for elem in name.split("/"):
        reason = _check_element(elem)
        if reason:
            return reason
    return ""


def is_vendored_package(name: str) -> bool:
    """Files in sub-packages of a vendor directory are not part of the module."""
    if name.startswith("vendor/"):
        rest = name[len("vendor/"):]
    elif "/vendor/" in name:
        rest = name[name.index("/vendor/") + len("/vendor/"):]
    else:
        return False
    return "/" in rest


def check_dir(directory: str) -> CheckedFiles:
    """Classify every file under ``directory`` without writing anything."""
    checked = CheckedFiles()
    seen_folded = {}
    total = 0

    for root, dirnames, filenames in os.walk(directory):
        rel_root = os.path.relpath(root, directory)
        rel_root = "" if rel_root == "." else rel_root.replace(os.sep, "/")
        kept_dirs = []
        for d in sorted(dirnames):
            rel = f"{rel_root}/{d}" if rel_root else d
            full = os.path.join(root, d)
            if d in _VCS_DIRS:
                checked.omitted.append((rel + "/", "directory is a version control repository"))
            elif os.path.islink(full):
                checked.omitted.append((rel, "not a regular file"))
            elif os.path.isfile(os.path.join(full, "go.mod")):
                checked.omitted.append((rel + "/", "file is in another module"))
            else:
                kept_dirs.append(d)
        dirnames[:] = kept_dirs

        for f in sorted(filenames):
            rel = f"{rel_root}/{f}" if rel_root else f
            full = os.path.join(root, f)
            st = os.lstat(full)
            if not stat.S_ISREG(st.st_mode):
                checked.omitted.append((rel, "not a regular file"))
                continue
            if is_vendored_package(rel):
                checked.omitted.append((rel, "file is in vendor directory"))
                continue
            reason = check_file_path(rel)
            if reason:
                checked.invalid.append((rel, reason))
                continue
            folded = rel.lower()
            if folded in seen_folded:
                checked.invalid.append((rel, f"case-insensitive file name collision with {seen_folded[folded]!r}"))
                continue
            seen_folded[folded] = rel
            if rel == "go.mod" and st.st_size > MAX_GO_MOD:
                checked.invalid.append((rel, f"go.mod file too large (max size is {MAX_GO_MOD} bytes)"))
                continue
            if rel == "LICENSE" and st.st_size > MAX_LICENSE:
                checked.invalid.append((rel, f"LICENSE file too large (max size is {MAX_LICENSE} bytes)"))
                continue
            total += st.st_size
            checked.valid.append((rel, full))

    if total > MAX_ZIP_FILE:
        checked.size_error = f"module source tree too large (max size is {MAX_ZIP_FILE} bytes)"
    checked.valid.sort()
    return checked


def create_from_dir(out: BinaryIO, identity: ModuleIdentity, directory: str) -> CheckedFiles:
    """Write the module zip for ``identity`` built from ``directory`` to ``out``.

    Raises:
        ModuleZipError: The identity is malformed or the tree contains
            invalid files or exceeds the size limits.
    """
    if not identity.path or not is_valid(identity.version):
        raise ModuleZipError(f"malformed module identity {identity}")

    checked = check_dir(directory)
    err = checked.error()
    if err:
        raise ModuleZipError(f"{identity}: {err}")
    for name, reason in checked.omitted:
        logger.debug("Omitting %s from %s: %s", name, identity, reason)

    with zipfile.ZipFile(out, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, full in checked.valid:
            info = zipfile.ZipInfo(identity.prefix + name, date_time=ZIP_EPOCH)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.create_system = 3
            info.external_attr = (stat.S_IFREG | FILE_MODE) << 16
            with open(full, "rb") as src, zf.open(info, "w") as dst:
                shutil.copyfileobj(src, dst)
    return checked
