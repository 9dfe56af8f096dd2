"""Turn a downloaded npm tarball into a module zip.

All work happens inside a working directory owned by one request. The
returned ``ArchiveHandle`` owns that directory and removes it on
``cleanup()``; on failure the directory is removed before the error
propagates, so a repack either yields a complete archive or nothing.
"""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
import tempfile
import zlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from ..constants import Constants
from ..exceptions import ArchiveError
from ..gomod.module import ModuleIdentity, identity_for
from ..gomod.modzip import create_from_dir
from ..registry.npm.models import PackageVersion

logger = logging.getLogger(__name__)


@dataclass
class ArchiveHandle:
    """A finished module zip on disk plus the directory that holds it."""

    path: str
    identity: ModuleIdentity
    size: int
    modified: datetime
    workdir: str

    def open(self):
        return open(self.path, "rb")

    def cleanup(self) -> None:
        shutil.rmtree(self.workdir, ignore_errors=True)

    def __enter__(self) -> "ArchiveHandle":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cleanup()


def _inside(root: str, target: str) -> bool:
    return target == root or target.startswith(root + os.sep)


def unpack_tarball(tarball_path: str, destination: str) -> int:
    """Unpack a (usually gzipped) tarball into ``destination``.

    Directories and regular files are written; regular files are streamed
    straight from the archive. Symlinks, hard links, devices and FIFOs are
    skipped with a warning. An entry that would land outside ``destination``
    aborts the unpack.

    Returns:
        Number of regular files written.

    Raises:
        ArchiveError: Corrupt archive, unsafe entry or I/O failure.
    """
    root = os.path.realpath(destination)
    written = 0
    try:
        with tarfile.open(tarball_path, mode="r|*") as tar:
            for member in tar:
                name = member.name
                if os.path.isabs(name) or name.startswith(("/", "\\")):
                    raise ArchiveError(f"absolute path in tarball: {name!r}")
                target = os.path.normpath(os.path.join(root, name))
                if not _inside(root, target):
                    raise ArchiveError(f"path escapes staging directory: {name!r}")

                if member.isdir():
                    os.makedirs(target, 0o755, exist_ok=True)
                elif member.isreg():
                    os.makedirs(os.path.dirname(target), 0o755, exist_ok=True)
                    source = tar.extractfile(member)
                    if source is None:
                        continue
                    with open(target, "wb") as out:
                        shutil.copyfileobj(source, out)
                    written += 1
                else:
                    logger.warning("Skipping non-regular tar entry %s (type %r)", name, member.type)
    except ArchiveError:
        raise
    except (tarfile.TarError, EOFError, zlib.error) as exc:
        raise ArchiveError(f"failed to untar: {exc}") from exc
    except OSError as exc:
        raise ArchiveError(f"failed to untar: {exc}") from exc
    return written


class ArchiveRepacker:
    """Unpacks a tarball and hands the tree to the module zip builder."""

    def __init__(self, module_path_base: str = Constants.MODULE_PATH_BASE):
        self.module_path_base = module_path_base

    def identity(self, version: PackageVersion) -> ModuleIdentity:
        return identity_for(self.module_path_base, version.name, version.version)

    def repack(
        self,
        tarball_path: str,
        version: PackageVersion,
        workdir: Optional[str] = None,
    ) -> ArchiveHandle:
        """Build the module zip for ``version`` from ``tarball_path``.

        Args:
            tarball_path: Verified tarball on disk.
            version: The version the tarball belongs to.
            workdir: Request-owned directory to work in. A fresh temporary
                directory is created when omitted. Either way the handle takes
                ownership and removes it on cleanup.

        Raises:
            ArchiveError: Unpacking or building failed. ``workdir`` is removed.
        """
        if workdir is None:
            workdir = tempfile.mkdtemp(prefix=Constants.STAGING_PREFIX)
        try:
            staging = tempfile.mkdtemp(prefix="staging-", dir=workdir)
            unpack_tarball(tarball_path, staging)

            identity = self.identity(version)
            zip_path = os.path.join(workdir, "module.zip")
            try:
                with open(zip_path, "wb") as out:
                    create_from_dir(out, identity, staging)
            except OSError as exc:
                raise ArchiveError(f"failed to write module zip: {exc}") from exc
            shutil.rmtree(staging, ignore_errors=True)

            logger.info("Repacked %s@%s as %s", version.name, version.version, identity)
            return ArchiveHandle(
                path=zip_path,
                identity=identity,
                size=os.path.getsize(zip_path),
                modified=version.time or datetime.now(timezone.utc),
                workdir=workdir,
            )
        except BaseException:
            shutil.rmtree(workdir, ignore_errors=True)
            raise
