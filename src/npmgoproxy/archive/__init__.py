"""Repack npm tarballs as module archives."""

from .repacker import ArchiveHandle, ArchiveRepacker, unpack_tarball

__all__ = ["ArchiveHandle", "ArchiveRepacker", "unpack_tarball"]
