"""npm registry client, data model and tarball fetcher."""

from .models import Dependency, DistributionInfo, Package, PackageVersion
from .client import RegistryClient
from .tarball import TarballFetcher

__all__ = [
    "Dependency",
    "DistributionInfo",
    "Package",
    "PackageVersion",
    "RegistryClient",
    "TarballFetcher",
]
