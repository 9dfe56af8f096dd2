"""Error taxonomy shared by the registry, archive and proxy layers.

Each failure kind is its own class so the HTTP layer can map it to a
status code without inspecting messages.
"""


class ProxyError(Exception):
    """Base class for all npmgoproxy failures."""


class NotFoundError(ProxyError):
    """The requested package or version does not exist upstream."""


class PackageNotFoundError(NotFoundError):
    """The registry has no package with the given name."""

    def __init__(self, package: str):
        super().__init__(f"package {package!r} not found")
        self.package = package


class VersionNotFoundError(NotFoundError):
    """The package exists but does not publish the requested version."""

    def __init__(self, package: str, version: str):
        super().__init__(f"version {version!r} not found for package {package!r}")
        self.package = package
        self.version = version


class UpstreamError(ProxyError):
    """Registry unreachable, timed out or answered with a non-2xx status.

    Transient; the caller may retry.
    """

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status


class DecodeError(ProxyError):
    """The registry answered with a body that is not valid package metadata."""


class IntegrityError(ProxyError):
    """A downloaded tarball does not match its declared checksum."""

    def __init__(self, algorithm: str, expected: str, actual: str):
        super().__init__(f"{algorithm} mismatch: expected {expected}, got {actual}")
        self.algorithm = algorithm
        self.expected = expected
        self.actual = actual


class ArchiveError(ProxyError):
    """Unpacking the tarball or building the module archive failed."""


class ModuleZipError(ArchiveError):
    """The module zip builder rejected the staged tree."""
