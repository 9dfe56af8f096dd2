"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    NOT_FOUND = 3


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REGISTRY_URL_NPM = "https://registry.npmjs.org"
    # Abbreviated "corgi" document; carries no per-version publish times.
    NPM_INSTALL_ACCEPT = "application/vnd.npm.install-v1+json"
    NPM_FULL_ACCEPT = "application/json"
    USER_AGENT = "npmgoproxy/1.0"

    MODULE_PATH_BASE = "gohugo.io/npmjs"
    GO_VERSION = "1.17"
    # npm's scope marker is not a valid module path character.
    SCOPE_MARKER = "@"
    SCOPE_ESCAPE = "___"

    DEFAULT_HOST = "127.0.0.1"
    DEFAULT_PORT = 8072
    REQUEST_TIMEOUT = 10  # Timeout in seconds for all outbound HTTP requests
    HTTP_RETRY_MAX = 0
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    DOWNLOAD_CHUNK_SIZE = 64 * 1024

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    ENV_LOG_LEVEL = "NPMGOPROXY_LOG_LEVEL"
    HEALTH_PATH = "/_npmgoproxy/health"
    STAGING_PREFIX = "npmgoproxy-"
    GOPROXY_FALLBACK = "https://proxy.golang.org,direct"
