"""Module proxy server package.

Serves the module proxy protocol (``@v/list``, ``.info``, ``.mod``, ``.zip``
and ``@latest``) for npm packages, translating each request into registry
reads and re-encoding the results.
"""

from .request_parser import Operation, ParsedRequest, RequestContext, RequestParser
from .operations import ModuleProxy
from .server import ModuleProxyServer, ProxyConfig

__all__ = [
    "Operation",
    "ParsedRequest",
    "RequestContext",
    "RequestParser",
    "ModuleProxy",
    "ModuleProxyServer",
    "ProxyConfig",
]
