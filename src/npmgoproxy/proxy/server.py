"""Module proxy server using aiohttp."""

from __future__ import annotations

import asyncio
import functools
import logging
import signal
from dataclasses import dataclass, fields
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from aiohttp import web

from ..archive.repacker import ArchiveHandle, ArchiveRepacker
from ..constants import Constants
from ..exceptions import (
    ArchiveError,
    DecodeError,
    IntegrityError,
    ModuleZipError,
    NotFoundError,
    UpstreamError,
)
from ..registry.npm.client import RegistryClient
from ..registry.npm.tarball import TarballFetcher
from .operations import ModuleProxy
from .request_parser import InvalidRequestPath, Operation, RequestContext, RequestParser

logger = logging.getLogger(__name__)


@dataclass
class ProxyConfig:
    """Configuration for the proxy server."""

    host: str = Constants.DEFAULT_HOST
    port: int = Constants.DEFAULT_PORT
    upstream_npm: str = Constants.REGISTRY_URL_NPM
    module_path_base: str = Constants.MODULE_PATH_BASE
    go_version: str = Constants.GO_VERSION
    timeout: int = Constants.REQUEST_TIMEOUT
    retries: int = Constants.HTTP_RETRY_MAX
    allow_external: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ProxyConfig":
        """Create config from a configuration file mapping; unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        return cls(**{k.replace("-", "_"): v for k, v in data.items() if k.replace("-", "_") in known})

    @classmethod
    def from_args(cls, args: Any, file_config: Optional[Mapping[str, Any]] = None) -> "ProxyConfig":
        """Create config from CLI arguments layered over a config file.

        Args:
            args: Parsed CLI arguments namespace.
            file_config: Values loaded from ``--config``, if any.

        Returns:
            ProxyConfig instance.
        """
        config = cls.from_mapping(file_config or {})

        overrides = {
            "host": getattr(args, "PROXY_HOST", None),
            "port": getattr(args, "PROXY_PORT", None),
            "upstream_npm": getattr(args, "REGISTRY", None),
            "module_path_base": getattr(args, "MODULE_BASE", None),
            "go_version": getattr(args, "GO_VERSION", None),
            "timeout": getattr(args, "TIMEOUT", None),
            "retries": getattr(args, "RETRIES", None),
        }
        for key, value in overrides.items():
            if value is not None:
                setattr(config, key, value)
        if getattr(args, "ALLOW_EXTERNAL", False):
            config.allow_external = True
        return config

    def build_proxy(self) -> ModuleProxy:
        """Wire the registry client, fetcher and repacker for this config."""
        registry = RegistryClient(self.upstream_npm, timeout=self.timeout, retries=self.retries)
        return ModuleProxy(
            registry=registry,
            fetcher=TarballFetcher(timeout=self.timeout),
            repacker=ArchiveRepacker(self.module_path_base),
            go_version=self.go_version,
        )


Handler = Callable[[web.Request, RequestContext], Awaitable[web.StreamResponse]]


def _discard_archive(future: "asyncio.Future[ArchiveHandle]") -> None:
    """Done-callback removing an archive nobody is waiting for any more."""
    if future.cancelled() or future.exception() is not None:
        return
    future.result().cleanup()


class ModuleProxyServer:
    """HTTP server speaking the module proxy protocol on top of the npm registry.

    Each request is handled by its own task; blocking registry and disk work
    runs on the loop's default executor. No state is shared between requests.
    """

    def __init__(self, config: ProxyConfig, proxy: Optional[ModuleProxy] = None):
        """Initialize the proxy server.

        Args:
            config: Server configuration.
            proxy: Pre-built operations object; built from ``config`` when omitted.
        """
        self._config = config
        self._proxy = proxy or config.build_proxy()
        self._parser = RequestParser(config.module_path_base)
        self._app: Optional[web.Application] = None
        self._runner: Optional[web.AppRunner] = None
        self._handlers: Dict[Operation, Handler] = {
            Operation.LIST: self._list,
            Operation.INFO: self._info,
            Operation.MOD: self._mod,
            Operation.ZIP: self._zip,
            Operation.LATEST: self._latest,
        }

    def _create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application()
        app.router.add_get(Constants.HEALTH_PATH, self._health_check)
        app.router.add_route("*", "/{path:.*}", self._handle_request)
        app.on_startup.append(self._on_startup)
        app.on_cleanup.append(self._on_cleanup)
        return app

    async def _health_check(self, request: web.Request) -> web.Response:
        """Health check endpoint."""
        return web.json_response({
            "status": "ok",
            "upstream": self._config.upstream_npm,
            "module_path_base": self._config.module_path_base,
        })

    async def _on_startup(self, app: web.Application) -> None:
        logger.info("Module proxy starting on %s:%s", self._config.host, self._config.port)

    async def _on_cleanup(self, app: web.Application) -> None:
        logger.info("Module proxy stopped")

    async def _handle_request(self, request: web.Request) -> web.StreamResponse:
        """Reject DELETE, then dispatch through the route table."""
        if request.method == "DELETE":
            return web.Response(status=405, text="method not allowed")

        try:
            parsed = self._parser.parse(request.path)
        except InvalidRequestPath as exc:
            return web.Response(status=404, text=f"invalid module path: {exc}")
        if parsed is None:
            return web.Response(status=404, text="not found")

        handler = self._handlers[parsed.operation]
        return await handler(request, parsed.context)

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    async def _list(self, request: web.Request, ctx: RequestContext) -> web.StreamResponse:
        try:
            body = await self._run(self._proxy.list_versions, ctx)
        except Exception as exc:  # mapped to a status by _fail
            return self._fail("failed to fetch package", exc)
        return web.Response(text=body, content_type="text/plain")

    async def _info(self, request: web.Request, ctx: RequestContext) -> web.StreamResponse:
        try:
            info = await self._run(self._proxy.info, ctx)
        except Exception as exc:
            return self._fail("failed to fetch package version", exc)
        return web.json_response(info)

    async def _latest(self, request: web.Request, ctx: RequestContext) -> web.StreamResponse:
        try:
            info = await self._run(self._proxy.latest, ctx)
        except Exception as exc:
            return self._fail("failed to fetch latest version", exc)
        return web.json_response(info)

    async def _mod(self, request: web.Request, ctx: RequestContext) -> web.StreamResponse:
        try:
            body = await self._run(self._proxy.manifest, ctx)
        except Exception as exc:
            return self._fail("failed to create go.mod", exc)
        return web.Response(text=body, content_type="text/plain")

    async def _zip(self, request: web.Request, ctx: RequestContext) -> web.StreamResponse:
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, self._proxy.archive, ctx)
        try:
            handle = await asyncio.shield(future)
        except asyncio.CancelledError:
            # The build keeps running; whoever finishes it must not leak its directory.
            future.add_done_callback(_discard_archive)
            raise
        except Exception as exc:
            return self._fail("failed to create module zip", exc)

        try:
            return await self._send_archive(request, handle)
        finally:
            handle.cleanup()

    async def _send_archive(self, request: web.Request, handle: ArchiveHandle) -> web.StreamResponse:
        """Stream the archive with length and modification-time framing."""
        loop = asyncio.get_running_loop()
        response = web.StreamResponse(status=200)
        response.content_type = "application/zip"
        response.content_length = handle.size
        response.last_modified = handle.modified
        try:
            await response.prepare(request)
            with handle.open() as f:
                while True:
                    chunk = await loop.run_in_executor(None, f.read, Constants.DOWNLOAD_CHUNK_SIZE)
                    if not chunk:
                        break
                    await response.write(chunk)
            await response.write_eof()
        except ConnectionResetError:
            logger.debug("Client went away while sending %s", handle.identity)
        return response

    def _fail(self, step: str, exc: Exception) -> web.Response:
        """Map an operation failure to a single-line plain-text response."""
        if isinstance(exc, NotFoundError):
            status, detail = 404, str(exc)
        elif isinstance(exc, (UpstreamError, DecodeError, IntegrityError)):
            status, detail = 502, str(exc)
        elif isinstance(exc, ModuleZipError):
            status, detail = 500, str(exc)
        elif isinstance(exc, ArchiveError):
            status, detail = 500, "archive build failed"
        else:
            status, detail = 500, "internal error"

        if status == 404:
            logger.info("%s: %s", step, exc)
        elif status == 500 and not isinstance(exc, ArchiveError):
            logger.error("%s: %s", step, exc, exc_info=exc)
        else:
            logger.error("%s: %s", step, exc)
        return web.Response(status=status, text=f"{step}: {detail}".replace("\n", " "))

    async def start(self) -> None:
        """Start the proxy server."""
        self._app = self._create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        site = web.TCPSite(
            self._runner,
            self._config.host,
            self._config.port,
        )
        await site.start()

        logger.info(
            "npmgoproxy listening on http://%s:%s",
            self._config.host, self._config.port,
        )
        logger.info("Upstream npm: %s", self._config.upstream_npm)
        logger.info("Module path base: %s", self._config.module_path_base)

    async def stop(self) -> None:
        """Stop the proxy server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._app = None


def run_proxy_server_sync(config: ProxyConfig) -> None:
    """Run the proxy server synchronously.

    Installs signal handlers for SIGTERM and SIGINT for clean shutdown.

    Args:
        config: Server configuration.
    """
    server = ModuleProxyServer(config)
    loop = asyncio.new_event_loop()

    async def run():
        await server.start()
        stop_event = asyncio.Event()
        running_loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            running_loop.add_signal_handler(sig, stop_event.set)
        await stop_event.wait()
        logger.info("Shutdown signal received, stopping...")
        await server.stop()

    try:
        loop.run_until_complete(run())
    except KeyboardInterrupt:
        # Fallback for platforms where signal handlers don't work (Windows)
        loop.run_until_complete(server.stop())
    finally:
        loop.close()
        logger.info("Proxy server shutdown complete")
