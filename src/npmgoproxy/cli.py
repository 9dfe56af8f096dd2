"""npmgoproxy command line entry point."""

from __future__ import annotations

import logging
import shutil
import sys
from typing import Any, List, Optional

from .args import parse_args
from .cli_proxy import load_config_file, run_proxy_server, setup_logging
from .constants import ExitCodes
from .exceptions import NotFoundError, ProxyError, UpstreamError
from .proxy.request_parser import RequestContext
from .proxy.server import ProxyConfig

logger = logging.getLogger(__name__)


def _exit_code(exc: ProxyError) -> int:
    if isinstance(exc, NotFoundError):
        return ExitCodes.NOT_FOUND.value
    if isinstance(exc, UpstreamError):
        return ExitCodes.CONNECTION_ERROR.value
    return ExitCodes.FILE_ERROR.value


def _run_versions(args: Any, config: ProxyConfig) -> None:
    output = config.build_proxy().list_versions(RequestContext(package=args.package))
    if output:
        print(output)


def _run_mod(args: Any, config: ProxyConfig) -> None:
    ctx = RequestContext(package=args.package, version=args.version)
    sys.stdout.write(config.build_proxy().manifest(ctx))


def _run_zip(args: Any, config: ProxyConfig) -> None:
    ctx = RequestContext(package=args.package, version=args.version)
    with config.build_proxy().archive(ctx) as handle:
        output = args.OUTPUT or f"{args.package.replace('/', '_')}-{handle.identity.version}.zip"
        shutil.copyfile(handle.path, output)
    logger.info("Wrote %s (%s)", output, handle.identity)


COMMANDS = {
    "versions": _run_versions,
    "mod": _run_mod,
    "zip": _run_zip,
}


def main(argv: Optional[List[str]] = None) -> None:
    """Parse arguments and run the selected command."""
    args = parse_args(argv)
    setup_logging(args)

    if args.command == "serve":
        run_proxy_server(args)
        return

    config = ProxyConfig.from_args(args, load_config_file(getattr(args, "CONFIG", None)))
    try:
        COMMANDS[args.command](args, config)
    except ProxyError as exc:
        logger.error("%s failed: %s", args.command, exc)
        sys.exit(_exit_code(exc))
    except OSError as exc:
        logger.error("%s failed: %s", args.command, exc)
        sys.exit(ExitCodes.FILE_ERROR.value)


if __name__ == "__main__":
    main()
