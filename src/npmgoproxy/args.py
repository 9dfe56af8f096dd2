"""Argument parsing for npmgoproxy."""

import argparse

from . import __version__


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config",
                        dest="CONFIG",
                        help="YAML or JSON configuration file",
                        action="store", type=str)
    parser.add_argument("--registry",
                        dest="REGISTRY",
                        help="npm registry base URL (default: https://registry.npmjs.org)",
                        action="store", type=str)
    parser.add_argument("--module-base",
                        dest="MODULE_BASE",
                        help="Base module path modules are served under (default: gohugo.io/npmjs)",
                        action="store", type=str)
    parser.add_argument("--go-version",
                        dest="GO_VERSION",
                        help="go directive written into generated go.mod files",
                        action="store", type=str)
    parser.add_argument("--timeout",
                        dest="TIMEOUT",
                        help="Timeout in seconds for each upstream request",
                        action="store", type=int)
    parser.add_argument("--retries",
                        dest="RETRIES",
                        help="Extra attempts for registry requests on timeouts or connection errors",
                        action="store", type=int)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Also write log records to this file",
                        action="store", type=str)


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level parser with its subcommands."""
    parser = argparse.ArgumentParser(
        prog="npmgoproxy",
        description="Serve npm packages through the Go module proxy protocol",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    serve = sub.add_parser("serve", help="Run the module proxy server")
    _add_common(serve)
    serve.add_argument("--host",
                       dest="PROXY_HOST",
                       help="Address to bind (default: 127.0.0.1)",
                       action="store", type=str)
    serve.add_argument("--port",
                       dest="PROXY_PORT",
                       help="Port to bind (default: 8072)",
                       action="store", type=int)
    serve.add_argument("--allow-external",
                       dest="ALLOW_EXTERNAL",
                       help="Allow binding to non-loopback addresses",
                       action="store_true")

    versions = sub.add_parser("versions", help="Print the known versions of a package")
    _add_common(versions)
    versions.add_argument("package", help="npm package name")

    mod = sub.add_parser("mod", help="Print the generated go.mod for a package version")
    _add_common(mod)
    mod.add_argument("package", help="npm package name")
    mod.add_argument("version", help="Package version, with or without the v prefix")

    zip_cmd = sub.add_parser("zip", help="Build the module zip for a package version")
    _add_common(zip_cmd)
    zip_cmd.add_argument("package", help="npm package name")
    zip_cmd.add_argument("version", help="Package version, with or without the v prefix")
    zip_cmd.add_argument("-o", "--output",
                         dest="OUTPUT",
                         help="Where to write the zip (default: <package>-<version>.zip)",
                         action="store", type=str)

    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
