"""CLI helpers for the proxy server: bind checks, config file and logging."""

from __future__ import annotations

import ipaddress
import logging
import os
import sys
from typing import Any, Dict, Optional

import yaml

from .common.logging_utils import configure_logging
from .constants import Constants, ExitCodes

logger = logging.getLogger(__name__)


def _is_local_bind_host(host: str) -> bool:
    """Return True if host is a loopback/local bind target."""
    if not host:
        return False
    host_lower = host.strip().lower()
    if host_lower in ("localhost",):
        return True
    try:
        return ipaddress.ip_address(host_lower).is_loopback
    except ValueError:
        # Non-IP hostnames are treated as non-local unless explicitly allowed.
        return False


def _enforce_local_binding(host: str, allow_external: bool) -> None:
    """Enforce local-only binding unless explicitly allowed."""
    if _is_local_bind_host(host):
        return
    if not allow_external:
        sys.stderr.write(
            "ERROR: Non-local bindings require --allow-external.\n"
        )
        sys.exit(ExitCodes.CONNECTION_ERROR.value)
    logger.warning(
        "Binding proxy to non-local address (%s). Ensure network controls are in place.",
        host,
    )


def load_config_file(config_path: Optional[str]) -> Dict[str, Any]:
    """Load proxy settings from a YAML (or JSON) file.

    Settings may sit at the top level or under a ``proxy:`` mapping.

    Args:
        config_path: Path to the config file.

    Returns:
        Settings dict; empty when no file is given or it cannot be used.
    """
    if not config_path:
        return {}

    if not os.path.isfile(config_path):
        logger.warning("Config file not found: %s", config_path)
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.error("Failed to load config: %s", e)
        return {}

    if not isinstance(data, dict):
        return {}
    section = data.get("proxy", data)
    return section if isinstance(section, dict) else {}


def setup_logging(args: Any) -> None:
    """Configure logging based on CLI arguments.

    Args:
        args: Parsed CLI arguments.
    """
    configure_logging(getattr(args, "LOG_LEVEL", None))

    log_file = getattr(args, "LOG_FILE", None)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s"
        ))
        logging.getLogger().addHandler(file_handler)
        logger.info("Logging to file: %s", log_file)


def run_proxy_server(args: Any) -> None:
    """Entry point for the ``serve`` command.

    Args:
        args: Parsed CLI arguments namespace.
    """
    from .proxy.server import ProxyConfig, run_proxy_server_sync

    config = ProxyConfig.from_args(args, load_config_file(getattr(args, "CONFIG", None)))
    _enforce_local_binding(config.host, config.allow_external)

    print(
        f"\n"
        f"  npmgoproxy\n"
        f"  ==========\n"
        f"  Listening: http://{config.host}:{config.port}\n"
        f"  Registry:  {config.upstream_npm}\n"
        f"\n"
        f"  Configure Go:\n"
        f"    export GOPROXY=http://{config.host}:{config.port},{Constants.GOPROXY_FALLBACK}\n"
        f"    export GONOSUMDB={config.module_path_base}\n"
        f"\n"
        f"  Press Ctrl+C to stop\n"
    )

    run_proxy_server_sync(config)
