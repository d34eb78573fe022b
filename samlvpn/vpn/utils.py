"""Utility functions for SAML VPN sessions."""

import shlex
import subprocess
import sys
from pathlib import Path
from typing import Iterable, List, Optional, TextIO, Tuple, Union
from urllib.parse import urlencode

from .exceptions import ConfigurationError, OpenVPNConfigError, ProcessLaunchError
from .models import Endpoint
from ..logging_utility import logger

WILDCARD_HOSTS = ("", "0.0.0.0", "::")


def parse_openvpn_config(source: Union[str, Iterable[str]]) -> Endpoint:
    """
    Extract the gateway endpoint from OpenVPN config text.

    Only ``remote <host> <port>`` and ``proto <protocol>`` directives are
    read; every other line is ignored. The last occurrence of a directive wins.

    Args:
        source: Config text or an iterable of lines (e.g. an open file)

    Returns:
        Endpoint with host, port and protocol

    Raises:
        OpenVPNConfigError: remote line is malformed
    """
    lines = source.splitlines() if isinstance(source, str) else source
    host, port, protocol = "", 0, "udp"

    for line in lines:
        parts = line.split()
        if len(parts) < 2:
            continue

        if parts[0] == "remote":
            if len(parts[1:]) != 2:
                raise OpenVPNConfigError("remote line does not include host and port")
            try:
                port = int(parts[2])
            except ValueError:
                raise OpenVPNConfigError(f"remote line has non-integer port '{parts[2]}'")
            host = parts[1]
        elif parts[0] == "proto":
            protocol = parts[1]

    return Endpoint(host=host, port=port, protocol=protocol)


def load_endpoint(config_file: Path) -> Endpoint:
    """Read and parse the OpenVPN config file."""
    try:
        # Directives are ASCII, comments may be in any encoding
        with open(config_file, "r", encoding="utf-8", errors="replace") as f:
            endpoint = parse_openvpn_config(f)
    except OSError as e:
        raise ConfigurationError(f"could not read openvpn config file {config_file}: {e}")
    logger.info(f"VPN endpoint: {endpoint.host}:{endpoint.port} ({endpoint.protocol})")
    return endpoint


def _format_host(host: str) -> str:
    return f"[{host}]" if ":" in host else host


def validate_endpoint(endpoint: Endpoint) -> List[str]:
    """Return the problems that make an endpoint unusable in a URL."""
    errors = []
    if not endpoint.host:
        errors.append("openvpn config has no remote host")
    if not 0 < endpoint.port < 65536:
        errors.append(f"invalid remote port {endpoint.port}")
    return errors


def build_authorization_url(endpoint: Endpoint, listener_address: Tuple[str, int]) -> str:
    """
    Build the URL the browser opens to start the SAML flow.

    Args:
        endpoint: VPN gateway endpoint
        listener_address: (host, port) the callback listener is bound to

    Returns:
        str: Authorization URL carrying the callback location
    """
    errors = validate_endpoint(endpoint)
    listener_host, listener_port = listener_address
    if not 0 < listener_port < 65536:
        errors.append(f"invalid listener port {listener_port}")
    if errors:
        raise ConfigurationError(errors)

    if listener_host in WILDCARD_HOSTS:
        listener_host = "127.0.0.1"
    callback = f"http://{_format_host(listener_host)}:{listener_port}/"
    query = urlencode({"protocol": endpoint.protocol, "callback": callback})
    return f"https://{_format_host(endpoint.host)}:{endpoint.port}/?{query}"


def launch_browser(cmd: list[str], run: bool = True, output: Optional[TextIO] = None) -> None:
    """
    Open the authorization URL, or show the command for the operator to run.

    Args:
        cmd: Browser command as list of strings, URL already substituted
        run: Whether to execute the command or print it
        output: Stream the command is printed to in print mode
    """
    if not run:
        output = output or sys.stdout
        output.write(f"Run the following command to authenticate:\n{shlex.join(cmd)}\n")
        output.flush()
        return

    logger.info(f"Opening browser with {cmd[0]}")
    try:
        subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        raise ProcessLaunchError(f"Could not run browser command {cmd[0]}: {e}")
