"""Command line entry point for samlvpn."""

import argparse
import logging
import os
import signal
import sys
from typing import List, Optional

from .logging_utility import Logger, logger
from .vpn.config import load_settings
from .vpn.exceptions import ConfigurationError, VPNError
from .vpn.manager import SamlVPNManager
from .vpn.utils import build_authorization_url

DEFAULT_CONFIG = os.path.join("~", ".config", "samlvpn", "samlvpn.conf")

EXIT_ERROR = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="samlvpn",
        description="Log in to an OpenVPN gateway through SAML and run the VPN client.",
    )
    parser.add_argument("-c", "--config", default=DEFAULT_CONFIG,
                        help=f"path to the configuration file (default: {DEFAULT_CONFIG})")
    parser.add_argument("--print-command", action="store_true",
                        help="print the browser command instead of running it")
    parser.add_argument("--check", action="store_true",
                        help="validate the configuration, show the endpoint and exit")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="log to stderr as well as the log file")
    return parser.parse_args(argv)


def _interrupt(signum, frame):
    raise KeyboardInterrupt


def _exit_code(returncode: Optional[int]) -> int:
    if returncode is None:
        return EXIT_ERROR
    if returncode < 0:
        # Killed by a signal
        return 128 - returncode
    return returncode


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    if args.verbose:
        Logger().enable_console(logging.DEBUG)

    try:
        settings = load_settings(os.path.expanduser(args.config))
        if args.print_command:
            settings = settings.model_copy(update={"run_command": False})

        manager = SamlVPNManager(settings)
        if args.check:
            endpoint = manager.prepare()
            print(f"endpoint: {endpoint.host}:{endpoint.port} ({endpoint.protocol})")
            host, port = settings.server_address
            if port == 0:
                print(f"authorization url: set when the listener binds {host} to an ephemeral port")
            else:
                print(f"authorization url: {build_authorization_url(endpoint, settings.server_address)}")
            return 0

        previous_handler = signal.signal(signal.SIGTERM, _interrupt)
        try:
            session = manager.run()
        finally:
            signal.signal(signal.SIGTERM, previous_handler)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        print("Invalid configuration:", file=sys.stderr)
        for error in e.errors:
            print(f"  - {error}", file=sys.stderr)
        return EXIT_CONFIG
    except VPNError as e:
        logger.error(f"VPN session failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.info("Interrupted, VPN session stopped")
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED

    return _exit_code(session.returncode)
