"""Factory for creating VPN-related commands."""

from pathlib import Path
from typing import List
from .commands import URL_MARKER, browser, openvpn


class VPNCommandFactory:
    """Factory for creating VPN session commands."""

    @staticmethod
    def start_vpn(
            binary: Path,
            config_path: Path,
            credentials_path: Path,
            use_sudo: bool = False,
    ) -> list[str]:
        """Create OpenVPN start command."""
        cmd = openvpn(str(binary)).with_options(
            config=str(config_path),
            auth_user_pass=str(credentials_path),
        )

        if use_sudo:
            cmd = cmd.as_sudo()

        return cmd.build()

    @staticmethod
    def open_browser(template: List[str], url: str) -> list[str]:
        """Create browser command with the authorization URL filled in."""
        return browser(template).substitute(URL_MARKER, url).build()
