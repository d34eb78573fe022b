"""Tests for URL building, browser invocation and command building."""

from __future__ import annotations

import io
from pathlib import Path
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest

from samlvpn.vpn.command_factory import VPNCommandFactory
from samlvpn.vpn.commands import ValidationError, openvpn
from samlvpn.vpn.exceptions import ConfigurationError, ProcessLaunchError
from samlvpn.vpn.models import Endpoint
from samlvpn.vpn.utils import build_authorization_url, launch_browser


class TestBuildAuthorizationURL:
    def test_url_targets_endpoint(self) -> None:
        url = build_authorization_url(Endpoint("vpn.example.com", 443, "udp"), ("127.0.0.1", 35001))
        parsed = urlparse(url)
        assert parsed.scheme == "https"
        assert parsed.hostname == "vpn.example.com"
        assert parsed.port == 443
        query = parse_qs(parsed.query)
        assert query["protocol"] == ["udp"]
        assert query["callback"] == ["http://127.0.0.1:35001/"]

    def test_wildcard_listener_uses_loopback(self) -> None:
        url = build_authorization_url(Endpoint("vpn.example.com", 443, "tcp"), ("0.0.0.0", 35001))
        assert parse_qs(urlparse(url).query)["callback"] == ["http://127.0.0.1:35001/"]

    def test_ipv6_hosts_are_bracketed(self) -> None:
        url = build_authorization_url(Endpoint("2001:db8::1", 443, "udp"), ("::1", 35001))
        parsed = urlparse(url)
        assert parsed.hostname == "2001:db8::1"
        assert parse_qs(parsed.query)["callback"] == ["http://[::1]:35001/"]

    def test_is_deterministic(self) -> None:
        endpoint = Endpoint("vpn.example.com", 443, "udp")
        assert build_authorization_url(endpoint, ("127.0.0.1", 1)) == build_authorization_url(endpoint, ("127.0.0.1", 1))

    def test_malformed_inputs_reported_together(self) -> None:
        with pytest.raises(ConfigurationError) as excinfo:
            build_authorization_url(Endpoint("", 0, "udp"), ("127.0.0.1", 0))
        assert len(excinfo.value.errors) == 3


class TestLaunchBrowser:
    def test_print_mode_writes_command(self) -> None:
        output = io.StringIO()
        with patch("samlvpn.vpn.utils.subprocess.Popen") as popen:
            launch_browser(["xdg-open", "https://vpn.example.com/?a=1&b=2"], run=False, output=output)
        popen.assert_not_called()
        assert "xdg-open 'https://vpn.example.com/?a=1&b=2'" in output.getvalue()

    def test_run_mode_spawns_detached(self) -> None:
        with patch("samlvpn.vpn.utils.subprocess.Popen") as popen:
            launch_browser(["xdg-open", "https://vpn.example.com/"], run=True)
        args, kwargs = popen.call_args
        assert args[0] == ["xdg-open", "https://vpn.example.com/"]
        assert kwargs["start_new_session"] is True

    def test_spawn_failure(self, tmp_path: Path) -> None:
        with pytest.raises(ProcessLaunchError):
            launch_browser([str(tmp_path / "no-such-browser"), "https://vpn.example.com/"], run=True)


class TestCommands:
    def test_start_vpn(self) -> None:
        cmd = VPNCommandFactory.start_vpn(
            binary=Path("/usr/sbin/openvpn"),
            config_path=Path("/etc/openvpn/client.ovpn"),
            credentials_path=Path("/home/me/.cache/samlvpn-credentials"),
        )
        assert cmd == [
            "/usr/sbin/openvpn",
            "--config", "/etc/openvpn/client.ovpn",
            "--auth-user-pass", "/home/me/.cache/samlvpn-credentials",
        ]

    def test_start_vpn_with_sudo(self) -> None:
        cmd = VPNCommandFactory.start_vpn(
            binary=Path("/usr/sbin/openvpn"),
            config_path=Path("client.ovpn"),
            credentials_path=Path("creds"),
            use_sudo=True,
        )
        assert cmd[:2] == ["sudo", "/usr/sbin/openvpn"]

    def test_open_browser_substitutes_marker(self) -> None:
        cmd = VPNCommandFactory.open_browser(["firefox", "--new-window", "%s"], "https://vpn.example.com/")
        assert cmd == ["firefox", "--new-window", "https://vpn.example.com/"]

    def test_open_browser_without_marker(self) -> None:
        with pytest.raises(ValidationError):
            VPNCommandFactory.open_browser(["firefox"], "https://vpn.example.com/")

    def test_unknown_openvpn_option(self) -> None:
        with pytest.raises(ValidationError, match="Invalid option"):
            openvpn("/usr/sbin/openvpn").with_options(daemon=None)
