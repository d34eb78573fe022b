"""
tests/conftest.py -- Shared fixtures for samlvpn tests.

Provides:
  - fake_openvpn: writes /bin/sh scripts that stand in for the OpenVPN binary
  - openvpn_config: a minimal OpenVPN client profile
  - settings: Settings pointing at tmp_path, ephemeral listener port

SAMLVPN_LOG_DIR must be set before any samlvpn import so the file handler of
the logging singleton lands in a temporary directory.
"""

from __future__ import annotations

import os
import stat
import tempfile

os.environ.setdefault("SAMLVPN_LOG_DIR", tempfile.mkdtemp(prefix="samlvpn-logs-"))

import pytest

from samlvpn.vpn.config import Settings


@pytest.fixture
def fake_openvpn(tmp_path):
    """Return a factory writing an executable shell script with the given body.

    The script receives the same arguments as OpenVPN:
    --config <file> --auth-user-pass <file>
    """

    def _make(body: str, name: str = "openvpn"):
        path = tmp_path / name
        path.write_text("#!/bin/sh\n" + body + "\n")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make


@pytest.fixture
def openvpn_config(tmp_path):
    path = tmp_path / "client.ovpn"
    path.write_text("client\ndev tun\nproto udp\nremote vpn.example.com 443\nauth-user-pass\n")
    return path


@pytest.fixture
def settings(tmp_path, fake_openvpn, openvpn_config) -> Settings:
    return Settings(
        openvpn_binary=fake_openvpn("exit 0"),
        openvpn_config_file=openvpn_config,
        server_address="127.0.0.1:0",
        server_timeout=5,
        browser_command=["xdg-open", "%s"],
        run_command=False,
        temp_credentials_file_path=tmp_path / "cache" / "samlvpn-credentials",
    )
