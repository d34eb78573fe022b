"""Settings for SAML VPN sessions, read from an INI file."""

import configparser
import os
import shlex
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator

from .commands import URL_MARKER
from .exceptions import ConfigurationError

SECTION = "samlvpn"
DEFAULT_SERVER_ADDRESS = "0.0.0.0:35001"
DEFAULT_SERVER_TIMEOUT = 120.0
DEFAULT_CREDENTIALS_PERMISSIONS = 0o400


def default_credentials_path() -> Path:
    """Per-user cache location for the credentials file, else under $HOME."""
    cache_home = os.environ.get("XDG_CACHE_HOME")
    if not cache_home:
        home = Path.home()
        if (home / ".cache").is_dir():
            cache_home = str(home / ".cache")
    if cache_home:
        return Path(cache_home) / "samlvpn-credentials"
    return Path.home() / ".samlvpn-credentials"


def parse_address(value: str) -> Tuple[str, int]:
    """Split ``host:port`` into its parts. IPv6 hosts may be bracketed."""
    host, sep, port = value.rpartition(":")
    if not sep:
        raise ValueError(f"address '{value}' must be host:port")
    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"address '{value}' has non-integer port")
    if not 0 <= port_number < 65536:
        raise ValueError(f"address '{value}' has out of range port")
    return host.strip("[]"), port_number


class Settings(BaseModel):
    openvpn_binary: Path
    openvpn_config_file: Path
    server_address: Tuple[str, int] = parse_address(DEFAULT_SERVER_ADDRESS)
    server_timeout: float = Field(default=DEFAULT_SERVER_TIMEOUT, gt=0)
    browser_command: List[str]
    redirect_url: Optional[str] = None
    run_command: bool = True
    auth_failed_retries: int = Field(default=0, ge=0)
    temp_credentials_file_path: Path = Field(default_factory=default_credentials_path)
    temp_credentials_permissions: int = DEFAULT_CREDENTIALS_PERMISSIONS
    session_timeout: Optional[float] = Field(default=None, gt=0)
    use_sudo: bool = False

    @field_validator("openvpn_binary", "openvpn_config_file", "temp_credentials_file_path", mode="before")
    @classmethod
    def _expand_path(cls, value):
        if isinstance(value, str):
            if not value.strip():
                raise ValueError("a path is required")
            return Path(value).expanduser()
        return value

    @field_validator("server_address", mode="before")
    @classmethod
    def _split_address(cls, value):
        if isinstance(value, str):
            return parse_address(value)
        return value

    @field_validator("browser_command", mode="before")
    @classmethod
    def _split_command(cls, value):
        if isinstance(value, str):
            return shlex.split(value)
        return value

    @field_validator("temp_credentials_permissions", mode="before")
    @classmethod
    def _parse_octal(cls, value):
        if isinstance(value, str):
            return int(value, 8)
        return value

    @field_validator("temp_credentials_permissions")
    @classmethod
    def _check_mode(cls, value: int) -> int:
        if not 0 < value <= 0o777:
            raise ValueError(f"permissions {oct(value)} out of range")
        if not value & 0o400:
            raise ValueError("credentials file must be readable by its owner")
        return value


def _format_validation_error(error: ValidationError) -> List[str]:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or SECTION
        messages.append(f"{location}: {item['msg']}")
    return messages


def _check_binary(binary: Path) -> List[str]:
    if not binary.is_file():
        return [f"could not stat openvpn_binary {binary}"]
    if not os.access(binary, os.X_OK):
        return [f"openvpn_binary {binary} is not executable"]
    return []


def _check_config_file(config_file: Path) -> List[str]:
    if not config_file.is_file():
        return [f"could not stat openvpn_config_file {config_file}"]
    return []


def _check_browser_command(command: List[str]) -> List[str]:
    markers = command.count(URL_MARKER)
    if markers != 1:
        return [f"the browser_command must contain {URL_MARKER} exactly once, found {markers}"]
    return []


def _check_raw_values(values: Dict[str, str], failed: Set[str]) -> List[str]:
    """Run the session checks on the values that did parse."""
    errors = []
    if "openvpn_binary" in values and "openvpn_binary" not in failed:
        errors.extend(_check_binary(Path(values["openvpn_binary"]).expanduser()))
    if "openvpn_config_file" in values and "openvpn_config_file" not in failed:
        errors.extend(_check_config_file(Path(values["openvpn_config_file"]).expanduser()))
    if "browser_command" in values and "browser_command" not in failed:
        errors.extend(_check_browser_command(shlex.split(values["browser_command"])))
    return errors


def load_settings(config_file: str) -> Settings:
    """
    Load settings from the ``[samlvpn]`` section of an INI file.

    When some values are invalid, the remaining ones are still checked so the
    error lists every problem at once.

    Raises:
        ConfigurationError: file unreadable or values invalid, all problems listed
    """
    config = configparser.ConfigParser(interpolation=None)
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config.read_file(f)
    except (OSError, UnicodeDecodeError, configparser.Error) as e:
        raise ConfigurationError(f"could not read configuration file {config_file}: {e}")

    if not config.has_section(SECTION):
        raise ConfigurationError(f"configuration file {config_file} has no [{SECTION}] section")

    # Blank values fall back to the defaults
    values = {key: value for key, value in config[SECTION].items() if value.strip()}
    try:
        return Settings.model_validate(values)
    except ValidationError as e:
        failed = {str(item["loc"][0]) for item in e.errors() if item["loc"]}
        raise ConfigurationError(_format_validation_error(e) + _check_raw_values(values, failed))


def validate_settings(settings: Settings) -> List[str]:
    """Return every problem that prevents a session from starting."""
    return (
        _check_binary(settings.openvpn_binary)
        + _check_config_file(settings.openvpn_config_file)
        + _check_browser_command(settings.browser_command)
    )
