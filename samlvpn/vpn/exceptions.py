"""Custom exceptions for SAML VPN sessions."""

from typing import Iterable, Union


class VPNError(Exception):
    """Base exception for VPN-related errors."""
    pass


class ConfigurationError(VPNError):
    """Raised when the configuration is unusable.

    Every problem found is collected so they can be reported together.
    """

    def __init__(self, errors: Union[str, Iterable[str]]):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class OpenVPNConfigError(ConfigurationError):
    """Raised when the OpenVPN config file cannot be parsed"""
    pass


class CallbackTimeoutError(VPNError):
    """Raised when no SAML callback arrives before the attempt deadline"""
    pass


class AuthFailedError(VPNError):
    """Raised when the VPN rejected the credentials on every attempt"""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"VPN authentication failed after {attempts} attempt(s)")


class ProcessLaunchError(VPNError):
    """Raised when a child process cannot be started"""
    pass


class CredentialIOError(VPNError):
    """Raised when the credentials file cannot be written or removed"""
    pass


class ListenerError(VPNError):
    """Raised when the callback listener cannot be started"""
    pass
