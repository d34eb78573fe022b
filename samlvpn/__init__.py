"""Obtain VPN credentials through a SAML login and run OpenVPN with them."""

__version__ = "0.1.0"
