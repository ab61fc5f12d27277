"""
Exception types raised across the activation pipeline
"""

# Standard library imports
from typing import Optional


class AutoPimError(Exception):
    """Base class for all errors raised by autoPim."""


class ConfigError(AutoPimError):
    """Raised when the configuration file or command-line values are invalid."""


class AuthenticationError(AutoPimError):
    """Raised when no access token could be acquired for Azure Resource Manager."""


class DiscoveryError(AutoPimError):
    """Raised when eligible role instances cannot be listed or parsed.

    Discovery has no partial-success path: any transport failure, non-2xx
    status, malformed JSON body or missing field aborts the run.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ActivationTransportError(AutoPimError):
    """Raised when a single activation request never got an HTTP response."""

