"""Driver error taxonomy.

Every error raised by the driver derives from ``DriverError`` so the CLI can
report it verbatim and exit non-zero.
"""


class DriverError(Exception):
    """Base class for all driver failures."""


class ConfigError(DriverError):
    """Invalid driver option value."""


class CredentialError(DriverError):
    """Missing access token or failed local SSH key generation."""


class ProviderError(DriverError):
    """Transport or API-level failure reported by the Vscale API."""

    def __init__(self, message, state=None):
        super().__init__(message)
        self.state = state


class PollTimeoutError(ProviderError):
    """The provider did not reach the expected condition within the poll budget."""


class ProvisioningError(DriverError):
    """Post-creation configuration over SSH failed."""
