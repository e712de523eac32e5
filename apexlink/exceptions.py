"""Custom exceptions for ApexLink."""


class ApexLinkError(Exception):
    """Base exception for ApexLink errors."""

    pass


class ConfigError(ApexLinkError):
    """Raised when the configuration file or a config value is invalid."""

    pass


class DaemonNotFoundError(ApexLinkError):
    """Raised when no eligible daemon executable can be located."""

    pass


class DaemonStartError(ApexLinkError):
    """Raised when the daemon process cannot be created."""

    pass


class RemoteApplyError(ApexLinkError):
    """Raised when a remote apply is started while another is in flight."""

    pass
