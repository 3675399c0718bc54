"""Exception hierarchy shared by the collector components."""


class PingTelemetryError(Exception):
    """Base class for every error raised by ping_telemetry."""

    pass


class ConfigError(PingTelemetryError):
    """Raised when the configuration is missing or malformed."""

    pass


class ProbeStartError(PingTelemetryError):
    """Raised when the ping probe cannot be launched for a host.

    Attributes:
        host: The target whose probe failed to start.
        reason: Human readable cause (usually the OS error message).
    """

    def __init__(self, host: str, reason: str) -> None:
        super().__init__(f"Failed to start ping probe for {host}: {reason}")
        self.host = host
        self.reason = reason


class ChannelClosedError(PingTelemetryError):
    """Raised when sending on a released sender or a closed channel."""

    pass


class StoreError(PingTelemetryError):
    """Raised by store backends when a write or flush fails."""

    pass


class CollectionAbortedError(PingTelemetryError):
    """Raised by the collector when a host failure aborts the whole run."""

    pass
