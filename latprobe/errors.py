"""Error taxonomy for probe operations.

Every probe translates library-specific failures into one of these classes so
the orchestrator can count them without knowing which library raised.
"""


class ProbeError(Exception):
    """Base class for a failed probe operation (non-fatal to a run)."""


class ResolutionError(ProbeError):
    """DNS lookup failed."""

    def __init__(self, hostname: str, code: str):
        super().__init__(f"DNS resolution failed for {hostname}: {code}")
        self.hostname = hostname
        self.code = code


class ConnectError(ProbeError):
    """TCP, TLS or WebSocket handshake could not be established."""


class Timeout(ProbeError):
    """Operation exceeded its time bound."""


class RequestError(ProbeError):
    """HTTP request failed after the connection was established."""
