"""
Enumeration types for tunnelgate.

Modes and lifecycle states of tunnel sessions, plus configuration options.
"""

from enum import Enum


# =============================================================================
# Tunnel-Related Enums
# =============================================================================


class TunnelMode(str, Enum):
    """
    How the tunnel reaches its destination.

    - DIRECT: dial the requested host:port and answer the client with 200
    - FORWARDING: dial the upstream proxy and forward the CONNECT request
    """

    DIRECT = "direct"
    FORWARDING = "forwarding"


class SessionState(str, Enum):
    """
    Tunnel session lifecycle.

    State transitions:
        INIT -> HANDSHAKING -> RELAYING -> CLOSED
        HANDSHAKING -> CLOSED (resolve, dial or handshake failure)
    """

    INIT = "init"
    HANDSHAKING = "handshaking"
    RELAYING = "relaying"
    CLOSED = "closed"


class RelayState(str, Enum):
    """
    State of one relay direction.

    RUNNING is the only non-terminal state.
    """

    RUNNING = "running"
    CLOSED_NORMAL = "closed_normal"  # Source reached end-of-stream
    CLOSED_ERROR = "closed_error"  # Read or write failed

    @property
    def is_terminal(self) -> bool:
        return self is not RelayState.RUNNING


# =============================================================================
# Configuration Enums
# =============================================================================


class LogLevel(str, Enum):
    """
    Logging verbosity levels.

    Levels (from most to least verbose):
        - FULL: Complete trace with detailed stack information
        - DEBUG: Debug messages and above
        - INFO: Informational messages and above
        - WARNING: Only warnings and errors
    """

    FULL = "full"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
