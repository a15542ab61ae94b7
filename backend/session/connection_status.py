"""
Connection status tracking for live sessions.

Connection lifecycle is tracked separately from the lifecycle phase:
connection_status: DOWN | CONNECTING | UP

This is pure data owned by the Session object, not by reducer state.
"""
from enum import Enum

class ConnectionStatus(Enum):
    """
    Live transport connection status.

    Separate from and independent of the Phase enum.
    DASHBOARD and ACTIVE both imply UP; IDLE may briefly see any value.
    """
    DOWN = "DOWN"              # No handle, or handle closed/invalidated
    CONNECTING = "CONNECTING"  # Handle created, setup not yet acknowledged
    UP = "UP"                  # Setup acknowledged, sends accepted
