"""Session state snapshots handed back to callers."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class SessionInfo(BaseModel):
    """Read-only view of the registered session."""

    session_id: str
    host: str
    port: int
    username: str
    connected_at: datetime
    host_key_type: str = ""
    host_key_fingerprint: str = ""
