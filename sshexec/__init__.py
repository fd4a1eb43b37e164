"""Single-session remote command execution over SSH."""

__version__ = "0.1.0"

from sshexec.models.commands import CommandResult
from sshexec.models.session import ConnectionState, SessionInfo
from sshexec.models.target import (
    KeyFileCredential,
    PasswordCredential,
    TargetDescriptor,
)
from sshexec.services.async_manager import AsyncSSHSessionManager
from sshexec.services.registry import SessionRegistry
from sshexec.services.ssh_manager import SSHSessionManager

__all__ = [
    "AsyncSSHSessionManager",
    "CommandResult",
    "ConnectionState",
    "KeyFileCredential",
    "PasswordCredential",
    "SSHSessionManager",
    "SessionInfo",
    "SessionRegistry",
    "TargetDescriptor",
    "__version__",
]
