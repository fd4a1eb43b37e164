"""Exception taxonomy for the remote execution engine.

Callers branch on the exception class, not on message text::

    SSHExecError
    ├── ConnectError
    │   ├── Unreachable            network level, retryable
    │   ├── HandshakeFailed        protocol / host key problem
    │   └── AuthFailed             credential rejected or unusable
    ├── ExecError
    │   ├── NotAuthenticated       no live session registered
    │   ├── ChannelOpenFailed
    │   ├── ExecFailed
    │   ├── ExitStatusUnavailable
    │   ├── ExecutionTimedOut
    │   └── CommandNonZeroExit     command ran, exited non-zero
    ├── DisconnectError
    │   ├── NoActiveSession
    │   └── DisconnectFailed       session is cleared regardless
    └── LockUnavailable            registry lock could not be used
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from sshexec.models.commands import CommandResult


class SSHExecError(Exception):
    """Base class for every error raised by the engine."""

    retryable: bool = False

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if not self.context:
            return self.message
        extra = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({extra})"


class LockUnavailable(SSHExecError):
    pass


# ── connect ───────────────────────────────────────────────────────────


class ConnectError(SSHExecError):
    pass


class Unreachable(ConnectError):
    retryable = True


class HandshakeFailed(ConnectError):
    pass


class AuthFailed(ConnectError):
    pass


# ── execute ───────────────────────────────────────────────────────────


class ExecError(SSHExecError):
    pass


class NotAuthenticated(ExecError):
    pass


class ChannelOpenFailed(ExecError):
    pass


class ExecFailed(ExecError):
    def __init__(self, message: str, command: str, **context: Any) -> None:
        super().__init__(message, command=command, **context)
        self.command = command


class ExitStatusUnavailable(ExecError):
    pass


class ExecutionTimedOut(ExecError):
    def __init__(self, message: str, command: str, timeout: float) -> None:
        super().__init__(message, command=command, timeout=timeout)
        self.command = command
        self.timeout = timeout


class CommandNonZeroExit(ExecError):
    """The command ran to completion but exited with a non-zero status.

    ``result`` holds the full :class:`CommandResult`, including the exit
    code and both output buffers.
    """

    def __init__(self, result: "CommandResult") -> None:
        super().__init__(
            f"Command '{result.command}' exited with status {result.exit_code}",
        )
        self.result = result

    @property
    def exit_code(self) -> int:
        return self.result.exit_code

    @property
    def stdout(self) -> str:
        return self.result.stdout

    @property
    def stderr(self) -> str:
        return self.result.stderr


# ── disconnect ────────────────────────────────────────────────────────


class DisconnectError(SSHExecError):
    pass


class NoActiveSession(DisconnectError):
    pass


class DisconnectFailed(DisconnectError):
    def __init__(self, message: str, session_id: Optional[str] = None) -> None:
        super().__init__(message, session=session_id)
        self.session_id = session_id
