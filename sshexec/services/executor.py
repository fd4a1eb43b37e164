"""Run one command on a session channel and buffer its result."""

from __future__ import annotations

import socket
import time
from typing import Callable

import paramiko

from sshexec.exceptions import (
    ChannelOpenFailed,
    CommandNonZeroExit,
    ExecFailed,
    ExecutionTimedOut,
    ExitStatusUnavailable,
    NotAuthenticated,
)
from sshexec.models.commands import CommandResult
from sshexec.services.session import Session
from sshexec.utils.logging import get_logger

log = get_logger(__name__)

# How long a single recv may block before the other stream gets a turn
POLL_INTERVAL = 0.05

_CHANNEL_ERRORS = (paramiko.SSHException, OSError, EOFError)


class _StreamBuffer:
    """Collects one output stream; a failed read closes it with a warning."""

    def __init__(
        self,
        name: str,
        reader: Callable[[int], bytes],
        ready: Callable[[], bool],
    ) -> None:
        self.name = name
        self.open = True
        self.warning: str | None = None
        self.ready = ready
        self._reader = reader
        self._data = bytearray()

    def pump(self, chunk_size: int) -> None:
        try:
            data = self._reader(chunk_size)
        except socket.timeout:
            return
        except _CHANNEL_ERRORS as exc:
            self.open = False
            self.warning = f"Failed to read command {self.name}: {exc}"
            return
        if not data:
            self.open = False
            return
        self._data.extend(data)

    def text(self) -> str:
        return self._data.decode("utf-8", errors="replace")


def _drain(
    channel: paramiko.Channel,
    command: str,
    deadline: float,
    timeout: float,
    chunk_size: int,
) -> tuple[_StreamBuffer, _StreamBuffer]:
    """Read stdout and stderr until both reach EOF.

    Both streams are pumped in one loop so a stderr window that nobody
    reads cannot stall stdout. Streams with buffered data are read first;
    when neither has any, a short blocking read waits for more.
    """
    stdout = _StreamBuffer("stdout", channel.recv, channel.recv_ready)
    stderr = _StreamBuffer("stderr", channel.recv_stderr, channel.recv_stderr_ready)
    channel.settimeout(POLL_INTERVAL)
    while stdout.open or stderr.open:
        if time.monotonic() >= deadline:
            raise ExecutionTimedOut(
                f"Command '{command}' did not finish within {timeout}s",
                command=command,
                timeout=timeout,
            )
        pending = [s for s in (stdout, stderr) if s.open]
        # after EOF every read returns at once
        ready = pending if channel.eof_received else [s for s in pending if s.ready()]
        for stream in ready or pending[:1]:
            stream.pump(chunk_size)
    return stdout, stderr


def execute(
    session: Session,
    command: str,
    *,
    timeout: float,
    chunk_size: int = 32768,
    check: bool = True,
) -> CommandResult:
    """Execute *command* on *session* and return its buffered result.

    With ``check`` set (the default) a non-zero exit status raises
    :class:`CommandNonZeroExit` carrying the result; otherwise the failed
    result is returned.

    On timeout the channel is force-closed but the session stays usable.
    """
    if not session.is_authenticated():
        raise NotAuthenticated("Session is not authenticated")

    started = time.monotonic()
    deadline = started + timeout
    try:
        channel = session.open_channel(timeout=timeout)
    except _CHANNEL_ERRORS as exc:
        raise ChannelOpenFailed(
            f"Failed to open SSH channel: {exc}", session=session.session_id,
        ) from exc

    try:
        try:
            channel.exec_command(command)
        except _CHANNEL_ERRORS as exc:
            raise ExecFailed(
                f"Failed to execute command '{command}': {exc}", command=command,
            ) from exc

        stdout, stderr = _drain(channel, command, deadline, timeout, chunk_size)

        remaining = max(deadline - time.monotonic(), 0.0)
        if not channel.status_event.wait(remaining):
            raise ExecutionTimedOut(
                f"Command '{command}' did not report an exit status within {timeout}s",
                command=command,
                timeout=timeout,
            )
        exit_code = channel.recv_exit_status()
    except ExecutionTimedOut:
        log.warning("ssh.exec_timeout", session=session.session_id, command=command)
        raise
    finally:
        channel.close()

    warnings = [s.warning for s in (stdout, stderr) if s.warning]
    for warning in warnings:
        log.warning("ssh.read_failed", session=session.session_id, detail=warning)

    if exit_code < 0:
        raise ExitStatusUnavailable(
            f"Failed to get exit status for command '{command}'",
            command=command,
        )

    result = CommandResult(
        command=command,
        stdout=stdout.text(),
        stderr=stderr.text(),
        exit_code=exit_code,
        elapsed_time=time.monotonic() - started,
        read_warnings=warnings,
    )
    log.info(
        "ssh.exec_done",
        session=session.session_id,
        command=command,
        exit_code=exit_code,
        elapsed=round(result.elapsed_time, 3),
    )
    if check and not result.succeeded:
        raise CommandNonZeroExit(result)
    return result
