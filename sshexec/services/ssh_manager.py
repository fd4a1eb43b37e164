"""SSH session manager: connect-or-reuse, execute, disconnect.

Owns the decisions around the single registered session. Network I/O
happens outside the registry lock so a long-running command never blocks
a concurrent disconnect.
"""

from __future__ import annotations

import socket
import threading
import time
from typing import Callable, Optional

from sshexec.config import Settings, settings
from sshexec.exceptions import (
    DisconnectFailed,
    LockUnavailable,
    NoActiveSession,
    NotAuthenticated,
    Unreachable,
)
from sshexec.models.commands import CommandResult
from sshexec.models.session import ConnectionState, SessionInfo
from sshexec.models.target import TargetDescriptor
from sshexec.services import executor
from sshexec.services.authenticator import KnownHostsVerifier, authenticate
from sshexec.services.registry import SessionRegistry
from sshexec.services.session import Session
from sshexec.services.transport import open_stream
from sshexec.utils.logging import get_logger

log = get_logger(__name__)

Connector = Callable[[str, int, float], socket.socket]
Authenticator = Callable[..., Session]

REPLACED_REASON = "Replaced by new session"


class SSHSessionManager:
    """Manages exactly one SSH session on behalf of all callers."""

    def __init__(
        self,
        cfg: Settings | None = None,
        registry: SessionRegistry | None = None,
        connector: Connector = open_stream,
        authenticator: Authenticator = authenticate,
    ) -> None:
        self._cfg = cfg or settings
        self._registry = registry or SessionRegistry(self._cfg.lock_timeout)
        self._connector = connector
        self._authenticator = authenticator
        self._verifier = KnownHostsVerifier(
            self._cfg.known_hosts_path, self._cfg.host_key_policy,
        )
        self._connect_lock = threading.Lock()
        self._exec_lock = threading.Lock() if self._cfg.serialize_commands else None
        self._connecting = False

    # ── connection lifecycle ──────────────────────────────────────────

    def _open(self, target: TargetDescriptor) -> Session:
        attempts = self._cfg.connect_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                sock = self._connector(target.host, target.port, self._cfg.connect_timeout)
                break
            except Unreachable:
                if attempt == attempts:
                    raise
                log.info(
                    "ssh.connect_retry",
                    target=target.address,
                    attempt=attempt,
                    delay=self._cfg.connect_retry_delay,
                )
                time.sleep(self._cfg.connect_retry_delay)
        return self._authenticator(sock, target, self._cfg, self._verifier)

    def _reusable(self, target: TargetDescriptor) -> Optional[Session]:
        session = self._registry.current()
        if (
            session is not None
            and session.is_authenticated()
            and session.target.same_endpoint(target)
        ):
            return session
        return None

    def _install_new(self, target: TargetDescriptor) -> tuple[Session, Optional[Session]]:
        # caller holds _connect_lock
        self._connecting = True
        try:
            log.info("ssh.connecting", target=target.address, label=target.label)
            session = self._open(target)
            try:
                previous = self._registry.install(session)
            except LockUnavailable:
                session.close()
                raise
        finally:
            self._connecting = False
        return session, previous

    def _finish_connect(self, session: Session, previous: Optional[Session]) -> SessionInfo:
        target = session.target
        if previous is not None:
            log.info(
                "ssh.replacing",
                old=previous.session_id,
                new=session.session_id,
            )
            try:
                previous.disconnect(REPLACED_REASON)
            except DisconnectFailed as exc:
                log.warning("ssh.replace_disconnect_failed", error=str(exc))
        log.info(
            "ssh.connected",
            target=target.address,
            label=target.label,
            session=session.session_id,
        )
        return session.info()

    def connect(self, target: TargetDescriptor) -> SessionInfo:
        """Open and register a new session to *target*.

        A session that is already registered is torn down after the new one
        is installed. On failure the registry is left as it was.
        """
        with self._connect_lock:
            session, previous = self._install_new(target)
        return self._finish_connect(session, previous)

    def ensure_connected(self, target: TargetDescriptor) -> SessionInfo:
        """Reuse the registered session if it is live and for *target*.

        The check is repeated under the connect lock, so callers racing on
        an empty registry share one new session.
        """
        session = self._reusable(target)
        if session is not None:
            return session.info()
        with self._connect_lock:
            session = self._reusable(target)
            if session is not None:
                return session.info()
            session, previous = self._install_new(target)
        return self._finish_connect(session, previous)

    def disconnect(self, reason: Optional[str] = None) -> None:
        """Tear down the registered session.

        The registry is emptied before the disconnect notification is sent,
        so it stays empty even if that notification fails.
        """
        session = self._registry.take_and_clear()
        if session is None:
            raise NoActiveSession("No active session to disconnect")
        session.disconnect(reason or self._cfg.disconnect_reason)

    def close(self) -> None:
        """Shutdown hook: disconnect if connected, never raises for 'no session'."""
        try:
            self.disconnect()
        except NoActiveSession:
            pass
        except DisconnectFailed as exc:
            log.warning("ssh.close_failed", error=str(exc))

    # ── commands ──────────────────────────────────────────────────────

    def _current(self) -> Session:
        session = self._registry.current()
        if session is None:
            raise NotAuthenticated("No active SSH session found")
        if not session.is_alive():
            if self._registry.evict(session):
                log.warning("ssh.session_lost", session=session.session_id)
                session.close()
            raise NotAuthenticated("SSH session is no longer connected")
        return session

    def execute(
        self,
        command: str,
        *,
        timeout: Optional[float] = None,
        check: bool = True,
    ) -> CommandResult:
        """Run *command* on the registered session.

        ``timeout`` defaults to ``command_timeout`` and must be positive.
        """
        if timeout is None:
            timeout = self._cfg.command_timeout
        elif timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        session = self._current()
        log.info("ssh.exec", session=session.session_id, command=command)
        kwargs = dict(
            timeout=timeout,
            chunk_size=self._cfg.read_chunk_size,
            check=check,
        )
        if self._exec_lock is None:
            return executor.execute(session, command, **kwargs)
        with self._exec_lock:
            return executor.execute(session, command, **kwargs)

    # ── status ────────────────────────────────────────────────────────

    @property
    def state(self) -> ConnectionState:
        if self._connecting:
            return ConnectionState.CONNECTING
        if self.is_connected:
            return ConnectionState.CONNECTED
        return ConnectionState.DISCONNECTED

    @property
    def is_connected(self) -> bool:
        session = self._registry.current()
        return session is not None and session.is_authenticated()

    def session_info(self) -> Optional[SessionInfo]:
        session = self._registry.current()
        return session.info() if session is not None else None
