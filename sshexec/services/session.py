"""Authenticated session handle.

A :class:`Session` wraps one authenticated ``paramiko.Transport``. It is
created by the authenticator, owned by the registry, and lent to the
executor for the duration of a command.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

import paramiko
from paramiko.common import cMSG_DISCONNECT

from sshexec.exceptions import DisconnectFailed
from sshexec.models.session import SessionInfo
from sshexec.models.target import TargetDescriptor
from sshexec.utils.logging import get_logger

log = get_logger(__name__)

# RFC 4253 section 11.1, not exported by paramiko
DISCONNECT_BY_APPLICATION = 11


class Session:
    """Opaque handle around an authenticated SSH transport."""

    def __init__(
        self,
        transport: paramiko.Transport,
        target: TargetDescriptor,
        host_key: Optional[paramiko.PKey] = None,
    ) -> None:
        self.session_id = uuid4().hex[:8]
        self.target = target
        self.connected_at = datetime.now(timezone.utc)
        self._transport = transport
        self._host_key = host_key

    def __repr__(self) -> str:
        return f"<Session {self.session_id} {self.target.address}>"

    # ── state ─────────────────────────────────────────────────────────

    def is_alive(self) -> bool:
        return self._transport.is_active()

    def is_authenticated(self) -> bool:
        return self._transport.is_active() and self._transport.is_authenticated()

    def info(self) -> SessionInfo:
        return SessionInfo(
            session_id=self.session_id,
            host=self.target.host,
            port=self.target.port,
            username=self.target.username,
            connected_at=self.connected_at,
            host_key_type=self._host_key.get_name() if self._host_key else "",
            host_key_fingerprint=(
                self._host_key.fingerprint if self._host_key else ""
            ),
        )

    # ── channels ──────────────────────────────────────────────────────

    def open_channel(self, timeout: Optional[float] = None) -> paramiko.Channel:
        """Open a new ``session`` channel for one command."""
        return self._transport.open_session(timeout=timeout)

    # ── teardown ──────────────────────────────────────────────────────

    def disconnect(self, reason: str) -> None:
        """Send an SSH DISCONNECT with *reason*, then close the transport.

        The transport is closed even when the notification cannot be sent;
        that failure is reported as :class:`DisconnectFailed`.
        """
        try:
            if not self._transport.is_active():
                raise DisconnectFailed(
                    "SSH transport was already closed", self.session_id,
                )
            msg = paramiko.Message()
            msg.add_byte(cMSG_DISCONNECT)
            msg.add_int(DISCONNECT_BY_APPLICATION)
            msg.add_string(reason)
            msg.add_string("")  # language tag
            # paramiko has no public call that carries a reason string;
            # AttributeError covers a release that drops the private sender
            self._transport._send_user_message(msg)
        except (paramiko.SSHException, OSError, EOFError, AttributeError) as exc:
            raise DisconnectFailed(
                f"SSH disconnect notification failed: {exc}", self.session_id,
            ) from exc
        finally:
            self.close()
        log.info("ssh.disconnected", session=self.session_id, reason=reason)

    def close(self) -> None:
        try:
            self._transport.close()
        except Exception as exc:
            log.warning("ssh.close_failed", session=self.session_id, error=str(exc))
