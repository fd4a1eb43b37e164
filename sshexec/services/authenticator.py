"""SSH handshake, host key verification and user authentication.

Runs over a stream opened by :mod:`sshexec.services.transport` and turns it
into an authenticated :class:`~sshexec.services.session.Session`.
"""

from __future__ import annotations

import os
import socket
import threading
from pathlib import Path

import paramiko

from sshexec.config import Settings, settings
from sshexec.exceptions import AuthFailed, HandshakeFailed
from sshexec.models.target import (
    KeyFileCredential,
    PasswordCredential,
    TargetDescriptor,
)
from sshexec.services.session import Session
from sshexec.utils.logging import get_logger

log = get_logger(__name__)


def known_hosts_name(host: str, port: int) -> str:
    """Host entry as OpenSSH writes it to ``known_hosts``."""
    if port == 22:
        return host
    return f"[{host}]:{port}"


class KnownHostsVerifier:
    """Checks server host keys against an OpenSSH ``known_hosts`` file.

    ``strict`` only accepts hosts already recorded with a matching key.
    ``tofu`` records unknown hosts on first contact and rejects a key that
    differs from the recorded one.
    """

    def __init__(self, path: str, policy: str) -> None:
        if policy not in ("strict", "tofu"):
            raise ValueError(f"Unknown host key policy: {policy!r}")
        self.path = Path(os.path.expanduser(path))
        self.policy = policy
        self._lock = threading.Lock()

    def _load(self) -> paramiko.HostKeys:
        keys = paramiko.HostKeys()
        if self.path.exists():
            keys.load(str(self.path))
        return keys

    def verify(self, host: str, port: int, key: paramiko.PKey) -> None:
        name = known_hosts_name(host, port)
        with self._lock:
            try:
                keys = self._load()
            except (OSError, paramiko.SSHException) as exc:
                raise HandshakeFailed(
                    f"Cannot read known hosts file {self.path}: {exc}",
                ) from exc

            known = keys.lookup(name)
            if known is not None and key.get_name() in known:
                if keys.check(name, key):
                    return
                log.error(
                    "ssh.host_key_mismatch",
                    host=name,
                    key_type=key.get_name(),
                    fingerprint=key.fingerprint,
                )
                raise HandshakeFailed(
                    f"Host key for {name} does not match {self.path}",
                    fingerprint=key.fingerprint,
                )

            if self.policy == "strict":
                raise HandshakeFailed(
                    f"Host {name} is not present in {self.path}",
                    fingerprint=key.fingerprint,
                )

            keys.add(name, key.get_name(), key)
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                keys.save(str(self.path))
            except OSError as exc:
                raise HandshakeFailed(
                    f"Cannot record host key in {self.path}: {exc}",
                ) from exc
            log.warning(
                "ssh.host_key_recorded",
                host=name,
                key_type=key.get_name(),
                fingerprint=key.fingerprint,
            )


def _handshake(transport: paramiko.Transport, timeout: float) -> None:
    done = threading.Event()
    try:
        transport.start_client(event=done)
    except (paramiko.SSHException, OSError) as exc:
        raise HandshakeFailed(f"SSH handshake failed: {exc}") from exc
    if not done.wait(timeout):
        raise HandshakeFailed(f"SSH handshake timed out after {timeout}s")
    if not transport.is_active():
        exc = transport.get_exception()
        raise HandshakeFailed(f"SSH handshake failed: {exc or 'negotiation failed'}")


def _authenticate_key_file(
    transport: paramiko.Transport, username: str, cred: KeyFileCredential,
) -> None:
    path = cred.private_key_path
    passphrase = cred.passphrase.get_secret_value() if cred.passphrase else None
    try:
        key = paramiko.PKey.from_path(path, passphrase)
    except (
        OSError, TypeError, ValueError, paramiko.SSHException, paramiko.UnknownKeyType,
    ) as exc:
        raise AuthFailed(f"Cannot load private key {path}: {exc}") from exc
    try:
        transport.auth_publickey(username, key)
    except (paramiko.SSHException, OSError, EOFError) as exc:
        raise AuthFailed(f"SSH key authentication failed: {exc}") from exc


def _authenticate_password(
    transport: paramiko.Transport, username: str, cred: PasswordCredential,
) -> None:
    try:
        transport.auth_password(username, cred.secret.get_secret_value())
    except (paramiko.SSHException, OSError, EOFError) as exc:
        raise AuthFailed(f"Password authentication failed: {exc}") from exc


def authenticate(
    sock: socket.socket,
    target: TargetDescriptor,
    cfg: Settings | None = None,
    verifier: KnownHostsVerifier | None = None,
) -> Session:
    """Negotiate SSH on *sock* and authenticate as ``target.username``.

    The socket (and the transport built on it) is closed on every failure
    path.
    """
    cfg = cfg or settings
    verifier = verifier or KnownHostsVerifier(
        cfg.known_hosts_path, cfg.host_key_policy,
    )
    try:
        transport = paramiko.Transport(sock)
    except (paramiko.SSHException, OSError) as exc:
        sock.close()
        raise HandshakeFailed(f"Failed to create SSH transport: {exc}") from exc

    transport.banner_timeout = cfg.banner_timeout
    transport.auth_timeout = cfg.auth_timeout
    try:
        _handshake(transport, cfg.handshake_timeout)
        try:
            host_key = transport.get_remote_server_key()
        except paramiko.SSHException as exc:
            raise HandshakeFailed(f"No server host key: {exc}") from exc
        verifier.verify(target.host, target.port, host_key)

        cred = target.credential
        if isinstance(cred, KeyFileCredential):
            _authenticate_key_file(transport, target.username, cred)
        elif isinstance(cred, PasswordCredential):
            _authenticate_password(transport, target.username, cred)
        else:
            raise TypeError(f"Unsupported credential type: {type(cred).__name__}")

        # paramiko can return from auth without the transport agreeing
        if not transport.is_authenticated():
            raise AuthFailed("Authentication failed")
    except Exception:
        transport.close()
        sock.close()
        raise

    session = Session(transport, target, host_key=host_key)
    log.info(
        "ssh.authenticated",
        target=target.address,
        method=target.credential.kind,
        session=session.session_id,
    )
    return session
