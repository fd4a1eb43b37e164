"""Handshake, host key policy and authentication tests."""

from __future__ import annotations

import socket
import threading

import paramiko
import pytest

from sshexec.exceptions import AuthFailed, HandshakeFailed
from sshexec.models.target import PasswordCredential
from sshexec.services.authenticator import (
    KnownHostsVerifier,
    authenticate,
    known_hosts_name,
)
from sshexec.services.transport import open_stream


class RawListener:
    """TCP listener that greets every client with *greeting* (or nothing)."""

    def __init__(self, greeting: bytes | None) -> None:
        self.greeting = greeting
        self._sock = socket.socket()
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen(4)
        self._conns: list[socket.socket] = []
        self._thread = threading.Thread(target=self._accept, daemon=True)
        self._thread.start()

    @property
    def port(self) -> int:
        return self._sock.getsockname()[1]

    def _accept(self) -> None:
        try:
            conn, _ = self._sock.accept()
        except OSError:
            return
        self._conns.append(conn)
        if self.greeting is not None:
            conn.sendall(self.greeting)
            conn.close()

    def close(self) -> None:
        for conn in self._conns:
            conn.close()
        self._sock.close()


def _stream(target):
    return open_stream(target.host, target.port, 5)


def test_known_hosts_name_matches_openssh():
    assert known_hosts_name("example.com", 22) == "example.com"
    assert known_hosts_name("10.1.1.1", 2222) == "[10.1.1.1]:2222"


def test_unknown_policy_is_rejected(tmp_path):
    with pytest.raises(ValueError):
        KnownHostsVerifier(str(tmp_path / "kh"), "yolo")


def test_tofu_records_unknown_host(test_settings, password_target, host_key, tmp_path):
    path = tmp_path / "ssh" / "known_hosts"
    verifier = KnownHostsVerifier(str(path), "tofu")
    session = authenticate(_stream(password_target), password_target, test_settings, verifier)
    try:
        assert session.is_authenticated()
    finally:
        session.close()

    keys = paramiko.HostKeys(str(path))
    name = known_hosts_name(password_target.host, password_target.port)
    assert keys.check(name, host_key)


def test_strict_rejects_unknown_host(test_settings, password_target, tmp_path):
    verifier = KnownHostsVerifier(str(tmp_path / "known_hosts"), "strict")
    with pytest.raises(HandshakeFailed) as exc_info:
        authenticate(_stream(password_target), password_target, test_settings, verifier)
    assert "not present" in str(exc_info.value)


def test_strict_accepts_recorded_host(test_settings, password_target, host_key, tmp_path):
    path = tmp_path / "known_hosts"
    keys = paramiko.HostKeys()
    name = known_hosts_name(password_target.host, password_target.port)
    keys.add(name, host_key.get_name(), host_key)
    keys.save(str(path))

    verifier = KnownHostsVerifier(str(path), "strict")
    session = authenticate(_stream(password_target), password_target, test_settings, verifier)
    try:
        assert session.info().host_key_type == host_key.get_name()
    finally:
        session.close()


def test_changed_host_key_is_rejected(test_settings, password_target, tmp_path):
    path = tmp_path / "known_hosts"
    impostor = paramiko.RSAKey.generate(2048)
    keys = paramiko.HostKeys()
    keys.add(known_hosts_name(password_target.host, password_target.port), impostor.get_name(), impostor)
    keys.save(str(path))

    sock = _stream(password_target)
    with pytest.raises(HandshakeFailed) as exc_info:
        authenticate(sock, password_target, test_settings, KnownHostsVerifier(str(path), "tofu"))
    assert "does not match" in str(exc_info.value)
    assert sock.fileno() == -1


def test_socket_closed_after_auth_failure(test_settings, password_target):
    target = password_target.model_copy(
        update={"credential": PasswordCredential(secret="nope")},
    )
    sock = _stream(target)
    with pytest.raises(AuthFailed):
        authenticate(sock, target, test_settings)
    assert sock.fileno() == -1


def test_unconfirmed_authentication_is_rejected(test_settings, password_target, monkeypatch):
    monkeypatch.setattr(paramiko.Transport, "is_authenticated", lambda self: False)
    with pytest.raises(AuthFailed):
        authenticate(_stream(password_target), password_target, test_settings)


def test_non_ssh_server_fails_handshake(test_settings, password_target):
    listener = RawListener(b"HTTP/1.1 400 Bad Request\r\n\r\n")
    try:
        target = password_target.model_copy(update={"port": listener.port})
        with pytest.raises(HandshakeFailed):
            authenticate(_stream(target), target, test_settings)
    finally:
        listener.close()


def test_silent_server_times_out(test_settings, password_target):
    cfg = test_settings.model_copy(update={"handshake_timeout": 0.3})
    listener = RawListener(None)
    try:
        target = password_target.model_copy(update={"port": listener.port})
        with pytest.raises(HandshakeFailed) as exc_info:
            authenticate(_stream(target), target, cfg)
        assert "timed out" in str(exc_info.value)
    finally:
        listener.close()
