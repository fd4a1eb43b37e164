"""Shared pytest fixtures."""

from __future__ import annotations

import os

# Keep settings away from the real ~/.ssh before any import
os.environ.setdefault("SSHEXEC_KNOWN_HOSTS_PATH", "/nonexistent/known_hosts")
os.environ.setdefault("SSHEXEC_LOG_LEVEL", "DEBUG")

import paramiko
import pytest

from sshexec.config import Settings
from sshexec.models.target import (
    KeyFileCredential,
    PasswordCredential,
    TargetDescriptor,
)
from sshexec.services.ssh_manager import SSHSessionManager
from sshexec.utils.logging import setup_logging
from tests.fake_sshd import FakeSSHServer


@pytest.fixture(scope="session", autouse=True)
def _logging():
    setup_logging()


@pytest.fixture(scope="session")
def host_key() -> paramiko.RSAKey:
    return paramiko.RSAKey.generate(2048)


@pytest.fixture(scope="session")
def user_key() -> paramiko.RSAKey:
    return paramiko.RSAKey.generate(2048)


@pytest.fixture
def ssh_server(host_key):
    """A fresh in-process SSH server accepting alice / p@ss."""
    with FakeSSHServer(host_key) as server:
        yield server


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        known_hosts_path=str(tmp_path / "known_hosts"),
        host_key_policy="tofu",
        connect_timeout=5,
        handshake_timeout=5,
        auth_timeout=5,
        command_timeout=10,
        lock_timeout=1,
    )


@pytest.fixture
def password_target(ssh_server) -> TargetDescriptor:
    return TargetDescriptor(
        host=ssh_server.host,
        port=ssh_server.port,
        username="alice",
        credential=PasswordCredential(secret="p@ss"),
    )


@pytest.fixture
def key_target(ssh_server, user_key, tmp_path) -> TargetDescriptor:
    """Target using a private key file; the server authorizes the key."""
    key_path = tmp_path / "id_rsa"
    user_key.write_private_key_file(str(key_path))
    (tmp_path / "id_rsa.pub").write_text(
        f"{user_key.get_name()} {user_key.get_base64()} alice@test\n",
    )
    ssh_server.authorize("alice", user_key)
    return TargetDescriptor(
        host=ssh_server.host,
        port=ssh_server.port,
        username="alice",
        credential=KeyFileCredential(path=str(key_path)),
    )


@pytest.fixture
def manager(test_settings):
    """Session manager with its own registry; disconnected on teardown."""
    mgr = SSHSessionManager(test_settings)
    yield mgr
    mgr.close()


@pytest.fixture
def connected(manager, password_target):
    manager.connect(password_target)
    return manager
