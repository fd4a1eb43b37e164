"""TCP connector: opens the raw stream the SSH transport runs over."""

from __future__ import annotations

import socket

from sshexec.exceptions import Unreachable
from sshexec.utils.logging import get_logger

log = get_logger(__name__)


def open_stream(host: str, port: int, timeout: float) -> socket.socket:
    """Open a blocking TCP connection to ``host:port``.

    DNS failures, refusals and timeouts all surface as :class:`Unreachable`.
    No retries here; the session manager decides whether to try again.
    """
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except OSError as exc:
        log.warning("tcp.unreachable", host=host, port=port, error=str(exc))
        raise Unreachable(
            f"Failed to connect to {host}:{port}: {exc}", host=host, port=port,
        ) from exc
    log.debug("tcp.connected", host=host, port=port)
    return sock
