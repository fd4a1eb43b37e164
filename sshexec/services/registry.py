"""Single-slot holder for the one live SSH session."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from sshexec.exceptions import LockUnavailable
from sshexec.services.session import Session
from sshexec.utils.logging import get_logger

log = get_logger(__name__)


class SessionRegistry:
    """Holds at most one :class:`Session`, guarded by a mutex.

    The lock only ever covers slot access, never network I/O. Callers that
    replace or remove a session get it back and tear it down themselves.

    If the lock cannot be acquired within ``lock_timeout`` seconds, or an
    earlier critical section failed half way, every operation raises
    :class:`LockUnavailable` instead of touching the slot.
    """

    def __init__(self, lock_timeout: float = 5.0) -> None:
        self._lock = threading.Lock()
        self._lock_timeout = lock_timeout
        self._session: Optional[Session] = None
        self._poisoned = False

    @contextmanager
    def _guard(self, op: str) -> Iterator[None]:
        if not self._lock.acquire(timeout=self._lock_timeout):
            log.error("registry.lock_timeout", op=op, timeout=self._lock_timeout)
            raise LockUnavailable(
                f"Failed to acquire session lock for {op}", timeout=self._lock_timeout,
            )
        try:
            if self._poisoned:
                raise LockUnavailable(
                    f"Session registry is in an undefined state, refusing {op}",
                )
            try:
                yield
            except Exception:
                self._poisoned = True
                log.error("registry.poisoned", op=op)
                raise
        finally:
            self._lock.release()

    # ── public ────────────────────────────────────────────────────────

    def install(self, session: Session) -> Optional[Session]:
        """Store *session*, returning whatever it displaced."""
        with self._guard("install"):
            previous, self._session = self._session, session
        log.debug(
            "registry.installed",
            session=session.session_id,
            replaced=previous.session_id if previous else None,
        )
        return previous

    def current(self) -> Optional[Session]:
        """Lend the registered session, if any."""
        with self._guard("lookup"):
            return self._session

    def take_and_clear(self) -> Optional[Session]:
        """Remove and return the registered session, leaving the slot empty."""
        with self._guard("clear"):
            session, self._session = self._session, None
        return session

    def evict(self, session: Session) -> bool:
        """Clear the slot only if it still holds *session*."""
        with self._guard("evict"):
            if self._session is not session:
                return False
            self._session = None
        return True

    @property
    def is_empty(self) -> bool:
        return self.current() is None
