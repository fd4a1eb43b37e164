"""asyncio front end for :class:`SSHSessionManager`.

Every call is pushed into a thread pool so an event loop (UI, web server)
is never blocked by SSH I/O.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Optional

from sshexec.models.commands import CommandResult
from sshexec.models.session import ConnectionState, SessionInfo
from sshexec.models.target import TargetDescriptor
from sshexec.services.ssh_manager import SSHSessionManager


class AsyncSSHSessionManager:
    """Awaitable wrappers around a blocking session manager."""

    def __init__(
        self,
        manager: SSHSessionManager | None = None,
        max_workers: int = 4,
    ) -> None:
        self._manager = manager or SSHSessionManager()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="ssh",
        )

    # ── helpers ───────────────────────────────────────────────────────

    async def _run(self, fn, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, partial(fn, *args, **kwargs))

    # ── public ────────────────────────────────────────────────────────

    async def connect(self, target: TargetDescriptor) -> SessionInfo:
        return await self._run(self._manager.connect, target)

    async def ensure_connected(self, target: TargetDescriptor) -> SessionInfo:
        return await self._run(self._manager.ensure_connected, target)

    async def execute(
        self,
        command: str,
        *,
        timeout: Optional[float] = None,
        check: bool = True,
    ) -> CommandResult:
        return await self._run(
            self._manager.execute, command, timeout=timeout, check=check,
        )

    async def disconnect(self, reason: Optional[str] = None) -> None:
        await self._run(self._manager.disconnect, reason)

    async def close(self) -> None:
        """Disconnect (if connected) and shut the worker pool down."""
        try:
            await self._run(self._manager.close)
        finally:
            self._executor.shutdown(wait=False)

    @property
    def state(self) -> ConnectionState:
        return self._manager.state

    @property
    def is_connected(self) -> bool:
        return self._manager.is_connected
