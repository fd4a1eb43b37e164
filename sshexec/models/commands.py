"""Command-related data structures."""

from __future__ import annotations

from pydantic import BaseModel, Field

STDERR_SEPARATOR = "\n--- STDERR ---\n"


class CommandResult(BaseModel):
    """Fully buffered result of one remote command.

    ``stdout`` and ``stderr`` are kept apart; ``output`` gives the
    combined text with stderr appended behind :data:`STDERR_SEPARATOR`.
    ``read_warnings`` lists stream reads that failed part way, in which
    case the buffers may be incomplete.
    """

    command: str
    stdout: str = ""
    stderr: str = ""
    exit_code: int
    elapsed_time: float = 0.0
    read_warnings: list[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    @property
    def partial(self) -> bool:
        return bool(self.read_warnings)

    @property
    def output(self) -> str:
        if not self.stderr:
            return self.stdout
        return f"{self.stdout}{STDERR_SEPARATOR}{self.stderr}"
