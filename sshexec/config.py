"""Engine settings loaded from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is driven by ``SSHEXEC_*`` environment variables."""

    # Timeouts (seconds)
    connect_timeout: float = Field(default=10.0, gt=0)
    handshake_timeout: float = Field(default=15.0, gt=0)
    banner_timeout: float = Field(default=15.0, gt=0)
    auth_timeout: float = Field(default=15.0, gt=0)
    command_timeout: float = Field(default=300.0, gt=0)
    lock_timeout: float = Field(default=5.0, gt=0)

    # Host key verification
    host_key_policy: Literal["strict", "tofu"] = "tofu"
    known_hosts_path: str = "~/.ssh/known_hosts"

    # Session
    disconnect_reason: str = "User initiated disconnect"
    serialize_commands: bool = False
    connect_retries: int = Field(default=0, ge=0)
    connect_retry_delay: float = Field(default=1.0, ge=0)
    read_chunk_size: int = Field(default=32768, gt=0)

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    model_config = {
        "env_prefix": "SSHEXEC_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


# Default instance, import this from anywhere
settings = Settings()
