"""Connection target and credential descriptors.

These come from the caller (usually a server record plus a resolved key
path or a password typed by the user) and are read-only to the engine.
"""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, SecretStr

PUBLIC_KEY_SUFFIX = ".pub"


class KeyFileCredential(BaseModel):
    """Private-key authentication.

    ``path`` may point at either half of a key pair; a trailing ``.pub``
    is trimmed to find the private key.
    """

    model_config = {"frozen": True}

    kind: Literal["key_file"] = "key_file"
    path: str = Field(min_length=1)
    passphrase: Optional[SecretStr] = None

    @property
    def private_key_path(self) -> str:
        if self.path.endswith(PUBLIC_KEY_SUFFIX):
            return self.path[: -len(PUBLIC_KEY_SUFFIX)]
        return self.path


class PasswordCredential(BaseModel):
    """Password authentication."""

    model_config = {"frozen": True}

    kind: Literal["password"] = "password"
    secret: SecretStr


CredentialRef = Annotated[
    Union[KeyFileCredential, PasswordCredential],
    Field(discriminator="kind"),
]


class TargetDescriptor(BaseModel):
    """Where to connect and as whom."""

    model_config = {"frozen": True}

    host: str = Field(min_length=1)
    port: int = Field(default=22, ge=1, le=65535)
    username: str = Field(min_length=1)
    credential: CredentialRef
    label: Optional[str] = None

    @property
    def address(self) -> str:
        return f"{self.username}@{self.host}:{self.port}"

    def same_endpoint(self, other: "TargetDescriptor") -> bool:
        """True when *other* addresses the same host, port and user."""
        return (
            self.host == other.host
            and self.port == other.port
            and self.username == other.username
        )
