"""Pydantic settings models for noteporter."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, Field

from ..attachments.hasher import Sha256Hasher


def _expand_env_var(value: Optional[str]) -> Optional[str]:
    """Expand $VAR and ${VAR} references, leaving unknown variables untouched."""
    import os
    import re

    if value is None:
        return None

    pattern = r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)"

    def replace(match: re.Match) -> str:
        var_name = match.group(1) or match.group(2)
        return os.environ.get(var_name, match.group(0))

    return re.sub(pattern, replace, value)


class ImporterSettings(BaseModel):
    """
    Settings handed to every provider.

    Only ``hasher`` and ``reporter`` matter to the core pipeline. The network
    fields are opaque passthrough for network providers, and unknown keys are
    kept so callers can hand provider-specific options through.

    Example:
        settings = ImporterSettings(reporter=print, access_token="$GRAPH_TOKEN")

    YAML format:
        client_id: 00000000-0000-0000-0000-000000000000
        access_token: ${GRAPH_TOKEN}
        page_size: 50
    """

    hasher: Any = Field(default_factory=Sha256Hasher, description="Content hasher for attachments")
    reporter: Optional[Callable[..., None]] = Field(None, description="Progress callback")
    storage: Any = Field(None, description="Note storage shared with the packer")
    resolver: Any = Field(None, description="Attachment resolver override")

    client_id: Optional[str] = Field(None, description="OAuth client id for network providers")
    client_type: Literal["browser", "node", "cli"] = Field("cli", description="Kind of auth client")
    redirect_uri: Optional[str] = Field(None, description="OAuth redirect URI")
    access_token: Optional[str] = Field(None, description="Bearer token for Microsoft Graph")
    graph_base_url: str = Field(
        "https://graph.microsoft.com/v1.0",
        description="Base URL of the Microsoft Graph API",
    )
    page_size: int = Field(100, ge=1, le=100, description="Items per Graph page request")
    request_timeout: float = Field(60.0, gt=0, description="Per-request timeout in seconds")

    model_config = {"extra": "allow", "arbitrary_types_allowed": True}

    def model_post_init(self, __context: object) -> None:
        """Expand environment variables in the access token."""
        if self.access_token:
            object.__setattr__(self, "access_token", _expand_env_var(self.access_token))

    def report(self, message: Any) -> None:
        """Forward a progress message to the reporter, if any."""
        if self.reporter is not None:
            self.reporter(message)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "ImporterSettings":
        """Load settings from a YAML string."""
        import yaml

        data = yaml.safe_load(yaml_str) or {}
        return cls.model_validate(data)

    @classmethod
    def from_yaml_file(cls, path: Path) -> "ImporterSettings":
        """Load settings from a YAML file."""
        return cls.from_yaml(path.read_text(encoding="utf-8"))


class ArchiveConfig(BaseModel):
    """Configuration for the streaming zip writer."""

    compression: Literal["deflated", "stored"] = Field("deflated", description="Zip compression method")
    compress_level: Optional[int] = Field(None, ge=0, le=9, description="Deflate level (None = default)")
    queue_size: int = Field(16, ge=1, description="Output chunks buffered before writers wait")
    chunk_size: int = Field(64 * 1024, ge=1024, description="Bytes fed to the compressor per write")

    model_config = {"extra": "forbid"}
