"""Server configuration."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml


@dataclass
class DatabaseConfig:
    """Database configuration."""
    provider: str = "lancedb"  # "lancedb" | "memory"
    path: str = "~/.convomemory/lancedb"
    uri: Optional[str] = None  # For cloud

    def __post_init__(self):
        if self.provider not in ("lancedb", "memory"):
            raise ValueError(
                f"Invalid db provider: {self.provider}. "
                f"Valid options: 'lancedb', 'memory'"
            )
        # Expand home directory
        self.path = str(Path(self.path).expanduser())


@dataclass
class ServerConfig:
    """HTTP server configuration."""
    host: str = "127.0.0.1"
    port: int = 18791


@dataclass
class MemoryConfig:
    """Paging configuration for conversations and interactions."""
    default_max_results: int = 10
    delete_page_size: int = 30  # Page size when draining a conversation on delete

    def __post_init__(self):
        if self.default_max_results < 1:
            raise ValueError("default_max_results must be >= 1")
        if self.delete_page_size < 1:
            raise ValueError("delete_page_size must be >= 1")


@dataclass
class AccessControlConfig:
    """Per-user ownership of conversations.

    When enabled, the requester is taken from ``user_header``; conversations
    are owned by their creator and hidden from everyone else.
    """
    enabled: bool = False
    user_header: str = "X-Convomemory-User"


@dataclass
class ConvoMemoryConfig:
    """Full service configuration."""
    instance_id: str = "default"
    db: DatabaseConfig = field(default_factory=DatabaseConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    access_control: AccessControlConfig = field(default_factory=AccessControlConfig)

    @classmethod
    def from_file(cls, path: str | Path) -> "ConvoMemoryConfig":
        """Load configuration from YAML file."""
        path = Path(path).expanduser()
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> "ConvoMemoryConfig":
        """Create configuration from dictionary."""
        db_data = data.get("db", {})
        server_data = data.get("server", {})
        memory_data = data.get("memory", {})
        access_data = data.get("access_control", {})

        return cls(
            instance_id=data.get("instance_id", "default"),
            db=DatabaseConfig(**db_data) if db_data else DatabaseConfig(),
            server=ServerConfig(**server_data) if server_data else ServerConfig(),
            memory=MemoryConfig(**memory_data) if memory_data else MemoryConfig(),
            access_control=(
                AccessControlConfig(**access_data) if access_data else AccessControlConfig()
            ),
        )

    @classmethod
    def from_env(cls) -> "ConvoMemoryConfig":
        """Create configuration from environment variables."""
        config_path = os.environ.get(
            "CONVOMEMORY_CONFIG",
            "~/.convomemory/config.yaml"
        )
        return cls.from_file(config_path)

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not self.instance_id:
            errors.append("instance_id is required")

        if self.db.provider == "lancedb" and not (self.db.path or self.db.uri):
            errors.append("db.path or db.uri is required for the lancedb provider")

        if self.access_control.enabled and not self.access_control.user_header:
            errors.append("access_control.user_header is required when enabled")

        return errors
