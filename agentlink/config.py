"""Configuration management for the A2A core."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def _timeout_from_env(name: str, default: str) -> Optional[float]:
    value = float(os.getenv(name, default))
    return value if value > 0 else None


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment variables.

    A timeout of ``None`` disables the bound entirely.
    """

    delegation_timeout: Optional[float] = 30.0
    broadcast_timeout: Optional[float] = 10.0
    system_id: str = "a2a_system"
    system_name: str = "A2A System"
    log_level: str = "INFO"
    environment: str = "development"

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables."""
        return cls(
            delegation_timeout=_timeout_from_env("A2A_DELEGATION_TIMEOUT", "30"),
            broadcast_timeout=_timeout_from_env("A2A_BROADCAST_TIMEOUT", "10"),
            system_id=os.getenv("A2A_SYSTEM_ID", "a2a_system"),
            system_name=os.getenv("A2A_SYSTEM_NAME", "A2A System"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            environment=os.getenv("ENVIRONMENT", "development"),
        )


# Global config instance
config = Config.from_env()
