"""
Logging Configuration.

All tunables of the service logger and its record streams. Values come from
keyword arguments, ``LOGLANE_*`` environment variables or a ``.env`` file.
The deployment color tag is also read from the bare ``SERVICE_COLOR`` variable.
"""

from __future__ import annotations

import os
import socket
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingSettings(BaseSettings):
    """Service logger configuration. Immutable once built."""

    model_config = SettingsConfigDict(
        env_prefix="LOGLANE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    name: Optional[str] = Field(default=None, description="Logger name (defaults to 'prod' or 'dev')")
    level: Optional[str] = Field(default=None, description="TRACE, DEBUG, INFO, WARN, ERROR or FATAL")
    production: bool = Field(default=False, description="Production mode, default level becomes WARN")
    docker: bool = Field(default=False, description="Console-only JSON output, no log file")
    silence: bool = Field(default=False, description="Drop every log call")
    log_dir: str = Field(default="logs", description="Directory of the log file")
    log_file_name: str = Field(default="service-log.json", description="File name inside log_dir")
    log_fields: dict[str, Any] = Field(
        default_factory=dict,
        description="Static fields merged into every record (JSON object in env)",
    )
    service_name: str = Field(default="undefined", description="Service name")
    service_color: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("service_color", "LOGLANE_SERVICE_COLOR", "SERVICE_COLOR"),
        description="Deployment color tag stamped as current_color",
    )
    flush_size: int = Field(default=10, gt=0, description="Buffered lines that trigger a flush")
    flush_timeout_ms: int = Field(default=5000, ge=0, description="Idle time before a partial flush")

    @property
    def flush_timeout(self) -> float:
        """Flush timeout in seconds."""
        return self.flush_timeout_ms / 1000.0

    @property
    def log_file(self) -> str:
        return os.path.join(self.log_dir, self.log_file_name)


@dataclass(frozen=True)
class ProcessIdentity:
    """Host, pid and color tag stamped onto records."""

    host: str
    pid: int
    service_color: Optional[str] = None

    @classmethod
    def current(cls, service_color: Optional[str] = None) -> "ProcessIdentity":
        return cls(host=socket.gethostname(), pid=os.getpid(), service_color=service_color)
