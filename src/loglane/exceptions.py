"""
Loglane error taxonomy.

Ingress validation errors are raised internally and reported at the stream
boundary; destination errors propagate to whoever constructs a stream.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class LoglaneError(Exception):
    """Root of all loglane errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}


class InvalidRecordType(LoglaneError):
    """A record handed to ``write`` was not a mapping.

    Caught at the ingress boundary and logged; logging calls never crash the host.
    """

    def __init__(self, record: Any) -> None:
        type_name = type(record).__name__
        super().__init__(
            f"Record must be a mapping, got {type_name}",
            code="INVALID_RECORD_TYPE",
            details={"type": type_name, "record": repr(record)[:200]},
        )


class DestinationUnavailable(LoglaneError):
    """The file destination could not be opened or created."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(
            f"Log destination '{path}' is unavailable: {reason}",
            code="DESTINATION_UNAVAILABLE",
            details={"path": path, "reason": reason},
        )
