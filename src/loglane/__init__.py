"""
Loglane: structured-log emission layer.

Records are normalized into a canonical field schema, rendered to the console
(colored text or compact JSON) and, when a file destination is configured,
buffered and flushed as newline-delimited JSON by size or timeout.

Library: structlog for the logger facade and diagnostics, orjson for JSON,
pydantic-settings for configuration.
"""

from .config import LoggingSettings, ProcessIdentity
from .core import ServiceLogger
from .exceptions import DestinationUnavailable, InvalidRecordType, LoglaneError
from .normalizer import OverwriteMode, RecordNormalizer, normalize
from .stream import RecordStream

__all__ = [
    "DestinationUnavailable",
    "InvalidRecordType",
    "LoggingSettings",
    "LoglaneError",
    "OverwriteMode",
    "ProcessIdentity",
    "RecordNormalizer",
    "RecordStream",
    "ServiceLogger",
    "normalize",
]
