"""
ReplayPerf Common Utilities

Shared utilities, helpers and errors used across ReplayPerf modules.
"""

from .utils import (
    TranscriptLoader,
    decode_transcript,
    encode_transcript,
    parse_http_date,
    status_class,
    save_report,
    STATUS_CLASSES,
)
from .errors import (
    ReplayPerfError,
    ConfigError,
    MalformedInputError,
    RequestFailure,
    WorkerFatalError,
)

__all__ = [
    'TranscriptLoader',
    'decode_transcript',
    'encode_transcript',
    'parse_http_date',
    'status_class',
    'save_report',
    'STATUS_CLASSES',
    'ReplayPerfError',
    'ConfigError',
    'MalformedInputError',
    'RequestFailure',
    'WorkerFatalError',
]
