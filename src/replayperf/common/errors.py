"""
ReplayPerf Errors

Exception hierarchy shared by the parser, workers and runner.
"""


class ReplayPerfError(Exception):
    """Base class for all replayperf errors."""


class ConfigError(ReplayPerfError, ValueError):
    """Invalid configuration value."""


class MalformedInputError(ReplayPerfError, ValueError):
    """
    Transcript content that cannot be turned into a replayable request.

    Raised when a request body recovered by Content-Length does not match the
    declared length. Parsing stops; no testing is done.
    """


class RequestFailure(ReplayPerfError):
    """A single replayed request failed (transport error, no response, mismatch)."""

    def __init__(self, message: str, status_line: str = ""):
        super().__init__(message)
        self.status_line = status_line


class WorkerFatalError(ReplayPerfError, RuntimeError):
    """A worker could not build its transport and produced no result."""

    def __init__(self, worker_id: int, message: str):
        super().__init__(f"Worker {worker_id}: {message}")
        self.worker_id = worker_id
