"""Application-level error types."""


class PjobsError(Exception):
    """Base error for the job runner."""


class JobFileError(PjobsError):
    """Raised when the job file cannot be read, parsed or written."""


class LogReplayError(PjobsError):
    """Raised when a log file cannot be replayed."""


class InfrastructureError(PjobsError):
    """Raised when the runner itself is broken; fatal to the whole run."""


class LaunchError(InfrastructureError):
    """Raised when a job subprocess cannot be created."""


class LogWriteError(InfrastructureError):
    """Raised when a log record cannot be appended to the log file."""


class FatalError(InfrastructureError):
    """Raised by the fatal log level after the record is emitted."""
