"""Custom exceptions for the computation engine.

Kernel, dispatcher and pool exceptions live here to avoid circular
imports between modules.
"""


class EngineError(Exception):
    """Base exception for all engine errors."""


class UnknownTaskTypeError(EngineError):
    """Raised when a task message names a type the dispatcher has no handler for."""

    def __init__(self, task_type: object) -> None:
        super().__init__(f"Unknown task type: {task_type}")
        self.task_type = task_type


class InvalidPayloadError(EngineError):
    """Raised when a task payload is missing fields or has the wrong shape."""


class TaskCancelledError(EngineError):
    """Raised inside a running task once its cancel token fires."""

    def __init__(self, message: str = "Task was cancelled") -> None:
        super().__init__(message)


class TaskFailedError(EngineError):
    """Raised to a pool caller when the engine answers with an error response."""

    def __init__(self, task_id: str, message: str) -> None:
        super().__init__(message)
        self.task_id = task_id


class PoolTerminatedError(EngineError):
    """Raised for tasks still pending when the worker pool is stopped."""
