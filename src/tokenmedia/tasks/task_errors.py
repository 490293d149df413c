"""Errors raised while submitting tasks."""

from __future__ import annotations


class TaskError(Exception):
    """Base class for task submission failures."""


class TaskSubmissionError(TaskError):
    def __init__(self, message: str, *, queue: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.queue = queue
        self.status_code = status_code


class TaskConfigurationError(TaskError):
    """The client lacks the queue or target URL needed for a task."""


__all__ = ["TaskConfigurationError", "TaskError", "TaskSubmissionError"]
