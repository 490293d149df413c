"""Error taxonomy of a token pipeline run."""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for pipeline failures."""


class BadTokenError(PipelineError):
    """Metadata or media is fundamentally unusable; persisted and not retried."""


class NoMediaURLsError(BadTokenError):
    """Metadata contains neither an image nor an animation URL."""


class RequiredSignedTokenError(BadTokenError):
    """The contract only accepts signed tokens and this one is not signed."""


class TransientError(PipelineError):
    """Network, 5xx or timeout failure; persisted and eligible for retry."""


class ImageResultRequiredError(PipelineError):
    """An image was required but could not be cached.

    Raised after the run is persisted; ``result`` carries the persisted outcome.
    """

    def __init__(self, message: str, *, result: object | None = None) -> None:
        super().__init__(message)
        self.result = result


class BusyDuplicateError(PipelineError):
    """Another run for the same token currently holds the lock."""

    def __init__(self, key: str) -> None:
        super().__init__(f"token '{key}' is already being processed")
        self.key = key


class FatalPipelineError(PipelineError):
    """The run outcome could not be persisted."""


__all__ = [
    "BadTokenError",
    "BusyDuplicateError",
    "FatalPipelineError",
    "ImageResultRequiredError",
    "NoMediaURLsError",
    "PipelineError",
    "RequiredSignedTokenError",
    "TransientError",
]
