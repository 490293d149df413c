"""Token media pipeline."""

from .pipeline_errors import (
    BadTokenError,
    BusyDuplicateError,
    FatalPipelineError,
    ImageResultRequiredError,
    NoMediaURLsError,
    PipelineError,
    RequiredSignedTokenError,
    TransientError,
)
from .pipeline_locks import InMemoryLockBackend, LockBackend, RedisLockBackend, ThrottleLocker
from .pipeline_media import MediaAssembler
from .pipeline_models import (
    JobOptions,
    PipelineJob,
    PipelineMetadata,
    PipelineState,
    ProcessingCause,
    StepState,
    StepStatus,
    TokenPipelineResult,
)
from .pipeline_service import TokenProcessor

__all__ = [
    "BadTokenError",
    "BusyDuplicateError",
    "FatalPipelineError",
    "ImageResultRequiredError",
    "InMemoryLockBackend",
    "JobOptions",
    "LockBackend",
    "MediaAssembler",
    "NoMediaURLsError",
    "PipelineError",
    "PipelineJob",
    "PipelineMetadata",
    "PipelineState",
    "ProcessingCause",
    "RedisLockBackend",
    "RequiredSignedTokenError",
    "StepState",
    "StepStatus",
    "ThrottleLocker",
    "TokenPipelineResult",
    "TokenProcessor",
    "TransientError",
]
