"""Task queue client and task message models."""

from .task_client import DirectDispatcher, Dispatcher, QueueDispatcher, TaskClient
from .task_errors import TaskConfigurationError, TaskError, TaskSubmissionError
from .task_models import (
    HttpTask,
    TokenChainAddress,
    TokenProcessingBatchMessage,
    TokenProcessingTokenMessage,
    TokenProcessingWalletRemovalMessage,
    TokenTransfer,
    TokenTransferProcessingMessage,
    with_basic_auth,
    with_deadline,
    with_delay,
    with_json,
)

__all__ = [
    "DirectDispatcher",
    "Dispatcher",
    "HttpTask",
    "QueueDispatcher",
    "TaskClient",
    "TaskConfigurationError",
    "TaskError",
    "TaskSubmissionError",
    "TokenChainAddress",
    "TokenProcessingBatchMessage",
    "TokenProcessingTokenMessage",
    "TokenProcessingWalletRemovalMessage",
    "TokenTransfer",
    "TokenTransferProcessingMessage",
    "with_basic_auth",
    "with_deadline",
    "with_delay",
    "with_json",
]
