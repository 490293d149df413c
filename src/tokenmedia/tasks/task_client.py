"""Submission of HTTP tasks to a managed queue or directly to their target."""

from __future__ import annotations

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

import httpx

from .task_errors import TaskConfigurationError, TaskSubmissionError
from .task_models import (
    DIRECT_DISPATCH_PREFIX,
    QUEUE_NAME_HEADER,
    TASK_NAME_HEADER,
    HttpTask,
    TaskOption,
    TokenProcessingTokenMessage,
    TokenProcessingWalletRemovalMessage,
    TokenTransferProcessingMessage,
    with_basic_auth,
    with_json,
)

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_HOST = "https://cloudtasks.googleapis.com"


class Dispatcher(ABC):
    @abstractmethod
    async def send(self, queue: str, task: HttpTask) -> None:
        """Hand ``task`` over for delivery."""


@dataclass(slots=True)
class QueueDispatcher(Dispatcher):
    """Cloud Tasks REST back-end; the queue owns delivery and retries."""

    client: httpx.AsyncClient
    host: str = DEFAULT_QUEUE_HOST
    access_token: str | None = None
    log: logging.Logger = field(default_factory=lambda: logger)

    async def send(self, queue: str, task: HttpTask) -> None:
        url = f"{self.host.rstrip('/')}/v2/{queue}/tasks"
        headers = {"Authorization": f"Bearer {self.access_token}"} if self.access_token else {}
        try:
            response = await self.client.post(url, json=task.to_queue_payload(), headers=headers)
        except httpx.HTTPError as exc:
            raise TaskSubmissionError(f"task queue unreachable: {exc}", queue=queue) from exc
        if response.status_code >= 400:
            raise TaskSubmissionError(
                f"task queue rejected task: HTTP {response.status_code}",
                queue=queue,
                status_code=response.status_code,
            )
        self.log.info("tasks.queue.submitted", extra={"queue": queue, "url": task.url})


@dataclass(slots=True)
class DirectDispatcher(Dispatcher):
    """Sends the task from this process in the background, without retries."""

    client: httpx.AsyncClient
    log: logging.Logger = field(default_factory=lambda: logger)
    _pending: set[asyncio.Task[None]] = field(default_factory=set)

    async def send(self, queue: str, task: HttpTask) -> None:
        background = asyncio.create_task(self.deliver(queue, task))
        self._pending.add(background)
        background.add_done_callback(self._pending.discard)

    async def deliver(self, queue: str, task: HttpTask) -> httpx.Response | None:
        if task.schedule_time is not None:
            delay = (task.schedule_time - datetime.now(timezone.utc)).total_seconds()
            if delay > 0:
                await asyncio.sleep(delay)

        headers = dict(task.headers)
        if not task.name:
            headers[TASK_NAME_HEADER] = DIRECT_DISPATCH_PREFIX + uuid.uuid4().hex
        headers[QUEUE_NAME_HEADER] = queue
        request = self.client.request(task.method, task.url, headers=headers, content=task.body)
        timeout = task.dispatch_deadline.total_seconds() if task.dispatch_deadline is not None else None
        try:
            response = await asyncio.wait_for(request, timeout=timeout)
        except (httpx.HTTPError, asyncio.TimeoutError) as exc:
            self.log.error(
                "tasks.direct.failed",
                extra={"queue": queue, "url": task.url, "error": str(exc) or type(exc).__name__},
            )
            return None
        self.log.info(
            "tasks.direct.delivered",
            extra={"queue": queue, "url": task.url, "status_code": response.status_code},
        )
        return response

    async def drain(self) -> None:
        """Wait for every background delivery started so far."""

        if self._pending:
            await asyncio.gather(*list(self._pending))


@dataclass(slots=True)
class TaskClient:
    dispatcher: Dispatcher
    token_processing_url: str = ""
    token_processing_queue: str = ""
    token_processing_secret: str | None = None
    skip_queues: frozenset[str] = frozenset()
    log: logging.Logger = field(default_factory=lambda: logger)

    @classmethod
    def create(
        cls,
        client: httpx.AsyncClient,
        *,
        direct_dispatch: bool,
        queue_host: str | None = None,
        access_token: str | None = None,
        skip_queues: Iterable[str] = (),
        **targets: str | None,
    ) -> "TaskClient":
        dispatcher: Dispatcher
        if direct_dispatch:
            logger.info("tasks.client.direct_dispatch")
            dispatcher = DirectDispatcher(client)
        else:
            dispatcher = QueueDispatcher(client, host=queue_host or DEFAULT_QUEUE_HOST, access_token=access_token)
        return cls(dispatcher=dispatcher, skip_queues=frozenset(skip_queues), **targets)

    async def submit(self, queue: str, url: str, *options: TaskOption) -> bool:
        """Build and send a POST task; returns ``False`` when ``queue`` is skipped."""

        if not queue or not url:
            raise TaskConfigurationError("task queue and target url must be configured")
        if queue in self.skip_queues:
            self.log.info("tasks.queue.skipped", extra={"queue": queue, "url": url})
            return False
        task = HttpTask(url=url)
        for option in options:
            task = option(task)
        await self.dispatcher.send(queue, task)
        return True

    def _target(self, path: str) -> str:
        if not self.token_processing_url:
            raise TaskConfigurationError("token processing url is not configured")
        return f"{self.token_processing_url.rstrip('/')}{path}"

    def _auth(self) -> tuple[TaskOption, ...]:
        return (with_basic_auth(self.token_processing_secret),) if self.token_processing_secret else ()

    async def create_task_for_token_processing(
        self, message: TokenProcessingTokenMessage, *options: TaskOption
    ) -> bool:
        return await self.submit(
            self.token_processing_queue,
            self._target("/media/process/token"),
            with_json(message),
            *self._auth(),
            *options,
        )

    async def create_task_for_token_transfer_processing(
        self, message: TokenTransferProcessingMessage, *options: TaskOption
    ) -> bool:
        return await self.submit(
            self.token_processing_queue,
            self._target("/token/transfer"),
            with_json(message),
            *self._auth(),
            *options,
        )

    async def create_task_for_wallet_removal(
        self, message: TokenProcessingWalletRemovalMessage, *options: TaskOption
    ) -> bool:
        return await self.submit(
            self.token_processing_queue,
            self._target("/owners/wallet-removal"),
            with_json(message),
            *self._auth(),
            *options,
        )


__all__ = ["DEFAULT_QUEUE_HOST", "DirectDispatcher", "Dispatcher", "QueueDispatcher", "TaskClient"]
