"""Task descriptors and the JSON messages carried in their bodies."""

from __future__ import annotations

import base64
import dataclasses
import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..domain.tokens import Chain, normalize_address

QUEUE_NAME_HEADER = "X-CloudTasks-QueueName"
TASK_NAME_HEADER = "X-CloudTasks-TaskName"
DIRECT_DISPATCH_PREFIX = "direct-dispatch-"


class TokenChainAddress(BaseModel):
    model_config = ConfigDict(extra="ignore")

    address: str
    chain: Chain = Chain.ETHEREUM

    @field_validator("address")
    @classmethod
    def _normalize_address(cls, value: str) -> str:
        return normalize_address(value)

    @field_validator("chain", mode="before")
    @classmethod
    def _parse_chain(cls, value: Any) -> Chain:
        return Chain.parse(value)


class TokenTransfer(BaseModel):
    model_config = ConfigDict(extra="ignore")

    from_address: str = ""
    to_address: str = ""
    token: TokenChainAddress
    amount: str = "0x0"

    @field_validator("from_address", "to_address")
    @classmethod
    def _normalize_address(cls, value: str) -> str:
        return normalize_address(value) if value else ""


class TokenTransferProcessingMessage(BaseModel):
    transfers: list[TokenTransfer]


class TokenProcessingTokenMessage(BaseModel):
    """Request to run the pipeline for one token."""

    model_config = ConfigDict(extra="ignore")

    token_id: str = Field(..., min_length=1)
    contract_address: str = Field(..., min_length=1)
    chain: Chain = Chain.ETHEREUM
    owner_address: str = ""
    image_keywords: list[str] = Field(default_factory=list)
    animation_keywords: list[str] = Field(default_factory=list)
    refresh_metadata: bool = False
    require_image: bool = False
    is_spam: bool = False
    profile_image_key: str | None = None
    placeholder_image_url: str | None = None
    metadata: dict[str, Any] | None = None
    cause: str = "refresh"

    @field_validator("chain", mode="before")
    @classmethod
    def _parse_chain(cls, value: Any) -> Chain:
        return Chain.parse(value)


class TokenProcessingBatchMessage(BaseModel):
    tokens: list[TokenProcessingTokenMessage] = Field(..., min_length=1)


class TokenProcessingWalletRemovalMessage(BaseModel):
    user_id: str = Field(..., min_length=1)
    wallet_ids: list[str]


@dataclass(slots=True)
class HttpTask:
    """Queue-agnostic description of one HTTP task."""

    url: str
    method: str = "POST"
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    name: str = ""
    schedule_time: datetime | None = None
    dispatch_deadline: timedelta | None = None

    def with_header(self, key: str, value: str) -> "HttpTask":
        return dataclasses.replace(self, headers={**self.headers, key: value})

    def to_queue_payload(self) -> dict[str, Any]:
        """Body of a Cloud Tasks ``tasks.create`` call."""

        http_request: dict[str, Any] = {"http_method": self.method, "url": self.url}
        if self.headers:
            http_request["headers"] = dict(self.headers)
        if self.body:
            http_request["body"] = base64.b64encode(self.body).decode("ascii")
        task: dict[str, Any] = {"http_request": http_request}
        if self.name:
            task["name"] = self.name
        if self.schedule_time is not None:
            task["schedule_time"] = self.schedule_time.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
        if self.dispatch_deadline is not None:
            task["dispatch_deadline"] = f"{int(self.dispatch_deadline.total_seconds())}s"
        return {"task": task}


TaskOption = Callable[[HttpTask], HttpTask]


def with_json(message: BaseModel | dict[str, Any]) -> TaskOption:
    if isinstance(message, BaseModel):
        body = message.model_dump_json().encode("utf-8")
    else:
        body = json.dumps(message).encode("utf-8")

    def apply(task: HttpTask) -> HttpTask:
        return dataclasses.replace(task.with_header("Content-Type", "application/json"), body=body)

    return apply


def basic_auth_header(secret: str) -> str:
    token = base64.b64encode(f"{secret}:".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def with_basic_auth(secret: str) -> TaskOption:
    return lambda task: task.with_header("Authorization", basic_auth_header(secret))


def with_delay(delay: timedelta, *, now: datetime | None = None) -> TaskOption:
    scheduled = (now or datetime.now(timezone.utc)) + delay
    return lambda task: dataclasses.replace(task, schedule_time=scheduled)


def with_deadline(deadline: timedelta) -> TaskOption:
    return lambda task: dataclasses.replace(task, dispatch_deadline=deadline)


__all__ = [
    "DIRECT_DISPATCH_PREFIX",
    "HttpTask",
    "QUEUE_NAME_HEADER",
    "TASK_NAME_HEADER",
    "TaskOption",
    "TokenChainAddress",
    "TokenProcessingBatchMessage",
    "TokenProcessingTokenMessage",
    "TokenProcessingWalletRemovalMessage",
    "TokenTransfer",
    "TokenTransferProcessingMessage",
    "basic_auth_header",
    "with_basic_auth",
    "with_deadline",
    "with_delay",
    "with_json",
]
