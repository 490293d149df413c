"""Address-activity webhook payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..domain.tokens import Chain
from ..tasks.task_models import TokenChainAddress, TokenTransfer


class RawContract(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    address: str = ""
    raw_value: str | None = Field(None, alias="rawValue")
    decimals: int | None = None


class ActivityItem(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    block_number: str | None = Field(None, alias="blockNum")
    hash: str | None = None
    from_address: str = Field("", validation_alias=AliasChoices("fromAddress", "from_address"))
    to_address: str = Field("", validation_alias=AliasChoices("toAddress", "to_address"))
    value: Any = None
    asset: str | None = None
    raw_contract: RawContract = Field(default_factory=RawContract, alias="rawContract")

    def amount(self) -> str:
        """Hex amount; numeric values from the vendor are converted."""

        if self.raw_contract.raw_value:
            return self.raw_contract.raw_value
        if isinstance(self.value, (int, float)):
            return hex(int(self.value))
        if isinstance(self.value, str) and self.value:
            return self.value
        return "0x0"


class AddressActivityEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    network: Chain
    activity: list[ActivityItem] = Field(default_factory=list)

    @field_validator("network", mode="before")
    @classmethod
    def _parse_network(cls, value: Any) -> Chain:
        return Chain.parse(value)


class AddressActivityWebhook(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    webhook_id: str | None = Field(None, alias="webhookId")
    id: str | None = None
    created_at: datetime | None = Field(None, alias="createdAt")
    type: str | None = None
    event: AddressActivityEvent

    def transfers(self) -> list[TokenTransfer]:
        """One transfer per activity item that names a contract."""

        chain = self.event.network
        return [
            TokenTransfer(
                from_address=item.from_address,
                to_address=item.to_address,
                token=TokenChainAddress(address=item.raw_contract.address, chain=chain),
                amount=item.amount(),
            )
            for item in self.event.activity
            if item.raw_contract.address
        ]


class SuccessResponse(BaseModel):
    success: bool = True


class WebhookErrorResponse(BaseModel):
    error: str


__all__ = [
    "ActivityItem",
    "AddressActivityEvent",
    "AddressActivityWebhook",
    "RawContract",
    "SuccessResponse",
    "WebhookErrorResponse",
]
