"""Persistence of pipeline runs, token definitions and their media."""

from __future__ import annotations

import dataclasses
import json
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..db.db_models import (
    ContractModel,
    SplitModel,
    TokenMediaModel,
    TokenModel,
    TokenOwnershipModel,
    TokenPipelineRunModel,
)
from ..domain.media import Media
from ..domain.tokens import Chain, TokenIdentifier, TokenMetadata, TokenProperties, TokenRecord
from ..exceptions import ensure_found, handle_sqlalchemy_errors
from ..transport.transport_models import is_renderable_url


def new_id() -> str:
    return uuid.uuid4().hex


def _loads(value: str | None) -> Any:
    if not value:
        return {}
    return json.loads(value)


@dataclass(slots=True)
class InsertTokenPipelineResultsParams:
    run_id: str
    token: TokenIdentifier
    processing_cause: str
    media_id: str
    media: Media
    metadata: TokenMetadata = field(default_factory=dict)
    name: str = ""
    description: str = ""
    properties: TokenProperties = field(default_factory=TokenProperties)
    pipeline_metadata: dict[str, Any] = field(default_factory=dict)
    processor_version: str = ""
    error: str | None = None
    is_spam: bool | None = None


@dataclass(slots=True)
class TokenMediaRecord:
    id: str
    token: TokenIdentifier
    active: bool
    media: Media
    processing_job_id: str
    created_at: datetime


@dataclass(slots=True)
class PipelineRunRecord:
    run_id: str
    token: TokenIdentifier
    processing_cause: str
    metadata: TokenMetadata
    name: str
    description: str
    properties: TokenProperties
    pipeline_metadata: dict[str, Any]
    media_id: str
    processor_version: str
    error: str | None
    created_at: datetime


@dataclass(slots=True)
class SplitRecord:
    id: str
    chain: Chain
    address: str
    name: str
    metadata: dict[str, Any]


def _media_record(model: TokenMediaModel) -> TokenMediaRecord:
    return TokenMediaRecord(
        id=model.id,
        token=TokenIdentifier(model.chain, model.contract_address, model.token_id),
        active=model.active,
        media=Media.from_dict(_loads(model.media_json)),
        processing_job_id=model.processing_job_id,
        created_at=model.created_at,
    )


class TokenPipelineRepository:
    """Manage token definitions, token media and pipeline run rows."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    @staticmethod
    def _token_query(token: TokenIdentifier):
        return select(TokenModel).where(
            TokenModel.chain == int(token.chain),
            TokenModel.contract_address == token.contract_address,
            TokenModel.token_id == token.token_id,
        )

    def insert_token_pipeline_results(self, params: InsertTokenPipelineResultsParams) -> TokenMediaRecord:
        """Store the outcome of one run in a single transaction.

        The new media becomes active unless it would replace servable media
        with unservable media. Animation-like media without a renderable
        thumbnail inherits the previous renderable thumbnail.
        """

        with self._session_factory() as session, handle_sqlalchemy_errors(entity="token_pipeline_run"):
            now = datetime.utcnow()
            token_row = session.execute(self._token_query(params.token)).scalar_one_or_none()
            if token_row is None:
                token_row = TokenModel(
                    id=new_id(),
                    chain=int(params.token.chain),
                    contract_address=params.token.contract_address,
                    token_id=params.token.token_id,
                    created_at=now,
                    updated_at=now,
                )
                session.add(token_row)

            previous = session.get(TokenMediaModel, token_row.media_id) if token_row.media_id else None
            previous_media = Media.from_dict(_loads(previous.media_json)) if previous is not None else None

            media = params.media
            activate = not (
                previous_media is not None and previous_media.is_servable() and not media.is_servable()
            )
            if (
                activate
                and previous_media is not None
                and media.media_type.is_animation_like()
                and not is_renderable_url(media.thumbnail_url)
                and is_renderable_url(previous_media.thumbnail_url)
            ):
                media = dataclasses.replace(media, thumbnail_url=previous_media.thumbnail_url)

            if activate and previous is not None:
                previous.active = False
                previous.updated_at = now

            media_row = TokenMediaModel(
                id=params.media_id,
                chain=int(params.token.chain),
                contract_address=params.token.contract_address,
                token_id=params.token.token_id,
                active=activate,
                media_json=json.dumps(media.to_dict()),
                processing_job_id=params.run_id,
                created_at=now,
                updated_at=now,
            )
            session.add(media_row)
            session.flush()

            session.add(
                TokenPipelineRunModel(
                    run_id=params.run_id,
                    chain=int(params.token.chain),
                    contract_address=params.token.contract_address,
                    token_id=params.token.token_id,
                    processing_cause=params.processing_cause,
                    metadata_json=json.dumps(params.metadata),
                    name=params.name,
                    description=params.description,
                    properties_json=json.dumps(params.properties.to_dict()),
                    pipeline_metadata_json=json.dumps(params.pipeline_metadata),
                    media_id=media_row.id,
                    processor_version=params.processor_version,
                    error=params.error,
                    created_at=now,
                )
            )

            if params.metadata:
                token_row.metadata_json = json.dumps(params.metadata)
            if params.name:
                token_row.name = params.name
            if params.description:
                token_row.description = params.description
            if params.is_spam is not None:
                token_row.is_spam = params.is_spam
            if activate:
                token_row.media_id = media_row.id
            token_row.updated_at = now
            session.commit()
            return _media_record(media_row)

    def get_token_by_identifiers(self, token: TokenIdentifier) -> TokenRecord | None:
        with self._session_factory() as session, handle_sqlalchemy_errors(entity="token"):
            model = session.execute(self._token_query(token)).scalar_one_or_none()
            if model is None:
                return None
            return TokenRecord(
                id=model.id,
                identifier=token,
                name=model.name,
                description=model.description,
                metadata=_loads(model.metadata_json),
                media_id=model.media_id,
                is_spam=model.is_spam,
            )

    def get_token_media(self, media_id: str) -> TokenMediaRecord:
        with self._session_factory() as session, handle_sqlalchemy_errors(entity="token_media"):
            model = ensure_found(session.get(TokenMediaModel, media_id), entity="token_media", identifier=media_id)
            return _media_record(model)

    def get_pipeline_run(self, run_id: str) -> PipelineRunRecord:
        with self._session_factory() as session, handle_sqlalchemy_errors(entity="token_pipeline_run"):
            model = ensure_found(
                session.get(TokenPipelineRunModel, run_id),
                entity="token_pipeline_run",
                identifier=run_id,
            )
            return PipelineRunRecord(
                run_id=model.run_id,
                token=TokenIdentifier(model.chain, model.contract_address, model.token_id),
                processing_cause=model.processing_cause,
                metadata=_loads(model.metadata_json),
                name=model.name,
                description=model.description,
                properties=TokenProperties.from_dict(_loads(model.properties_json)),
                pipeline_metadata=_loads(model.pipeline_metadata_json),
                media_id=model.media_id,
                processor_version=model.processor_version,
                error=model.error,
                created_at=model.created_at,
            )

    def get_token_metadata(self, contract_address: str, chain: Chain) -> dict[str, Any]:
        """Contract-level metadata stored for ``contract_address`` on ``chain``."""

        with self._session_factory() as session, handle_sqlalchemy_errors(entity="contract"):
            model = session.execute(
                select(ContractModel).where(
                    ContractModel.chain == int(chain),
                    ContractModel.address == contract_address.lower(),
                )
            ).scalar_one_or_none()
            model = ensure_found(model, entity="contract", identifier=f"{contract_address}-{int(chain)}")
            return _loads(model.metadata_json)

    def get_split_by_address(self, address: str) -> SplitRecord | None:
        with self._session_factory() as session, handle_sqlalchemy_errors(entity="split"):
            model = session.execute(
                select(SplitModel).where(SplitModel.address == address.lower(), SplitModel.deleted.is_(False))
            ).scalars().first()
            if model is None:
                return None
            return SplitRecord(
                id=model.id,
                chain=Chain(model.chain),
                address=model.address,
                name=model.name,
                metadata=_loads(model.metadata_json),
            )

    def remove_wallet_from_tokens(self, wallet_id: str, user_id: str) -> int:
        """Drop ownership rows linking ``user_id``'s tokens to ``wallet_id``; returns the count."""

        with self._session_factory() as session, handle_sqlalchemy_errors(entity="token_ownership"):
            result = session.execute(
                delete(TokenOwnershipModel).where(
                    TokenOwnershipModel.wallet_id == wallet_id,
                    TokenOwnershipModel.user_id == user_id,
                )
            )
            session.commit()
            return result.rowcount or 0


__all__ = [
    "InsertTokenPipelineResultsParams",
    "PipelineRunRecord",
    "SplitRecord",
    "TokenMediaRecord",
    "TokenPipelineRepository",
    "new_id",
]
