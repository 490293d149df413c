"""SQLAlchemy ORM models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base declarative class."""


class ContractModel(Base):
    __tablename__ = "contracts"
    __table_args__ = (UniqueConstraint("chain", "address", name="uq_contracts_chain_address"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    chain: Mapped[int] = mapped_column(Integer, nullable=False)
    address: Mapped[str] = mapped_column(String(128), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    symbol: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    metadata_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class TokenModel(Base):
    __tablename__ = "tokens"
    __table_args__ = (
        UniqueConstraint("chain", "contract_address", "token_id", name="uq_tokens_identifier"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    chain: Mapped[int] = mapped_column(Integer, nullable=False)
    contract_address: Mapped[str] = mapped_column(String(128), nullable=False)
    token_id: Mapped[str] = mapped_column(String(80), nullable=False)
    name: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    metadata_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    media_id: Mapped[str | None] = mapped_column(String(32), ForeignKey("token_medias.id"))
    is_spam: Mapped[bool | None] = mapped_column(Boolean)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    ownerships: Mapped[list["TokenOwnershipModel"]] = relationship(
        back_populates="token",
        cascade="all, delete-orphan",
    )


class TokenMediaModel(Base):
    __tablename__ = "token_medias"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    chain: Mapped[int] = mapped_column(Integer, nullable=False)
    contract_address: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    token_id: Mapped[str] = mapped_column(String(80), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    media_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    processing_job_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class TokenPipelineRunModel(Base):
    __tablename__ = "token_pipeline_runs"

    run_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    chain: Mapped[int] = mapped_column(Integer, nullable=False)
    contract_address: Mapped[str] = mapped_column(String(128), nullable=False)
    token_id: Mapped[str] = mapped_column(String(80), nullable=False)
    processing_cause: Mapped[str] = mapped_column(String(32), nullable=False)
    metadata_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    name: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    properties_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    pipeline_metadata_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    media_id: Mapped[str] = mapped_column(String(32), ForeignKey("token_medias.id"), nullable=False)
    processor_version: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    error: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class SplitModel(Base):
    __tablename__ = "splits"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    chain: Mapped[int] = mapped_column(Integer, nullable=False)
    address: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    metadata_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class WalletModel(Base):
    __tablename__ = "wallets"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    chain: Mapped[int] = mapped_column(Integer, nullable=False)
    address: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class TokenOwnershipModel(Base):
    __tablename__ = "token_ownerships"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    token_db_id: Mapped[str] = mapped_column(String(32), ForeignKey("tokens.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    wallet_id: Mapped[str] = mapped_column(String(32), ForeignKey("wallets.id"), nullable=False, index=True)
    quantity: Mapped[str] = mapped_column(String(80), nullable=False, default="1")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    token: Mapped[TokenModel] = relationship(back_populates="ownerships")
