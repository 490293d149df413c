"""Token pipeline schema: contracts, tokens, media, runs, splits and ownerships."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*names: str) -> list[sa.Column]:
    return [
        sa.Column(name, sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP"))
        for name in names
    ]


def upgrade() -> None:
    op.create_table(
        "contracts",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("chain", sa.Integer(), nullable=False),
        sa.Column("address", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("symbol", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("metadata_json", sa.Text(), nullable=False, server_default="{}"),
        *_timestamps("created_at", "updated_at"),
        sa.UniqueConstraint("chain", "address", name="uq_contracts_chain_address"),
    )

    op.create_table(
        "token_medias",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("chain", sa.Integer(), nullable=False),
        sa.Column("contract_address", sa.String(length=128), nullable=False),
        sa.Column("token_id", sa.String(length=80), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        sa.Column("media_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("processing_job_id", sa.String(length=64), nullable=False),
        *_timestamps("created_at", "updated_at"),
    )
    op.create_index("ix_token_medias_contract_address", "token_medias", ["contract_address"])
    op.create_index("ix_token_medias_processing_job_id", "token_medias", ["processing_job_id"])

    op.create_table(
        "tokens",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("chain", sa.Integer(), nullable=False),
        sa.Column("contract_address", sa.String(length=128), nullable=False),
        sa.Column("token_id", sa.String(length=80), nullable=False),
        sa.Column("name", sa.String(length=512), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("metadata_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("media_id", sa.String(length=32), sa.ForeignKey("token_medias.id")),
        sa.Column("is_spam", sa.Boolean()),
        *_timestamps("created_at", "updated_at"),
        sa.UniqueConstraint("chain", "contract_address", "token_id", name="uq_tokens_identifier"),
    )

    op.create_table(
        "token_pipeline_runs",
        sa.Column("run_id", sa.String(length=64), primary_key=True),
        sa.Column("chain", sa.Integer(), nullable=False),
        sa.Column("contract_address", sa.String(length=128), nullable=False),
        sa.Column("token_id", sa.String(length=80), nullable=False),
        sa.Column("processing_cause", sa.String(length=32), nullable=False),
        sa.Column("metadata_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("name", sa.String(length=512), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("properties_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("pipeline_metadata_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("media_id", sa.String(length=32), sa.ForeignKey("token_medias.id"), nullable=False),
        sa.Column("processor_version", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("error", sa.Text()),
        *_timestamps("created_at"),
    )

    op.create_table(
        "splits",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("chain", sa.Integer(), nullable=False),
        sa.Column("address", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("metadata_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        *_timestamps("created_at"),
    )
    op.create_index("ix_splits_address", "splits", ["address"])

    op.create_table(
        "wallets",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("user_id", sa.String(length=32), nullable=False),
        sa.Column("chain", sa.Integer(), nullable=False),
        sa.Column("address", sa.String(length=128), nullable=False),
        *_timestamps("created_at"),
    )
    op.create_index("ix_wallets_user_id", "wallets", ["user_id"])

    op.create_table(
        "token_ownerships",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("token_db_id", sa.String(length=32), sa.ForeignKey("tokens.id"), nullable=False),
        sa.Column("user_id", sa.String(length=32), nullable=False),
        sa.Column("wallet_id", sa.String(length=32), sa.ForeignKey("wallets.id"), nullable=False),
        sa.Column("quantity", sa.String(length=80), nullable=False, server_default="1"),
        *_timestamps("created_at"),
    )
    op.create_index("ix_token_ownerships_token_db_id", "token_ownerships", ["token_db_id"])
    op.create_index("ix_token_ownerships_user_id", "token_ownerships", ["user_id"])
    op.create_index("ix_token_ownerships_wallet_id", "token_ownerships", ["wallet_id"])


def downgrade() -> None:
    op.drop_table("token_ownerships")
    op.drop_table("wallets")
    op.drop_table("splits")
    op.drop_table("token_pipeline_runs")
    op.drop_table("tokens")
    op.drop_table("token_medias")
    op.drop_table("contracts")
