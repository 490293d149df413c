"""Service configuration read from the environment.

Keys are read without a prefix (``IPFS_URL``, ``TOKEN_PROCESSING_QUEUE``...).
Outside ``ENV=local`` the upstream services must be configured explicitly;
locally every key falls back to a development default.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .db.db_init import init_db
from .domain.deadlines import PipelineDeadlines
from .domain.tokens import Chain

_ALCHEMY_URL_FIELDS = {
    Chain.ETHEREUM: "alchemy_api_url",
    Chain.ARBITRUM: "alchemy_arbitrum_api_url",
    Chain.POLYGON: "alchemy_polygon_api_url",
    Chain.OPTIMISM: "alchemy_optimism_api_url",
    Chain.BASE: "alchemy_base_api_url",
    Chain.BASE_SEPOLIA: "alchemy_base_sepolia_api_url",
}

_REQUIRED_OUTSIDE_LOCAL = (
    "gcloud_token_content_bucket",
    "token_processing_url",
    "token_processing_queue",
    "sentry_dsn",
)

_LOCAL_DEFAULTS = {
    "gcloud_token_content_bucket": "dev-token-content",
    "token_processing_url": "http://localhost:6500",
    "token_processing_queue": "projects/local/locations/here/queues/token-processing",
}


class AppConfig(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env", ".env.local"), extra="ignore")

    env: str = Field(default="local", description="Deployment environment; 'local' relaxes requirements.")
    version: str = Field(default="", description="Processor version recorded on every pipeline run.")
    database_url: str = Field(default="sqlite:///tokenmedia.db", description="SQLAlchemy database URL.")
    redis_url: str | None = Field(default=None, description="Redis URL for the throttle lock; in-memory when unset.")

    ipfs_url: str = Field(default="https://ipfs.io", description="Public IPFS gateway.")
    arweave_url: str = Field(default="https://arweave.net", description="Public Arweave gateway.")

    alchemy_api_url: str | None = None
    alchemy_arbitrum_api_url: str | None = None
    alchemy_polygon_api_url: str | None = None
    alchemy_optimism_api_url: str | None = None
    alchemy_base_api_url: str | None = None
    alchemy_base_sepolia_api_url: str | None = None
    alchemy_webhook_secret: str | None = None
    alchemy_webhook_secret_eth: str | None = None
    alchemy_webhook_secret_arbitrum: str | None = None
    indexer_host: str | None = Field(default=None, description="Backup metadata indexer.")

    gcloud_token_content_bucket: str = Field(default="", description="Bucket holding cached artifacts.")
    gcloud_access_token: str | None = Field(default=None, description="Bearer token for the storage API.")
    storage_host: str = Field(default="https://storage.googleapis.com", description="Public object host.")
    media_root: Path = Field(default=Path("./var/media"), description="Filesystem root of the local store.")

    token_processing_url: str = Field(default="", description="Base URL of the tokenprocessing service.")
    token_processing_queue: str = Field(default="", description="Queue carrying token processing tasks.")
    token_processing_secret: str | None = Field(default=None, description="Basic auth secret on task calls.")
    task_queue_host: str | None = Field(default=None, description="Cloud Tasks emulator host.")
    cloud_tasks_direct_dispatch_enabled: bool = False
    cloud_tasks_skip_queues: str = Field(default="", description="Comma separated queues to skip.")

    github_api_key: str | None = None
    sentry_dsn: str | None = None

    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    job_timeout_seconds: float = Field(default=600, gt=0)
    persist_timeout_seconds: float = Field(default=10, gt=0)

    @model_validator(mode="after")
    def _require_outside_local(self) -> "AppConfig":
        if self.is_local:
            for name, value in _LOCAL_DEFAULTS.items():
                if not getattr(self, name):
                    setattr(self, name, value)
            return self
        missing = [name.upper() for name in _REQUIRED_OUTSIDE_LOCAL if not getattr(self, name)]
        if not self.alchemy_api_urls() and not self.indexer_host:
            missing.append("ALCHEMY_*_API_URL")
        if not self.webhook_secrets():
            missing.append("ALCHEMY_WEBHOOK_SECRET*")
        if missing:
            raise ValueError(f"missing required configuration: {', '.join(missing)}")
        return self

    @property
    def is_local(self) -> bool:
        return self.env.lower() == "local"

    @property
    def skip_queues(self) -> frozenset[str]:
        return frozenset(part.strip() for part in self.cloud_tasks_skip_queues.split(",") if part.strip())

    def alchemy_api_urls(self) -> dict[Chain, str]:
        urls = {chain: getattr(self, name) for chain, name in _ALCHEMY_URL_FIELDS.items()}
        return {chain: url for chain, url in urls.items() if url}

    def webhook_secrets(self) -> list[str]:
        secrets = (self.alchemy_webhook_secret, self.alchemy_webhook_secret_eth, self.alchemy_webhook_secret_arbitrum)
        return [secret for secret in secrets if secret]

    def deadlines(self) -> PipelineDeadlines:
        return PipelineDeadlines.from_seconds(job=self.job_timeout_seconds, persist=self.persist_timeout_seconds)


@dataclass(slots=True)
class RuntimeConfig:
    settings: AppConfig
    engine: Engine
    session_factory: sessionmaker[Session]


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        return create_engine(
            database_url,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_url.startswith("sqlite"):
        return create_engine(database_url, future=True, connect_args={"check_same_thread": False})
    return create_engine(database_url, future=True, pool_pre_ping=True)


def load_config(settings: AppConfig | None = None) -> RuntimeConfig:
    """Read settings and open the database (schema created if missing)."""

    settings = settings or AppConfig()
    engine = build_engine(settings.database_url)
    session_factory: sessionmaker[Session] = sessionmaker(bind=engine, expire_on_commit=False)
    init_db(engine)
    return RuntimeConfig(settings=settings, engine=engine, session_factory=session_factory)


__all__ = ["AppConfig", "RuntimeConfig", "build_engine", "load_config"]
