"""Configuration management for the confidential governance service."""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = Field(default="Confidential Governance")
    version: str = Field(default="0.1.0")
    docs_url: str | None = Field(default="/docs")
    redoc_url: str | None = Field(default="/redoc")
    openapi_url: str = Field(default="/openapi.json")

    database_url: str = Field(default="sqlite+pysqlite:///./governance.db")

    contract_address: str = Field(default="0x5fbdb2315678afecb367f032d93f642f64180aa3")
    owner_address: str = Field(default="0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266")
    engine_network_key: str = Field(
        default="6b1e3f0d4c2a9e8b7f6a5d4c3b2a1908f7e6d5c4b3a29180f7e6d5c4b3a29180"
    )  # hex encoded 32 byte key, development only
    seconds_per_day: int = Field(default=86400)
    max_voting_days: int = Field(default=365)

    enable_metrics: bool = Field(default=True)
    enable_tracing: bool = Field(default=True)
    otel_exporter_endpoint: str | None = Field(default=None)

    aws_region: str = Field(default="us-east-1")
    s3_endpoint_url: str | None = Field(default=None)
    audit_log_bucket: str | None = Field(default=None)
    audit_log_prefix: str = Field(default="audit/governance")
    audit_log_sample_rate: float = Field(default=1.0)

    jwt_algorithm: str = Field(default="HS256")
    jwt_secret_key: str = Field(default="change-me-governance-dev-secret")
    access_token_expire_minutes: int = Field(default=15)
    login_signature_max_age_seconds: int = Field(default=300)

    finalizer_interval_seconds: int = Field(default=300)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        env_prefix = "GOVERNANCE_"


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
