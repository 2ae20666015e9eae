"""
Configuration management for the Dataspace Broker.
"""

from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


def parse_csv(raw: str) -> List[str]:
    """
    Parse a comma-separated setting into a list of non-empty entries.

    Examples:
        "https://a,https://b" -> ["https://a", "https://b"]
        "  a , b  " -> ["a", "b"]
        "" -> []
    """
    if not raw or not raw.strip():
        return []

    entries = [entry.strip() for entry in raw.split(",")]
    return [e for e in entries if e]


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = Field(default="Dataspace Broker")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # Database
    database_url: str = Field(default="sqlite:///./dataspace_broker.db")

    # Logging
    log_level: str = Field(default="INFO")

    # Connector identity
    connector_id: str = Field(
        default="https://localhost:8080/connector",
        description="Identifier of this connector, checked by connector-restricted rules.",
    )
    security_profile: str = Field(
        default="BASE_SECURITY_PROFILE",
        description="Security profile this connector runs with.",
    )

    # Usage control
    usage_control_enabled: bool = Field(
        default=True,
        description="When false every access is allowed without consulting contracts.",
    )
    usage_control_framework: Literal["internal", "external"] = Field(
        default="internal",
        description="'internal' enforces contracts in-process, 'external' defers to a policy engine.",
    )
    allowed_connectors: str = Field(
        default="",
        description="Comma-separated connector ids used when a restriction rule carries no list.",
    )
    default_max_access: Optional[int] = Field(
        default=None,
        ge=0,
        description="Access limit used when an N-times rule carries no bound.",
    )

    # Scheduled enforcement
    data_removal_interval_seconds: int = Field(default=60, ge=1)

    # HTTP
    http_timeout_seconds: float = Field(default=30.0, gt=0)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def allowed_connector_list(self) -> List[str]:
        return parse_csv(self.allowed_connectors)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
