"""Library settings and configuration management.

This module provides Pydantic-based settings that load from environment
variables with validation and type safety. AWS credentials themselves are
never read here; they come from the standard boto3 credential chain.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from awsutils.constants import (
    DYNAMO_TABLE_WAIT_DELAY,
    DYNAMO_TABLE_WAIT_MAX_ATTEMPTS,
    SSM_AGENT_POLL_INTERVAL,
    SSM_COMMAND_MAX_ATTEMPTS,
    SSM_COMMAND_POLL_INTERVAL,
)


class Settings(BaseSettings):
    """Settings loaded from environment variables.

    Example:
        >>> settings = Settings()
        >>> print(settings.ssm_command_poll_interval)
        5.0
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # AWS Configuration
    # =========================================================================

    aws_region: str | None = Field(
        default=None,
        description=(
            "Region for new connections. None defers to boto3 (AWS_DEFAULT_REGION, "
            "then the active profile's region)"
        ),
    )

    aws_profile: str | None = Field(
        default=None,
        description="Shared config profile used to build sessions",
    )

    aws_endpoint_url: str | None = Field(
        default=None,
        description="Endpoint override applied to every client (e.g. a local emulator)",
    )

    # =========================================================================
    # Polling Configuration
    # =========================================================================

    ssm_command_poll_interval: float = Field(
        default=SSM_COMMAND_POLL_INTERVAL,
        ge=0.1,
        le=60.0,
        description="Seconds between SSM command status checks",
    )

    ssm_command_max_attempts: int = Field(
        default=SSM_COMMAND_MAX_ATTEMPTS,
        ge=1,
        le=1000,
        description="Status checks before an SSM command is considered timed out",
    )

    ssm_agent_poll_interval: float = Field(
        default=SSM_AGENT_POLL_INTERVAL,
        ge=0.1,
        le=60.0,
        description="Seconds between SSM agent ping status checks",
    )

    dynamo_table_wait_delay: float = Field(
        default=DYNAMO_TABLE_WAIT_DELAY,
        ge=1.0,
        le=60.0,
        description="Seconds between DynamoDB table status checks",
    )

    dynamo_table_wait_max_attempts: int = Field(
        default=DYNAMO_TABLE_WAIT_MAX_ATTEMPTS,
        ge=1,
        le=1000,
        description="DynamoDB table status checks before giving up",
    )

    # =========================================================================
    # Logging Configuration
    # =========================================================================

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Log level used by the command line entry point",
    )

    @property
    def ssm_command_timeout(self) -> float:
        """Total seconds an SSM command may run before timing out."""
        return self.ssm_command_poll_interval * self.ssm_command_max_attempts


@lru_cache
def get_settings() -> Settings:
    """Get cached settings.

    Returns:
        Validated Settings instance.

    Example:
        >>> settings = get_settings()
        >>> print(settings.ssm_command_poll_interval)
        5.0
    """
    return Settings()
