# src/alb_deploy/config/settings.py
from typing import Optional
from functools import lru_cache
from pydantic import Field, AliasChoices, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from alb_deploy.utils.decorators import RetryPolicy


class Settings(BaseSettings):
    """
    Single source of truth for tool settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Usage:
        from alb_deploy.config.settings import get_settings
        settings = get_settings()
        region = settings.aws_region
    """

    # AWS Core Settings
    aws_region: str = Field(
        default="us-east-1",
        validation_alias=AliasChoices("AWS_REGION", "AWS_DEFAULT_REGION", "aws_region")
    )

    aws_profile: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("AWS_PROFILE", "aws_profile")
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("AWS_ENDPOINT_URL", "aws_endpoint_url"),
        description="Endpoint override for local AWS emulators"
    )

    # Lambda Function Defaults
    lambda_runtime: str = Field(
        default="python3.11",
        description="Runtime for newly created functions"
    )

    lambda_timeout: int = Field(default=30, description="Function timeout in seconds")

    lambda_memory: int = Field(default=512, description="Function memory in MB")

    handler_function: str = Field(
        default="handler",
        description="Handler attribute inside the entry module"
    )

    entry_module_suffix: str = Field(
        default=".py",
        description="Required extension of the entry module file"
    )

    # Role propagation retry budget
    role_retry_attempts: int = Field(default=10, ge=1)
    role_retry_delay: float = Field(default=2.0, ge=0)
    role_retry_backoff: float = Field(default=1.5, ge=1)
    role_retry_max_delay: float = Field(default=10.0, ge=0)

    # Listener created alongside a new load balancer
    listener_port: int = Field(default=80)
    listener_protocol: str = Field(default="HTTP")

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v):
        """Accept lowercase level names."""
        return v.upper()

    @field_validator('listener_protocol')
    @classmethod
    def validate_listener_protocol(cls, v):
        """Only plain listeners can be created without a certificate."""
        v = v.upper()
        if v != "HTTP":
            raise ValueError(f"Invalid listener_protocol: {v}. Only HTTP is supported")
        return v

    @property
    def role_retry_policy(self) -> RetryPolicy:
        """Retry budget for function creation while a new role propagates."""
        return RetryPolicy(
            max_attempts=self.role_retry_attempts,
            delay=self.role_retry_delay,
            backoff=self.role_retry_backoff,
            max_delay=self.role_retry_max_delay
        )

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_prefix="ALB_DEPLOY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
