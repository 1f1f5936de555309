"""
Configuration management for the follow-graph crawler.

Uses pydantic-settings to load configuration from environment variables
and YAML files with proper validation.
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CrawlerSettings(BaseSettings):
    """
    Main settings class that loads configuration from environment variables
    and configuration files.
    """

    model_config = SettingsConfigDict(
        env_prefix="FOLLOW_CRAWLER_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Environment
    environment: str = Field("dev", description="Environment name (dev/devlocal/staging/prod)")

    # Traversal
    root_handle: str = Field("dxmfromcvs", min_length=1, description="Root identity to start the walk from")
    max_depth: int = Field(0, ge=0, description="Maximum number of follow hops from the root")
    num_workers: int = Field(10, ge=1, le=256)
    frontier_capacity: int = Field(10000, ge=0, description="Frontier queue bound (0 for unbounded)")
    result_capacity: int = Field(1000, ge=0, description="Result channel bound (0 for unbounded)")
    call_timeout_seconds: Optional[float] = Field(None, gt=0, description="Timeout for each fetch/persist call")

    # Platform / HTTP Configuration
    platform_url: str = Field("https://soundcloud.com", description="Base URL of profile pages")
    request_timeout: int = Field(30, ge=5, le=300)
    user_agent: str = Field("FollowCrawler/1.0")

    # Storage
    storage_backend: str = Field("local", description="Persistence sink (local/dynamodb)")
    local_store_file: Path = Field(Path("data/people.json"))
    local_flush_every: int = Field(500, ge=1, description="Local store changes between file rewrites")

    # AWS Configuration
    aws_region: str = Field("ap-northeast-1")
    localstack_endpoint: Optional[str] = Field(None, description="LocalStack endpoint for local development")
    people_table: str = Field("follow-crawler-people")
    follows_table: str = Field("follow-crawler-follows")
    sequence_table: str = Field("follow-crawler-sequences")

    # Logging
    log_level: str = Field("INFO", description="Logging level")
    json_logs: bool = Field(True, description="Whether to output JSON format logs")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        valid_envs = ["dev", "devlocal", "staging", "prod"]
        if v not in valid_envs:
            raise ValueError(f"Invalid environment: {v}. Must be one of {valid_envs}")
        return v

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        valid_backends = ["local", "dynamodb"]
        if v.lower() not in valid_backends:
            raise ValueError(f"Invalid storage backend: {v}. Must be one of {valid_backends}")
        return v.lower()

    @field_validator("platform_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_aws_config(self) -> "CrawlerSettings":
        """Validate AWS configuration based on environment"""
        if self.environment == "devlocal" and self.storage_backend == "dynamodb":
            # LocalStack development - require localstack_endpoint
            if not self.localstack_endpoint:
                raise ValueError("localstack_endpoint is required for devlocal environment")
        return self


# ${VAR} or ${VAR:default}; an unset VAR without a default is left as written
ENV_REFERENCE = re.compile(r"\$\{(?P<name>[^}:]+)(?::(?P<default>[^}]*))?\}")


def _substitute_env_reference(match: "re.Match[str]") -> str:
    default = match.group("default")
    return os.getenv(match.group("name"), match.group(0) if default is None else default)


def _expand_env_variables(value: Any) -> Any:
    """Expand environment references in every string of a parsed YAML document"""
    if isinstance(value, str):
        return ENV_REFERENCE.sub(_substitute_env_reference, value)
    if isinstance(value, dict):
        return {key: _expand_env_variables(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env_variables(item) for item in value]
    return value


def load_config_from_yaml(file_path: Path) -> Dict[str, Any]:
    """
    Load configuration from YAML file with environment variable expansion.

    Args:
        file_path: Path to YAML configuration file

    Returns:
        Dictionary containing configuration values with env vars expanded

    Raises:
        FileNotFoundError: If configuration file doesn't exist
        yaml.YAMLError: If YAML file is malformed
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    with open(file_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}
        return _expand_env_variables(config)


def get_config_file_path(environment: str) -> Path:
    """Get the path to the bundled configuration file for the given environment."""
    config_dir = Path(__file__).parent
    return config_dir / f"{environment}.yaml"


def load_settings(
    environment: Optional[str] = None, config_file: Optional[Path] = None, **overrides: Any
) -> CrawlerSettings:
    """
    Load crawler settings from environment variables and configuration files.

    Args:
        environment: Environment name. If None, read from FOLLOW_CRAWLER_ENVIRONMENT
        config_file: Path to configuration file. If None, use default path
        **overrides: Additional configuration overrides

    Returns:
        Configured CrawlerSettings instance

    Raises:
        ValueError: If configuration is invalid
        FileNotFoundError: If required configuration file is missing
    """
    if environment is None:
        environment = os.getenv("FOLLOW_CRAWLER_ENVIRONMENT", "dev")

    config_data: Dict[str, Any] = {}

    if config_file:
        config_data = load_config_from_yaml(config_file)
    else:
        default_config_file = get_config_file_path(environment)
        if default_config_file.exists():
            config_data = load_config_from_yaml(default_config_file)

    config_data["environment"] = environment

    # Overrides with a None value mean "not given"
    config_data.update({key: value for key, value in overrides.items() if value is not None})

    return CrawlerSettings(**config_data)


# Global settings instance (lazy-loaded)
_settings: Optional[CrawlerSettings] = None


def get_cached_settings() -> CrawlerSettings:
    """
    Get cached settings instance.

    Returns:
        Cached CrawlerSettings instance
    """
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
