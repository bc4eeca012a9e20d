"""
Configuration system using Pydantic for type-safe settings management.

This module provides configuration classes for the campaign system: the AI
provider, spend limits, worker pool size and logging. Keys may be written in
snake_case or camelCase (``daily_limit_usd`` or ``dailyLimitUsd``).
"""

from __future__ import annotations

import os
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from backlog_agent.enums import AgentMode
from backlog_agent.exceptions import ConfigurationError


class _ConfigModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AIConfig(_ConfigModel):
    """AI agent configuration."""

    provider: str = Field(default="claude", description="AI provider identifier")
    model: str = Field(default="claude-sonnet-4-20250514", description="Model identifier")
    max_turns: int = Field(default=50, ge=1, description="Maximum conversation turns per session")


class BudgetConfig(_ConfigModel):
    """Spend limits in USD.

    All limits must be non-negative; a negative value is rejected when the
    configuration is loaded.
    """

    daily_limit_usd: float = Field(default=50.0, ge=0, description="Maximum spend per UTC day")
    monthly_limit_usd: float = Field(default=500.0, ge=0, description="Maximum spend per UTC month")
    per_issue_limit_usd: float = Field(default=5.0, ge=0, description="Maximum spend on a single issue")
    per_feedback_iteration_usd: float = Field(
        default=2.0, ge=0, description="Maximum spend on one feedback iteration"
    )


class ParallelConfig(_ConfigModel):
    """Worker pool configuration."""

    max_concurrent: int = Field(default=1, ge=1, le=32, description="Maximum issues processed at once")


class LoggingConfig(_ConfigModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Minimum log level")


class AgentSettings(BaseSettings):
    """Main backlog-agent settings.

    Combines all configuration sections and provides loading from YAML files
    with environment variable interpolation.
    """

    model_config = SettingsConfigDict(
        env_prefix="BACKLOG_AGENT_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    mode: AgentMode = Field(default=AgentMode.OSS, description="Operating mode")
    ai: AIConfig = Field(default_factory=AIConfig)
    budget: BudgetConfig = Field(default_factory=BudgetConfig)
    parallel: ParallelConfig = Field(default_factory=ParallelConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> AgentSettings:
        """Load settings from YAML file with environment variable interpolation.

        Supports ${VAR_NAME} syntax for environment variable substitution.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            AgentSettings instance

        Raises:
            ConfigurationError: If config file is invalid, missing, or holds
                out-of-range values
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            yaml_content = config_file.read_text()
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file: {config_path}") from e

        try:
            yaml_content = cls._interpolate_env_vars(yaml_content)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment variable reference in config: {e}") from e

        try:
            config_dict = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}") from e

        if config_dict is None:
            config_dict = {}
        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a YAML object, not a list or scalar")

        try:
            return cls(**config_dict)
        except TypeError as e:
            raise ConfigurationError(f"Missing or invalid configuration fields: {e}") from e
        except Exception as e:
            raise ConfigurationError(f"Failed to validate configuration: {e}") from e

    @staticmethod
    def _interpolate_env_vars(content: str) -> str:
        """Interpolate ${VAR_NAME} placeholders with environment variables.

        Supports two syntaxes:
        - ${VAR_NAME} - Required environment variable (raises if not set)
        - ${VAR_NAME:-default} - Optional with default value

        YAML comment lines are left unchanged.

        Raises:
            ValueError: If a required environment variable is not set
        """
        pattern = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)
            value = os.getenv(var_name)

            if value is not None:
                return value
            elif default_value is not None:
                return default_value
            else:
                raise ValueError(f"Environment variable {var_name} is not set")

        def process_line(line: str) -> str:
            if line.lstrip().startswith("#"):
                return line
            return pattern.sub(replace_var, line)

        return "\n".join(process_line(line) for line in content.split("\n"))
