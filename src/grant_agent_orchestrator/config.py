"""
Configuration management for the grant agent orchestrator.
"""

import os
import yaml
from typing import Any, Optional, Literal
from pathlib import Path
from pydantic import BaseModel, Field
from dotenv import load_dotenv

from .exceptions import ConfigurationError


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class AWSConfig(BaseModel):
    """AWS Bedrock configuration used by the Bedrock worker."""
    region: str = "us-east-1"
    model: str = "anthropic.claude-3-5-sonnet-20240620-v1:0"
    temperature: float = 0.3
    max_tokens: int = 2000


class OrchestratorConfig(BaseModel):
    """Dispatch loop, memory and workflow settings."""
    mode: Literal["AUTO", "MANUAL"] = "AUTO"
    memory_capacity: int = 100
    stage_timeout: float = 30.0
    max_concurrent_tasks: int = 4
    auto_dispatch_delay: float = 0.1
    reject_unknown_dependencies: bool = False
    fail_unresolved_dependencies: bool = True


class WorkerConfig(BaseModel):
    """Worker backend selection."""
    backend: Literal["simulated", "bedrock"] = "simulated"
    simulated_latency: float = 0.5


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    console_level: str = "WARNING"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: str = "logs/orchestrator.log"


class Config(BaseModel):
    """Main configuration class."""
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    aws: AWSConfig = Field(default_factory=AWSConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def default(cls) -> "Config":
        """Configuration with every section at its defaults."""
        return cls()


class ConfigManager:
    """Configuration manager for the grant agent orchestrator."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager."""
        self.config_path = config_path or "config.yaml"
        load_dotenv()  # Load environment variables

    def load_config(self) -> Config:
        """Load configuration from YAML file."""
        try:
            config_file = Path(self.config_path)
            if not config_file.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

            with open(config_file, 'r', encoding='utf-8') as file:
                config_data = yaml.safe_load(file) or {}

            # Substitute environment variables
            config_data = self._substitute_env_vars(config_data)

            return Config(**config_data)

        except Exception as e:
            raise RuntimeError(f"Failed to load configuration: {str(e)}")

    def _substitute_env_vars(self, data: Any) -> Any:
        """Recursively substitute environment variables in configuration."""
        if isinstance(data, dict):
            return {key: self._substitute_env_vars(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [self._substitute_env_vars(item) for item in data]
        elif isinstance(data, str) and data.startswith("${") and data.endswith("}"):
            env_var = data[2:-1]
            # Handle default values like ${AWS_REGION:-us-east-1}
            if ":-" in env_var:
                var_name, default_value = env_var.split(":-", 1)
                return os.getenv(var_name, default_value)
            else:
                return os.getenv(env_var, "")
        else:
            return data

    def validate_config(self, config: Config) -> None:
        """Validate configuration values."""
        settings = config.orchestrator

        if settings.memory_capacity < 1:
            raise ConfigurationError("Memory capacity must be positive", "INVALID_MEMORY_CAPACITY")

        if settings.stage_timeout <= 0:
            raise ConfigurationError("Stage timeout must be positive", "INVALID_STAGE_TIMEOUT")

        if settings.max_concurrent_tasks < 1:
            raise ConfigurationError("At least one concurrent task slot is required", "INVALID_CONCURRENCY")

        if settings.auto_dispatch_delay < 0:
            raise ConfigurationError("Auto dispatch delay cannot be negative", "INVALID_DISPATCH_DELAY")

        for name, level in (("level", config.logging.level), ("console_level", config.logging.console_level)):
            if level.upper() not in LOG_LEVELS:
                raise ConfigurationError(f"Invalid logging {name}: {level}", "INVALID_LOG_LEVEL")

        if config.worker.backend == "bedrock":
            if not config.aws.region or config.aws.region.strip() == "":
                raise ConfigurationError(
                    "AWS region is required for the Bedrock worker. Please set AWS_REGION environment variable.",
                    "MISSING_AWS_REGION",
                )

            # Validate temperature and token limits
            if config.aws.temperature < 0 or config.aws.temperature > 1:
                raise ConfigurationError("Temperature must be between 0 and 1", "INVALID_TEMPERATURE")

            if config.aws.max_tokens < 1:
                raise ConfigurationError("Max tokens must be positive", "INVALID_MAX_TOKENS")

        # Create necessary directories
        logs_dir = Path(config.logging.file).parent
        logs_dir.mkdir(parents=True, exist_ok=True)
