"""
Application configuration using Pydantic Settings.

Loads process-level configuration from environment variables and .env file.
Project pipeline configuration (environments, branches) lives in
envgate.pipeline.config and is loaded from YAML.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="ENVGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="envgate", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # Project files
    config_path: str = Field(
        default=".envgate/config.yaml",
        description="Pipeline configuration file, relative to the project root",
    )
    artifacts_dir: str = Field(
        default=".envgate/artifacts",
        description="Local artifact store, relative to the project root",
    )
    primary_branch: str | None = Field(
        default=None,
        description="Overrides primary_branch from the pipeline configuration",
    )

    # External tools
    terraform_bin: str = Field(default="terraform", description="Terraform executable")
    tflint_bin: str = Field(default="tflint", description="TFLint executable")
    tfsec_bin: str = Field(default="tfsec", description="TFSec executable")
    trivy_bin: str = Field(default="trivy", description="Trivy executable")
    opa_bin: str = Field(default="opa", description="OPA executable")
    tool_timeout: float = Field(default=1800.0, description="Per-command timeout in seconds")

    # Scheduling
    max_parallel: int | None = Field(
        default=None,
        description="Concurrency cap for parallel stages (None = unbounded)",
    )
    auto_approve: bool = Field(
        default=False,
        description="Approve protected environments without prompting",
    )

    # Logging / Privacy
    log_redaction_enabled: bool = Field(default=True, description="Enable secret redaction in logs")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env.lower() == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env.lower() == "production"

    @model_validator(mode="after")
    def _validate_limits(self) -> "Settings":
        """Fail fast on limits that would stall the scheduler."""
        if self.max_parallel is not None and self.max_parallel < 1:
            raise ValueError("ENVGATE_MAX_PARALLEL must be at least 1 when set")
        if self.tool_timeout <= 0:
            raise ValueError("ENVGATE_TOOL_TIMEOUT must be positive")
        return self


# Global settings instance
settings = Settings()
