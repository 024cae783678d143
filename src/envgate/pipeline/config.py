"""
Pipeline configuration loader.

Loads .envgate/config.yaml, validates it with pydantic and builds the
immutable PipelineConfig the scheduler works from.

Example:
    primary_branch: main
    working_dir: terraform
    policy_dir: policy
    environments:
      - name: dev
        var_file: environments/dev.tfvars
        backend_role: arn:aws:iam::111111111111:role/terraform-dev
      - name: prod
        var_file: environments/prod.tfvars
        requires_approval: true
        scan_severity: HIGH
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from envgate.pipeline.application.trigger_classifier import normalize_branch
from envgate.pipeline.domain.environments import (
    Environment,
    EnvironmentCatalog,
    default_catalog,
)
from envgate.shared.domain.exceptions import ConfigurationError
from envgate.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

MAX_CONFIG_SIZE = 1024 * 1024  # 1MB
DEFAULT_CONFIG_PATH = Path(".envgate") / "config.yaml"
SAFE_BRANCH_CHARS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-_./")


def _relative_path(value: str) -> str:
    if ".." in Path(value).parts or Path(value).is_absolute():
        raise ValueError(f"Path must be relative and stay inside the project: {value}")
    return value


class EnvironmentEntry(BaseModel):
    """One environments[] entry."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=64)
    var_file: Optional[str] = None
    requires_approval: bool = False
    backend_role: Optional[str] = None
    scan_severity: str = "CRITICAL"
    lint_failure_threshold: str = "error"

    @field_validator("var_file")
    @classmethod
    def _check_var_file(cls, v: Optional[str]) -> Optional[str]:
        return _relative_path(v) if v is not None else v

    @field_validator("scan_severity")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()

    @field_validator("lint_failure_threshold")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.lower()


class PipelineFile(BaseModel):
    """Top-level layout of config.yaml."""

    model_config = ConfigDict(extra="forbid")

    primary_branch: str = Field(default="main", min_length=1, max_length=256)
    working_dir: str = "."
    policy_dir: Optional[str] = None
    environments: Optional[list[EnvironmentEntry]] = None

    @field_validator("primary_branch")
    @classmethod
    def _check_branch(cls, v: str) -> str:
        if not set(v) <= SAFE_BRANCH_CHARS:
            raise ValueError(f"Invalid branch name: '{v}'")
        return v

    @field_validator("working_dir", "policy_dir")
    @classmethod
    def _check_dirs(cls, v: Optional[str]) -> Optional[str]:
        return _relative_path(v) if v is not None else v


@dataclass(frozen=True)
class PipelineConfig:
    """Resolved, validated pipeline configuration."""

    project_root: Path
    catalog: EnvironmentCatalog
    primary_branch: str = "main"
    working_dir: Path = Path(".")
    policy_dir: Optional[Path] = None
    source: Optional[Path] = field(default=None, compare=False)

    @property
    def terraform_root(self) -> Path:
        """Directory Terraform runs in; var files are relative to it."""
        return self.project_root / self.working_dir


def _build_catalog(entries: Optional[list[EnvironmentEntry]]) -> EnvironmentCatalog:
    if entries is None:
        return default_catalog()
    # List order is priority order
    return EnvironmentCatalog(
        Environment(
            name=entry.name,
            var_file=Path(entry.var_file or f"environments/{entry.name}.tfvars"),
            priority=index,
            requires_approval=entry.requires_approval,
            backend_role=entry.backend_role,
            scan_severity=entry.scan_severity,
            lint_failure_threshold=entry.lint_failure_threshold,
        )
        for index, entry in enumerate(entries)
    )


def load_pipeline_config(
    project_root: Path,
    config_path: Path | None = None,
    primary_branch: str | None = None,
) -> PipelineConfig:
    """
    Load and validate pipeline configuration.

    Args:
        project_root: Project root directory
        config_path: Config file; defaults to <project_root>/.envgate/config.yaml.
            An explicitly given file must exist.
        primary_branch: Optional override of the configured primary branch

    Returns:
        PipelineConfig; defaults (five standard environments) if the default file is absent

    Raises:
        ConfigurationError: If the file is missing (when given explicitly), unreadable,
            not valid YAML or fails validation
    """
    project_root = Path(project_root).resolve()
    if not project_root.is_dir():
        raise ConfigurationError(f"Project root is not a directory: {project_root}")

    explicit = config_path is not None
    if config_path is None:
        config_path = project_root / DEFAULT_CONFIG_PATH
    elif not Path(config_path).is_absolute():
        config_path = project_root / config_path
    config_path = Path(config_path)

    data: dict = {}
    source: Optional[Path] = None

    if config_path.exists():
        if config_path.stat().st_size > MAX_CONFIG_SIZE:
            raise ConfigurationError(
                f"Config file too large: {config_path}",
                context={"max_size": MAX_CONFIG_SIZE},
            )
        try:
            with open(config_path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read {config_path}: {e}") from e

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Config root must be a mapping: {config_path}")
        data = loaded
        source = config_path
        logger.debug("pipeline_config_loaded", path=str(config_path))
    elif explicit:
        raise ConfigurationError(f"Config file not found: {config_path}", context={"path": str(config_path)})
    else:
        logger.debug("pipeline_config_not_found", path=str(config_path))

    if primary_branch:
        data = {**data, "primary_branch": primary_branch}

    try:
        parsed = PipelineFile.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid pipeline configuration: {e}",
            context={"path": str(config_path)},
        ) from e

    config = PipelineConfig(
        project_root=project_root,
        catalog=_build_catalog(parsed.environments),
        primary_branch=normalize_branch(parsed.primary_branch),
        working_dir=Path(parsed.working_dir),
        policy_dir=Path(parsed.policy_dir) if parsed.policy_dir else None,
        source=source,
    )

    logger.info(
        "pipeline_config_resolved",
        environments=config.catalog.names,
        primary_branch=config.primary_branch,
        working_dir=str(config.working_dir),
    )
    return config
