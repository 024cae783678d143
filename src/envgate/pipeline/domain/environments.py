"""
Deployment environments.

The environment set is fixed for the lifetime of a run and validated
when it is built, so a malformed catalog never reaches the scheduler.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Final, Iterable, Iterator

from envgate.shared.domain.exceptions import ConfigurationError

# Terraform workspace names double as environment names
SAFE_ENV_NAME: Final[re.Pattern] = re.compile(r"^[a-z0-9][a-z0-9_-]{0,63}$")

SCAN_SEVERITIES: Final[tuple[str, ...]] = ("LOW", "MEDIUM", "HIGH", "CRITICAL")
LINT_THRESHOLDS: Final[tuple[str, ...]] = ("notice", "warning", "error")

DEFAULT_ENVIRONMENT_NAMES: Final[tuple[str, ...]] = ("dev", "sit", "uat", "preprod", "prod")
PROTECTED_BY_DEFAULT: Final[frozenset[str]] = frozenset({"preprod", "prod"})


@dataclass(frozen=True)
class Environment:
    """A named deployment target with its own state and variables."""

    name: str
    var_file: Path
    priority: int
    requires_approval: bool = False
    backend_role: str | None = None
    scan_severity: str = "CRITICAL"
    lint_failure_threshold: str = "error"

    def __post_init__(self) -> None:
        """Validate on creation (fail fast)."""
        if not isinstance(self.name, str) or not SAFE_ENV_NAME.match(self.name):
            raise ConfigurationError(
                f"Invalid environment name: {self.name!r}",
                context={"environment": self.name},
            )
        if self.scan_severity not in SCAN_SEVERITIES:
            raise ConfigurationError(
                f"Invalid scan severity for {self.name}: {self.scan_severity!r}. "
                f"Valid: {', '.join(SCAN_SEVERITIES)}",
                context={"environment": self.name},
            )
        if self.lint_failure_threshold not in LINT_THRESHOLDS:
            raise ConfigurationError(
                f"Invalid lint failure threshold for {self.name}: {self.lint_failure_threshold!r}. "
                f"Valid: {', '.join(LINT_THRESHOLDS)}",
                context={"environment": self.name},
            )
        # Accept plain strings from config loaders
        if not isinstance(self.var_file, Path):
            object.__setattr__(self, "var_file", Path(self.var_file))

    @property
    def scan_severities(self) -> list[str]:
        """The threshold and every severity above it, lowest first."""
        return list(SCAN_SEVERITIES[SCAN_SEVERITIES.index(self.scan_severity):])

    def to_json(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "varFile": str(self.var_file),
            "priority": self.priority,
            "requiresApproval": self.requires_approval,
            "backendRole": self.backend_role,
            "scanSeverity": self.scan_severity,
            "lintFailureThreshold": self.lint_failure_threshold,
        }


class EnvironmentCatalog:
    """
    Ordered, validated, immutable set of environments.

    Iteration order is priority order, which is also the dispatch order
    of sequential stages.
    """

    __slots__ = ("_environments",)

    def __init__(self, environments: Iterable[Environment]):
        envs = tuple(sorted(environments, key=lambda e: e.priority))

        if not envs:
            raise ConfigurationError("At least one environment must be configured")

        names = [e.name for e in envs]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(
                f"Duplicate environment names: {', '.join(duplicates)}",
                context={"duplicates": duplicates},
            )

        priorities = [e.priority for e in envs]
        if len(set(priorities)) != len(priorities):
            raise ConfigurationError(
                "Environment priorities must be unique",
                context={"priorities": priorities},
            )

        self._environments: tuple[Environment, ...] = envs

    def __iter__(self) -> Iterator[Environment]:
        return iter(self._environments)

    def __len__(self) -> int:
        return len(self._environments)

    def __contains__(self, name: object) -> bool:
        return any(e.name == name for e in self._environments)

    @property
    def names(self) -> list[str]:
        return [e.name for e in self._environments]

    def get(self, name: str) -> Environment:
        """
        Look up an environment by name.

        Raises:
            ConfigurationError: If no such environment is configured
        """
        for env in self._environments:
            if env.name == name:
                return env
        raise ConfigurationError(f"Unknown environment: {name!r}", context={"known": self.names})

    def __repr__(self) -> str:
        return f"EnvironmentCatalog({self.names!r})"


def default_catalog() -> EnvironmentCatalog:
    """dev, sit, uat, preprod, prod with environments/<name>.tfvars."""
    return EnvironmentCatalog(
        Environment(
            name=name,
            var_file=Path("environments") / f"{name}.tfvars",
            priority=index,
            requires_approval=name in PROTECTED_BY_DEFAULT,
        )
        for index, name in enumerate(DEFAULT_ENVIRONMENT_NAMES)
    )
