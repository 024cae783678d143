"""Tests for environments and the environment catalog."""

from pathlib import Path

import pytest

from envgate.pipeline.domain.environments import (
    DEFAULT_ENVIRONMENT_NAMES,
    Environment,
    EnvironmentCatalog,
    default_catalog,
)
from envgate.shared.domain.exceptions import ConfigurationError


def _env(name, priority, **kwargs):
    return Environment(name=name, var_file=Path(f"environments/{name}.tfvars"), priority=priority, **kwargs)


class TestEnvironment:

    def test_defaults(self):
        env = _env("dev", 0)

        assert env.requires_approval is False
        assert env.backend_role is None
        assert env.scan_severity == "CRITICAL"
        assert env.lint_failure_threshold == "error"

    def test_var_file_string_coerced_to_path(self):
        env = Environment(name="dev", var_file="environments/dev.tfvars", priority=0)
        assert env.var_file == Path("environments/dev.tfvars")

    @pytest.mark.parametrize("name", ["", "Prod", "dev env", "../prod", "-dev", "x" * 65])
    def test_invalid_names(self, name):
        with pytest.raises(ConfigurationError, match="Invalid environment name"):
            _env(name, 0)

    def test_invalid_scan_severity(self):
        with pytest.raises(ConfigurationError, match="scan severity"):
            _env("dev", 0, scan_severity="SEVERE")

    def test_invalid_lint_threshold(self):
        with pytest.raises(ConfigurationError, match="lint failure threshold"):
            _env("dev", 0, lint_failure_threshold="fatal")

    @pytest.mark.parametrize(
        "threshold,expected",
        [
            ("CRITICAL", ["CRITICAL"]),
            ("HIGH", ["HIGH", "CRITICAL"]),
            ("LOW", ["LOW", "MEDIUM", "HIGH", "CRITICAL"]),
        ],
    )
    def test_scan_severities_include_everything_above_threshold(self, threshold, expected):
        assert _env("dev", 0, scan_severity=threshold).scan_severities == expected

    def test_to_json(self):
        data = _env("prod", 4, requires_approval=True).to_json()

        assert data["name"] == "prod"
        assert data["varFile"] == "environments/prod.tfvars"
        assert data["requiresApproval"] is True
        assert data["scanSeverity"] == "CRITICAL"

    def test_environment_is_immutable(self):
        env = _env("dev", 0)
        with pytest.raises(AttributeError):
            env.name = "prod"


class TestEnvironmentCatalog:

    def test_iterates_in_priority_order(self):
        catalog = EnvironmentCatalog([_env("prod", 9), _env("dev", 1), _env("uat", 5)])

        assert catalog.names == ["dev", "uat", "prod"]
        assert [e.name for e in catalog] == ["dev", "uat", "prod"]
        assert len(catalog) == 3

    def test_lookup(self):
        catalog = EnvironmentCatalog([_env("dev", 0), _env("prod", 1)])

        assert "prod" in catalog
        assert "qa" not in catalog
        assert catalog.get("prod").priority == 1
        with pytest.raises(ConfigurationError, match="Unknown environment"):
            catalog.get("qa")

    def test_empty_catalog_rejected(self):
        with pytest.raises(ConfigurationError, match="At least one environment"):
            EnvironmentCatalog([])

    def test_duplicate_names_rejected(self):
        with pytest.raises(ConfigurationError, match="Duplicate environment names: dev"):
            EnvironmentCatalog([_env("dev", 0), _env("dev", 1)])

    def test_duplicate_priorities_rejected(self):
        with pytest.raises(ConfigurationError, match="priorities must be unique"):
            EnvironmentCatalog([_env("dev", 0), _env("sit", 0)])

    def test_default_catalog(self):
        catalog = default_catalog()

        assert catalog.names == list(DEFAULT_ENVIRONMENT_NAMES)
        assert catalog.get("sit").var_file == Path("environments/sit.tfvars")
        assert [e.name for e in catalog if e.requires_approval] == ["preprod", "prod"]
