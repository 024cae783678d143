"""envgate - environment fan-out and stage gating for Terraform pipelines."""

__version__ = "0.1.0"
