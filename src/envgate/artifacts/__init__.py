"""Artifact storage for plans, reports and run archives."""

from envgate.artifacts.store import ArtifactStore

__all__ = ["ArtifactStore"]
