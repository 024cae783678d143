"""
Local artifact store.

Layout:
    <root>/<run_id>/<stage>/<environment>/   task artifacts + artifact.json
    <root>/<run_id>/run.json                 archived run report

Each task directory records its retention window. Retention is a
property of storage; prune() applies it, the scheduler never does.
"""

from __future__ import annotations

import json
import os
import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from envgate.pipeline.domain.enums import Stage
from envgate.pipeline.domain.models import Run
from envgate.pipeline.domain.stages import definition_for
from envgate.shared.domain.exceptions import ArtifactError
from envgate.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

METADATA_FILE = "artifact.json"
RUN_REPORT_FILE = "run.json"


def atomic_write(path: Path, content: str) -> None:
    """Write via temp file + rename so readers never see partial files."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    except OSError as e:
        raise ArtifactError(f"Failed to write {path}: {e}") from e

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except OSError as e:
        Path(tmp_path).unlink(missing_ok=True)
        raise ArtifactError(f"Failed to write {path}: {e}") from e


class ArtifactStore:
    """Filesystem-backed artifact storage with retention metadata."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def task_dir(self, run_id: str, stage: Stage, environment: str, create: bool = True) -> Path:
        """
        Directory for the artifacts of one task.

        Creating it also stamps its retention metadata.
        """
        path = self.root / run_id / stage.value / environment
        if create and not (path / METADATA_FILE).exists():
            path.mkdir(parents=True, exist_ok=True)
            retention = definition_for(stage).retention_days
            created = datetime.now(timezone.utc)
            metadata = {
                "runId": run_id,
                "stage": stage.value,
                "environment": environment,
                "createdAt": created.isoformat(),
                "retentionDays": retention,
                "expiresAt": (created + timedelta(days=retention)).isoformat(),
            }
            atomic_write(path / METADATA_FILE, json.dumps(metadata, indent=2))
        return path

    def plan_file(self, run_id: str, environment: str) -> Path:
        """Where the Plan stage of a run stores the binary plan for an environment."""
        return self.task_dir(run_id, Stage.PLAN, environment, create=False) / "tfplan"

    def plan_json(self, run_id: str, environment: str) -> Path:
        return self.task_dir(run_id, Stage.PLAN, environment, create=False) / "tfplan.json"

    def write_text(self, run_id: str, stage: Stage, environment: str, name: str, content: str) -> Path:
        """Store a text artifact (report, log) and return its path."""
        path = self.task_dir(run_id, stage, environment) / name
        atomic_write(path, content)
        return path

    def archive_run(self, run: Run) -> Path:
        """Persist the final run report next to its artifacts."""
        path = self.root / run.id / RUN_REPORT_FILE
        atomic_write(path, json.dumps(run.to_json(), indent=2))
        logger.info("run_archived", run_id=run.id, path=str(path))
        return path

    def prune(self, now: datetime | None = None) -> list[Path]:
        """
        Delete expired task directories and emptied run directories.

        Returns:
            Paths of removed task directories
        """
        now = now or datetime.now(timezone.utc)
        removed: list[Path] = []

        if not self.root.exists():
            return removed

        for metadata_path in sorted(self.root.glob(f"*/*/*/{METADATA_FILE}")):
            metadata = self._read_metadata(metadata_path)
            if metadata is None:
                continue
            if metadata["expiresAt"] <= now:
                shutil.rmtree(metadata_path.parent)
                removed.append(metadata_path.parent)
                logger.info(
                    "artifact_expired",
                    path=str(metadata_path.parent),
                    retention_days=metadata.get("retentionDays"),
                )

        # Only runs that just lost artifacts are candidates for removal
        for run_dir in {p.parent.parent for p in removed}:
            for stage_dir in run_dir.iterdir():
                if stage_dir.is_dir() and not any(stage_dir.iterdir()):
                    stage_dir.rmdir()
            remaining = [p for p in run_dir.iterdir() if p.name != RUN_REPORT_FILE]
            if not remaining:
                shutil.rmtree(run_dir)

        return removed

    @staticmethod
    def _read_metadata(path: Path) -> dict[str, Any] | None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("artifact_metadata_unreadable", path=str(path), error=str(e))
            return None
        try:
            expires = datetime.fromisoformat(data["expiresAt"])
        except (KeyError, TypeError, ValueError):
            logger.warning("artifact_metadata_incomplete", path=str(path))
            return None
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return {**data, "expiresAt": expires}
