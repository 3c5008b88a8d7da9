import logging
from datetime import datetime, timezone
from enum import Enum
from typing import List

from sqlalchemy.orm import Session

from ..models_db import PipelineRun, TrainingRun
from .metrics_source import MetricsSource

log = logging.getLogger(__name__)

class PipelineStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"          # shown by the dashboard, never produced by the simulation

class TrainingStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    EVALUATING = "evaluating"
    AWAITING_APPROVAL = "awaiting_approval"
    DEPLOYED = "deployed"      # set outside this service after IT approval
    FAILED = "failed"

PIPELINE_NOTES = {
    "manual": "Triggered via dashboard",
    "scheduler": "Scheduled import",
}

def _now() -> datetime:
    return datetime.now(timezone.utc)

# ---------------- data import ----------------
def run_pipeline(db: Session, source: MetricsSource, triggered_by: str = "manual") -> PipelineRun:
    run = PipelineRun(
        status=PipelineStatus.RUNNING.value,
        triggered_by=triggered_by,
        notes=PIPELINE_NOTES.get(triggered_by),
    )
    db.add(run); db.commit(); db.refresh(run)
    log.info(f"pipeline run {run.id} started ({triggered_by})")

    metrics = source.pipeline_metrics()
    run.status = PipelineStatus.COMPLETED.value
    run.records_imported = metrics["records_imported"]
    run.feature_count = metrics["feature_count"]
    run.completed_at = _now()
    db.commit(); db.refresh(run)
    log.info(f"pipeline run {run.id} completed: {run.records_imported} records, {run.feature_count} features")
    return run

def recent_pipeline_runs(db: Session, limit: int) -> List[PipelineRun]:
    return (
        db.query(PipelineRun)
        .order_by(PipelineRun.started_at.desc(), PipelineRun.id.desc())
        .limit(limit)
        .all()
    )

# ---------------- retraining ----------------
def run_training(db: Session, source: MetricsSource) -> TrainingRun:
    run = TrainingRun(
        status=TrainingStatus.RUNNING.value,
        triggered_by="manual",
        notes="Dashboard-triggered retraining",
    )
    db.add(run); db.commit(); db.refresh(run)
    log.info(f"training run {run.id} started")

    metrics = source.training_metrics()
    run.status = TrainingStatus.AWAITING_APPROVAL.value
    run.accuracy = metrics["accuracy"]
    run.fairness_score = metrics["fairness_score"]
    run.deployed_version = metrics["deployed_version"]
    run.completed_at = _now()
    db.commit(); db.refresh(run)
    log.info(f"training run {run.id} awaiting approval: accuracy={run.accuracy:.3f} fairness={run.fairness_score:.3f}")
    return run

def recent_training_runs(db: Session, limit: int) -> List[TrainingRun]:
    return (
        db.query(TrainingRun)
        .order_by(TrainingRun.started_at.desc(), TrainingRun.id.desc())
        .limit(limit)
        .all()
    )
