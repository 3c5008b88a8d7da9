import io
import json
import logging
import pandas as pd
from fastapi import FastAPI, UploadFile, File, Form, Depends, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from datetime import datetime, timezone
from typing import List, Optional

from .config import get_settings
from .schemas import (
    StudentCreate, StudentOut, PredictionCreate, PredictionOut, StudentWithPrediction,
    DashboardSummary, InterventionCreate, InterventionOut, StudentDetail, StudentSelfView,
    ImportResponse, MLModelOut, PipelineTriggerRequest, PipelineRunOut, TrainingRunOut
)
from .utils.risk_utils import (
    attach_predictions, count_risk_tiers, risk_bars, sort_by_risk, rationale_items, generate_nudges
)
from .utils.metrics_source import MetricsSource, build_metrics_source
from .utils.run_utils import run_pipeline, run_training, recent_pipeline_runs, recent_training_runs
from .database import SessionLocal, init_db
from .models_db import Profile, Student, Prediction, Intervention, MLModel

# ---------------- logging ----------------
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
log = logging.getLogger("riskboard-api")

settings = get_settings()

app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)
app.add_middleware(
    CORSMiddleware, allow_origins=["*"], allow_credentials=True, allow_methods=["*"], allow_headers=["*"]
)

ROSTER_REQUIRED = ["student_id", "full_name", "email"]

# --------------- DB Session dependency ---------------
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# --------------- Bootstrap: DB + metrics source ---------------
init_db()
metrics_source = build_metrics_source(settings.METRICS_SOURCE, settings.SIMULATION_SEED)

def get_metrics_source() -> MetricsSource:
    return metrics_source

# --------------- Caller identity (auth itself is handled upstream) ---------------
def get_current_profile(x_profile_id: Optional[int] = Header(default=None), db: Session = Depends(get_db)) -> Profile:
    if x_profile_id is None:
        raise HTTPException(401, detail="missing X-Profile-Id header")
    profile = db.get(Profile, x_profile_id)
    if profile is None:
        raise HTTPException(401, detail=f"unknown profile: {x_profile_id}")
    return profile

def require_advisor(profile: Profile = Depends(get_current_profile)) -> Profile:
    if profile.role != "advisor":
        raise HTTPException(403, detail="advisor role required")
    return profile

def _get_student(db: Session, student_pk: int) -> Student:
    student = db.get(Student, student_pk)
    if student is None:
        raise HTTPException(404, detail=f"student not found: {student_pk}")
    return student

def _latest_prediction(db: Session, student_pk: int) -> Optional[PredictionOut]:
    row = (
        db.query(Prediction).filter(Prediction.student_id == student_pk)
        .order_by(Prediction.prediction_date.desc(), Prediction.id.asc())
        .first()
    )
    return PredictionOut.model_validate(row) if row is not None else None

def _interventions(db: Session, student_pk: int) -> List[InterventionOut]:
    rows = (
        db.query(Intervention).filter(Intervention.student_id == student_pk)
        .order_by(Intervention.intervention_date.desc(), Intervention.id.desc())
        .all()
    )
    return [InterventionOut.model_validate(r) for r in rows]

def _students_with_predictions(db: Session) -> List[StudentWithPrediction]:
    students = db.query(Student).order_by(Student.full_name).all()
    predictions = db.query(Prediction).order_by(Prediction.prediction_date.desc(), Prediction.id.asc()).all()
    return attach_predictions(students, predictions)

@app.get("/health")
def health():
    return {"status": "ok", "version": settings.APP_VERSION}

# --------------- Advisor dashboard ----------------
@app.get("/students", response_model=List[StudentWithPrediction])
def list_students(view: str = "table", db: Session = Depends(get_db), advisor: Profile = Depends(require_advisor)):
    items = _students_with_predictions(db)
    if view == "visual":
        # the card grid keeps roster (name) order
        return items
    return sort_by_risk(items)

@app.get("/dashboard/summary", response_model=DashboardSummary)
def dashboard_summary(db: Session = Depends(get_db), advisor: Profile = Depends(require_advisor)):
    items = _students_with_predictions(db)
    counts = count_risk_tiers(items)
    return DashboardSummary(total=len(items), counts=counts, bars=risk_bars(counts))

@app.post("/students", response_model=StudentOut)
def create_student(payload: StudentCreate, db: Session = Depends(get_db), advisor: Profile = Depends(require_advisor)):
    if db.query(Student).filter(Student.student_id == payload.student_id).first() is not None:
        raise HTTPException(409, detail=f"student already exists: {payload.student_id}")
    s = Student(**payload.model_dump())
    db.add(s); db.commit(); db.refresh(s)
    return StudentOut.model_validate(s)

# --------------- Roster import (CSV upload) ----------------
@app.post("/students/import", response_model=ImportResponse)
async def import_students(file: UploadFile = File(...), db: Session = Depends(get_db), advisor: Profile = Depends(require_advisor)):
    content = await file.read()
    try:
        df = pd.read_csv(io.BytesIO(content), dtype=str)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise HTTPException(400, detail=f"could not parse CSV: {e}")
    missing = [c for c in ROSTER_REQUIRED if c not in df.columns]
    if missing:
        raise HTTPException(400, detail=f"missing columns: {missing}")
    if "gpa" in df.columns:
        df["gpa"] = pd.to_numeric(df["gpa"], errors="coerce")

    known = {sid for (sid,) in db.query(Student.student_id).all()}
    created, invalid, skipped = 0, 0, []
    for _, row in df.iterrows():
        if any(pd.isna(row[c]) or not str(row[c]).strip() for c in ROSTER_REQUIRED):
            invalid += 1
            continue
        gpa = row.get("gpa")
        if gpa is not None and not pd.isna(gpa) and not 0 <= gpa <= 4:
            invalid += 1
            continue
        sid = str(row["student_id"]).strip()
        if sid in known:
            skipped.append(sid)
            continue
        db.add(Student(
            student_id=sid,
            full_name=row["full_name"],
            email=row["email"],
            major=_cell(row, "major"),
            year=_cell(row, "year"),
            gpa=_cell(row, "gpa"),
        ))
        known.add(sid)
        created += 1
    db.commit()
    if skipped:
        log.warning(f"roster import skipped {len(skipped)} existing students")
    if invalid:
        log.warning(f"roster import dropped {invalid} rows with blank required fields or gpa outside 0-4")
    log.info(f"roster import created {created} students")
    return ImportResponse(created=created, invalid=invalid, skipped=skipped)

def _cell(row, col):
    value = row.get(col)
    if value is None or pd.isna(value):
        return None
    return float(value) if col == "gpa" else value

# --------------- Predictions ----------------
def _as_utc(value: Optional[datetime]) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)   # naive dates are taken as UTC
    return value.astimezone(timezone.utc)

@app.post("/predictions", response_model=PredictionOut)
def create_prediction(payload: PredictionCreate, db: Session = Depends(get_db), advisor: Profile = Depends(require_advisor)):
    _get_student(db, payload.student_id)
    data = payload.model_dump(exclude_none=True)
    # microsecond UTC timestamps keep back-to-back re-scores ordered
    data["prediction_date"] = _as_utc(payload.prediction_date)
    p = Prediction(**data)
    db.add(p); db.commit(); db.refresh(p)
    return PredictionOut.model_validate(p)

# --------------- Student detail + interventions ----------------
@app.get("/students/{student_pk}", response_model=StudentDetail)
def student_detail(student_pk: int, db: Session = Depends(get_db), advisor: Profile = Depends(require_advisor)):
    student = _get_student(db, student_pk)
    prediction = _latest_prediction(db, student_pk)
    return StudentDetail(
        student=StudentOut.model_validate(student),
        prediction=prediction,
        rationale=rationale_items(prediction.rationale if prediction else None),
        interventions=_interventions(db, student_pk),
    )

@app.get("/students/{student_pk}/interventions", response_model=List[InterventionOut])
def list_interventions(student_pk: int, db: Session = Depends(get_db), advisor: Profile = Depends(require_advisor)):
    _get_student(db, student_pk)
    return _interventions(db, student_pk)

@app.post("/students/{student_pk}/interventions", response_model=InterventionOut)
def create_intervention(student_pk: int, payload: InterventionCreate, db: Session = Depends(get_db), advisor: Profile = Depends(require_advisor)):
    _get_student(db, student_pk)
    if payload.intervention_type not in settings.INTERVENTION_TYPES:
        raise HTTPException(400, detail=f"unknown intervention type: {payload.intervention_type}")
    if not payload.description.strip():
        raise HTTPException(400, detail="description is required")
    i = Intervention(
        student_id=student_pk, advisor_id=advisor.id, intervention_type=payload.intervention_type,
        description=payload.description, outcome=payload.outcome or None
    )
    db.add(i); db.commit(); db.refresh(i)
    log.info(f"intervention {i.id} logged for student {student_pk} by advisor {advisor.id}")
    return InterventionOut.model_validate(i)

# --------------- Student self view ----------------
@app.get("/me", response_model=StudentSelfView)
def my_view(db: Session = Depends(get_db), profile: Profile = Depends(get_current_profile)):
    student = db.query(Student).filter(Student.email == profile.email).first()
    if student is None:
        return StudentSelfView()
    prediction = _latest_prediction(db, student.id)
    rationale = prediction.rationale if prediction else None
    return StudentSelfView(
        student=StudentOut.model_validate(student),
        prediction=prediction,
        rationale=rationale_items(rationale),
        nudges=generate_nudges(rationale, limit=settings.MAX_NUDGES),
        interventions=_interventions(db, student.id),
    )

# --------------- Model upload ----------------
@app.post("/models", response_model=MLModelOut)
async def upload_model(
    version: str = Form(...),
    accuracy: float = Form(...),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    advisor: Profile = Depends(require_advisor),
):
    if not version.strip():
        raise HTTPException(400, detail="version is required")
    if not 0 <= accuracy <= 100:
        raise HTTPException(400, detail="accuracy must be a percentage between 0 and 100")
    content = await file.read()
    try:
        model_data = json.loads(content)
    except ValueError:
        log.warning(f"rejected model upload {file.filename!r}: not JSON")
        raise HTTPException(400, detail="Please upload a JSON file")

    db.query(MLModel).filter(MLModel.is_active.is_(True)).update({"is_active": False})
    m = MLModel(version=version, accuracy=accuracy, model_data=model_data, is_active=True, uploaded_by=advisor.id)
    db.add(m); db.commit(); db.refresh(m)
    log.info(f"model {m.version} uploaded by advisor {advisor.id} and activated")
    return MLModelOut.model_validate(m)

@app.get("/models/active", response_model=MLModelOut)
def active_model(db: Session = Depends(get_db), advisor: Profile = Depends(require_advisor)):
    m = db.query(MLModel).filter(MLModel.is_active.is_(True)).order_by(MLModel.id.desc()).first()
    if m is None:
        raise HTTPException(404, detail="no active model")
    return MLModelOut.model_validate(m)

# --------------- Simulated pipeline + retraining ----------------
@app.get("/pipeline/runs", response_model=List[PipelineRunOut])
def pipeline_runs(db: Session = Depends(get_db), advisor: Profile = Depends(require_advisor)):
    return [PipelineRunOut.model_validate(r) for r in recent_pipeline_runs(db, settings.RUN_HISTORY_LIMIT)]

@app.post("/pipeline/runs", response_model=PipelineRunOut)
def trigger_pipeline(
    req: PipelineTriggerRequest,
    db: Session = Depends(get_db),
    source: MetricsSource = Depends(get_metrics_source),
    advisor: Profile = Depends(require_advisor),
):
    try:
        run = run_pipeline(db, source, triggered_by=req.triggered_by)
    except Exception:
        log.exception("failed to run pipeline")
        raise
    return PipelineRunOut.model_validate(run)

@app.get("/training/runs", response_model=List[TrainingRunOut])
def training_runs(db: Session = Depends(get_db), advisor: Profile = Depends(require_advisor)):
    return [TrainingRunOut.model_validate(r) for r in recent_training_runs(db, settings.RUN_HISTORY_LIMIT)]

@app.post("/training/runs", response_model=TrainingRunOut)
def trigger_training(
    db: Session = Depends(get_db),
    source: MetricsSource = Depends(get_metrics_source),
    advisor: Profile = Depends(require_advisor),
):
    try:
        run = run_training(db, source)
    except Exception:
        log.exception("failed to run training")
        raise
    return TrainingRunOut.model_validate(run)
