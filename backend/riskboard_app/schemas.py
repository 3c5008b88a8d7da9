from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Dict, Optional, Literal

class StudentCreate(BaseModel):
    student_id: str = Field(min_length=1)
    full_name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    major: Optional[str] = None
    year: Optional[str] = None
    gpa: Optional[float] = Field(default=None, ge=0, le=4)

class StudentOut(BaseModel):
    id: int
    student_id: str
    full_name: str
    email: str
    major: Optional[str] = None
    year: Optional[str] = None
    gpa: Optional[float] = None

    class Config:
        from_attributes = True

class PredictionCreate(BaseModel):
    student_id: int
    risk_level: Literal["high", "medium", "low"]
    risk_score: float
    rationale: Dict[str, float] = {}
    model_version: Optional[str] = None
    prediction_date: Optional[datetime] = None   # defaults to insert time

    class Config:
        protected_namespaces = ()

class PredictionOut(BaseModel):
    id: int
    student_id: int
    risk_level: str   # stored value; unrecognised tiers are tolerated downstream
    risk_score: Optional[float] = None
    rationale: Optional[Dict[str, float]] = None
    model_version: Optional[str] = None
    prediction_date: Optional[datetime] = None

    class Config:
        from_attributes = True
        protected_namespaces = ()

class StudentWithPrediction(BaseModel):
    """A student paired with at most one (the most recent) prediction."""
    student: StudentOut
    prediction: Optional[PredictionOut] = None

class RiskCounts(BaseModel):
    high: int = 0
    medium: int = 0
    low: int = 0

class RiskBars(BaseModel):
    high: float = 0.0   # percent of the largest tier count
    medium: float = 0.0
    low: float = 0.0

class DashboardSummary(BaseModel):
    total: int
    counts: RiskCounts
    bars: RiskBars

class RationaleItem(BaseModel):
    factor: str
    label: str          # factor with underscores shown as spaces
    weight: float
    percent: int        # clamped to 0..100
    bar_width: float    # clamped to 0..100

class InterventionCreate(BaseModel):
    intervention_type: str
    description: str = Field(min_length=1)
    outcome: Optional[str] = None

class InterventionOut(BaseModel):
    id: int
    student_id: int
    advisor_id: int
    intervention_type: str
    description: str
    outcome: Optional[str] = None
    intervention_date: Optional[datetime] = None

    class Config:
        from_attributes = True

class StudentDetail(BaseModel):
    student: StudentOut
    prediction: Optional[PredictionOut] = None
    rationale: List[RationaleItem]
    interventions: List[InterventionOut]

class StudentSelfView(BaseModel):
    student: Optional[StudentOut] = None   # None until the advisor office links a record
    prediction: Optional[PredictionOut] = None
    rationale: List[RationaleItem] = []
    nudges: List[str] = []
    interventions: List[InterventionOut] = []

class ImportResponse(BaseModel):
    created: int
    invalid: int = 0     # rows missing student_id, full_name or email
    skipped: List[str]   # student numbers already on file

class MLModelOut(BaseModel):
    id: int
    version: str
    accuracy: Optional[float] = None
    is_active: bool
    uploaded_by: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class PipelineTriggerRequest(BaseModel):
    triggered_by: Literal["manual", "scheduler"] = "manual"

class PipelineRunOut(BaseModel):
    id: int
    status: str
    triggered_by: str
    notes: Optional[str] = None
    records_imported: Optional[int] = None
    feature_count: Optional[int] = None
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class TrainingRunOut(BaseModel):
    id: int
    status: str
    triggered_by: str
    notes: Optional[str] = None
    accuracy: Optional[float] = None
    fairness_score: Optional[float] = None
    deployed_version: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
