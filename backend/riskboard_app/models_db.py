from sqlalchemy import Column, Integer, String, Float, JSON, DateTime, Boolean, Text, ForeignKey
from sqlalchemy.sql import func
from .database import Base

class Profile(Base):
    __tablename__ = "profiles"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False)
    role = Column(String, nullable=False)          # advisor | student
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class Student(Base):
    __tablename__ = "students"
    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(String, unique=True, index=True, nullable=False)   # institutional student number
    full_name = Column(String, nullable=False)
    email = Column(String, index=True, nullable=False)
    major = Column(String)
    year = Column(String)
    gpa = Column(Float)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class Prediction(Base):
    __tablename__ = "predictions"
    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), index=True, nullable=False)
    risk_level = Column(String, nullable=False)    # high | medium | low
    risk_score = Column(Float)
    rationale = Column(JSON, default=dict)         # e.g., {"attendance_rate": 0.6, "gpa_trend": 0.3}
    model_version = Column(String)
    prediction_date = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class Intervention(Base):
    __tablename__ = "interventions"
    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), index=True, nullable=False)
    advisor_id = Column(Integer, ForeignKey("profiles.id"), nullable=False)
    intervention_type = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    outcome = Column(String)
    intervention_date = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class MLModel(Base):
    __tablename__ = "ml_models"
    id = Column(Integer, primary_key=True, index=True)
    version = Column(String, nullable=False)
    accuracy = Column(Float)                       # percent, 0-100
    model_data = Column(JSON)
    is_active = Column(Boolean, default=False, index=True)
    uploaded_by = Column(Integer, ForeignKey("profiles.id"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class PipelineRun(Base):
    __tablename__ = "data_pipeline_runs"
    id = Column(Integer, primary_key=True, index=True)
    status = Column(String, default="pending")     # pending | running | completed | failed
    triggered_by = Column(String, default="manual")  # manual | scheduler
    notes = Column(String)
    records_imported = Column(Integer)
    feature_count = Column(Integer)
    error_message = Column(String)
    started_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True))

class TrainingRun(Base):
    __tablename__ = "model_training_runs"
    id = Column(Integer, primary_key=True, index=True)
    status = Column(String, default="pending")     # pending | running | evaluating | awaiting_approval | deployed | failed
    triggered_by = Column(String, default="manual")
    notes = Column(String)
    accuracy = Column(Float)
    fairness_score = Column(Float)
    deployed_version = Column(String)
    started_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True))
