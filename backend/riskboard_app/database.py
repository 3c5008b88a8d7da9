from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from .config import get_settings

settings = get_settings()
# sqlite connections are handed across the threadpool FastAPI runs sync routes in
connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(settings.DATABASE_URL, future=True, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
Base = declarative_base()

def init_db():
    from .models_db import Profile, Student, Prediction, Intervention, MLModel, PipelineRun, TrainingRun  # noqa
    Base.metadata.create_all(bind=engine)
