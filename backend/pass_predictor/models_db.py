from sqlalchemy import Boolean, Column, Integer, String, Float, DateTime
from sqlalchemy.sql import func
from .database import Base

class StudentPrediction(Base):
    __tablename__ = "student_predictions"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    study_hours = Column(Float, nullable=False)
    attendance = Column(Float, nullable=False)
    predicted_pass = Column(Boolean, nullable=False)
    confidence = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

class StudentTrend(Base):
    __tablename__ = "student_trends"
    id = Column(Integer, primary_key=True, index=True)
    student_name = Column(String, nullable=False, index=True)
    week = Column(Integer, nullable=False)   # 1-based
    study_hours = Column(Float, nullable=False)
    attendance = Column(Float, nullable=False)
    predicted_pass = Column(Boolean, nullable=False)
    confidence = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

class ModelVersion(Base):
    __tablename__ = "model_versions"
    id = Column(Integer, primary_key=True, index=True)
    version = Column(String, nullable=False)
    accuracy = Column(Float, nullable=False)
    features_used = Column(String, nullable=False)   # e.g. "study_hours,attendance"
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
