from datetime import datetime
from pydantic import AliasChoices, BaseModel, Field
from typing import List, Dict, Optional

class PredictRequest(BaseModel):
    name: str = Field("Anonymous", min_length=1)
    study_hours: float = Field(validation_alias=AliasChoices("study_hours", "hours"))
    attendance: float

class PredictResponse(BaseModel):
    probability: float
    passed: bool
    prediction: str                  # "Pass" | "Fail"
    confidence: float
    persisted: bool
    persistence_error: Optional[str] = None

class TrendRequest(BaseModel):
    student_name: str = Field(min_length=1)
    week: int
    study_hours: float
    attendance: float

class TrendResponse(BaseModel):
    passed: bool
    confidence: float
    persisted: bool
    persistence_error: Optional[str] = None

class ModelInfoResponse(BaseModel):
    version: str
    accuracy: float
    feature_names: List[str]
    created_at: datetime
    n_samples: int

class RetrainResponse(BaseModel):
    version: str
    accuracy: float
    rejected_rows: int
    persisted: bool
    persistence_error: Optional[str] = None

class ModelVersionOut(BaseModel):
    id: int
    version: str
    accuracy: float
    features_used: str
    created_at: Optional[datetime]

class PredictionOut(BaseModel):
    id: int
    name: str
    study_hours: float
    attendance: float
    predicted_pass: bool
    confidence: float
    created_at: Optional[datetime]

class TrendOut(BaseModel):
    id: int
    student_name: str
    week: int
    study_hours: float
    attendance: float
    predicted_pass: bool
    confidence: float
    created_at: Optional[datetime]

class StudentTrendResponse(BaseModel):
    student_name: str
    weekly_data: List[TrendOut]
    overall_trend: str               # Improving | Declining | Stable
    improvement_score: float

class BatchStudent(BaseModel):
    name: str = Field(min_length=1)
    study_hours: float = Field(validation_alias=AliasChoices("study_hours", "hours"))
    attendance: float

class BatchPrediction(BaseModel):
    name: str
    hours: float
    attendance: float
    prediction: str
    probability: float
    confidence: float
    recommendation: str

class BatchResponse(BaseModel):
    total_students: int
    predictions: List[BatchPrediction]
    summary: Dict[str, float]        # pass_count, fail_count, pass_rate, avg_confidence
    unsaved: int

class WeeklyTrend(BaseModel):
    week: str
    avg_study_hours: float
    avg_attendance: float
    pass_rate: float
    prediction_count: int

class AnalyticsResponse(BaseModel):
    total_students: int
    pass_rate: float
    avg_study_hours: float
    avg_attendance: float
    weekly_trends: List[WeeklyTrend]
