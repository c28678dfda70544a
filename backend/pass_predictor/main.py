import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import List, Optional

from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .database import SessionLocal, init_db
from .errors import PassPredictorError
from .schemas import (
    PredictRequest, PredictResponse, TrendRequest, TrendResponse, ModelInfoResponse,
    RetrainResponse, ModelVersionOut, PredictionOut, TrendOut, StudentTrendResponse,
    BatchStudent, BatchPrediction, BatchResponse, AnalyticsResponse
)
from .service import PredictionService

settings = get_settings()

# ---------------- logging ----------------
logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(message)s")
log = logging.getLogger("pass-predictor-api")

# --------------- Bootstrap: DB + Model ---------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    service = PredictionService.from_session_factory(settings, SessionLocal)
    if not service.bootstrap():
        log.warning("starting without an active model; /predict answers 503 until /model/retrain succeeds")
    app.state.service = service
    yield

app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware, allow_origins=["*"], allow_credentials=True, allow_methods=["*"], allow_headers=["*"]
)

def get_service(request: Request) -> PredictionService:
    return request.app.state.service

@app.exception_handler(PassPredictorError)
async def handle_core_error(request: Request, exc: PassPredictorError):
    log.info("%s %s -> %s: %s", request.method, request.url.path, type(exc).__name__, exc)
    return JSONResponse(status_code=exc.status_code, content={"error": type(exc).__name__, "detail": str(exc)})

@app.get("/health")
def health(svc: PredictionService = Depends(get_service)):
    return {"status": "ok", "version": settings.APP_VERSION, "model_ready": svc.registry.is_ready}

# --------------- Predict ----------------
@app.post("/predict", response_model=PredictResponse)
def predict(req: PredictRequest, svc: PredictionService = Depends(get_service)):
    out = svc.predict(req.name, req.study_hours, req.attendance)
    return PredictResponse(
        probability=out.result.probability, passed=out.result.passed, prediction=out.result.label,
        confidence=out.result.confidence, persisted=out.persisted, persistence_error=out.persistence_error
    )

@app.post("/batch-predict", response_model=BatchResponse)
def batch_predict(students: List[BatchStudent], svc: PredictionService = Depends(get_service)):
    out = svc.batch_predict([s.model_dump() for s in students])
    return BatchResponse(
        total_students=len(out.items),
        predictions=[BatchPrediction(
            name=i.name, hours=i.study_hours, attendance=i.attendance, prediction=i.result.label,
            probability=i.result.probability, confidence=i.result.confidence, recommendation=i.recommendation
        ) for i in out.items],
        summary=out.summary,
        unsaved=out.persistence_errors
    )

# --------------- Trends ----------------
@app.post("/trends", response_model=TrendResponse)
def record_trend(req: TrendRequest, svc: PredictionService = Depends(get_service)):
    out = svc.record_trend(req.student_name, req.week, req.study_hours, req.attendance)
    return TrendResponse(
        passed=out.result.passed, confidence=out.result.confidence,
        persisted=out.persisted, persistence_error=out.persistence_error
    )

@app.get("/trends/{student_name}", response_model=StudentTrendResponse)
def student_trend(student_name: str, week_from: Optional[int] = None, week_to: Optional[int] = None,
                  svc: PredictionService = Depends(get_service)):
    summary = svc.student_trend(student_name, week_from=week_from, week_to=week_to)
    summary["weekly_data"] = [TrendOut(**asdict(t)) for t in summary["weekly_data"]]
    return StudentTrendResponse(**summary)

# --------------- Model ----------------
@app.get("/model/info", response_model=ModelInfoResponse)
def model_info(svc: PredictionService = Depends(get_service)):
    m = svc.model_info()
    return ModelInfoResponse(
        version=m.version, accuracy=m.accuracy, feature_names=list(m.feature_names),
        created_at=m.created_at, n_samples=m.n_samples
    )

@app.get("/model/retrain", response_model=RetrainResponse)
def retrain(csv_path: Optional[str] = None, svc: PredictionService = Depends(get_service)):
    out = svc.retrain(csv_path)
    return RetrainResponse(
        version=out.model.version, accuracy=out.model.accuracy, rejected_rows=out.rejected_rows,
        persisted=out.persisted, persistence_error=out.persistence_error
    )

@app.get("/model/versions", response_model=List[ModelVersionOut])
def model_versions(svc: PredictionService = Depends(get_service)):
    return [ModelVersionOut(**asdict(v)) for v in svc.versions.list()]

# --------------- History + analytics ----------------
@app.get("/predictions", response_model=List[PredictionOut])
def list_predictions(name: Optional[str] = None, limit: Optional[int] = None,
                     svc: PredictionService = Depends(get_service)):
    return [PredictionOut(**asdict(p)) for p in svc.predictions.list(name=name, limit=limit)]

@app.get("/analytics", response_model=AnalyticsResponse)
def analytics(svc: PredictionService = Depends(get_service)):
    return AnalyticsResponse(**svc.analytics())
