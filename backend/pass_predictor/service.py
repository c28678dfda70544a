"""Core operations the API layer calls: predict, record trend, model info, retrain."""
import os
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .analytics import batch_summary, recommendation, student_trend_summary, weekly_prediction_summary
from .errors import DatasetError, InvalidInputError, PersistenceError, TrainingInProgressError
from .registry import ModelRegistry
from .store import (
    ModelVersionLog, ModelVersionRecord, PredictionRecord, PredictionStore, TrendRecord, TrendStore,
)
from .utils.data_utils import load_dataset
from .utils.model_utils import PredictionResult, TrainedModel, predict, save_model, train_model, train_or_load

log = logging.getLogger(__name__)

PACKAGE_DIR = os.path.dirname(__file__)


def resolve_path(path: str) -> str:
    # relative paths in settings are relative to the package, like the defaults
    return os.path.join(PACKAGE_DIR, path)


@dataclass
class PredictOutcome:
    result: PredictionResult
    record: Optional[PredictionRecord] = None
    persistence_error: Optional[str] = None

    @property
    def persisted(self) -> bool:
        return self.record is not None


@dataclass
class TrendOutcome:
    result: PredictionResult
    record: Optional[TrendRecord] = None
    persistence_error: Optional[str] = None

    @property
    def persisted(self) -> bool:
        return self.record is not None


@dataclass
class RetrainOutcome:
    model: TrainedModel
    rejected_rows: int = 0
    version_record: Optional[ModelVersionRecord] = None
    persistence_error: Optional[str] = None

    @property
    def persisted(self) -> bool:
        return self.version_record is not None


@dataclass
class BatchItem:
    name: str
    study_hours: float
    attendance: float
    result: PredictionResult
    recommendation: str


@dataclass
class BatchOutcome:
    items: List[BatchItem] = field(default_factory=list)
    summary: Dict = field(default_factory=dict)
    persistence_errors: int = 0


class PredictionService:
    def __init__(self, settings, registry: ModelRegistry, predictions: PredictionStore,
                 trends: TrendStore, versions: ModelVersionLog):
        self.settings = settings
        self.registry = registry
        self.predictions = predictions
        self.trends = trends
        self.versions = versions
        self._training_lock = threading.Lock()

    @classmethod
    def from_session_factory(cls, settings, session_factory, registry: Optional[ModelRegistry] = None):
        return cls(
            settings,
            registry or ModelRegistry(),
            PredictionStore(session_factory),
            TrendStore(session_factory),
            ModelVersionLog(session_factory),
        )

    # ---------------- model lifecycle ----------------
    def bootstrap(self) -> bool:
        """Load or train the startup model. Returns whether a model is active."""
        model_path = resolve_path(self.settings.MODEL_PATH)
        data_csv = resolve_path(self.settings.DATA_CSV)
        with self._training_lock:
            try:
                model, trained_now = train_or_load(model_path, data_csv, self.settings)
            except (DatasetError, OSError, TypeError) as e:
                log.error("startup model unavailable: %s", e)
                return False
            self.registry.activate(model)
            if trained_now:
                self._log_version(model)
        return True

    def retrain(self, source=None) -> RetrainOutcome:
        if not self._training_lock.acquire(blocking=False):
            raise TrainingInProgressError()
        try:
            loaded = load_dataset(source if source is not None else resolve_path(self.settings.DATA_CSV))
            model = train_model(loaded.records, self.settings)
            self.registry.activate(model)
            try:
                save_model(model, resolve_path(self.settings.MODEL_PATH))
            except OSError as e:
                log.warning("could not save model artifact: %s", e)
            outcome = RetrainOutcome(model=model, rejected_rows=loaded.rejected_rows)
            try:
                outcome.version_record = self._log_version(model, reraise=True)
            except PersistenceError as e:
                outcome.persistence_error = str(e)
            return outcome
        finally:
            self._training_lock.release()

    def _log_version(self, model: TrainedModel, reraise: bool = False) -> Optional[ModelVersionRecord]:
        try:
            return self.versions.record(ModelVersionRecord(
                version=model.version, accuracy=model.accuracy,
                features_used=model.features_used, created_at=model.created_at,
            ))
        except PersistenceError:
            log.exception("model version %s not logged", model.version)
            if reraise:
                raise
            return None

    def model_info(self) -> TrainedModel:
        return self.registry.current()

    # ---------------- predictions ----------------
    def predict(self, name: str, study_hours: float, attendance: float) -> PredictOutcome:
        result = predict(self.registry.current(), study_hours, attendance)
        outcome = PredictOutcome(result=result)
        try:
            outcome.record = self.predictions.record(PredictionRecord(
                name=name, study_hours=float(study_hours), attendance=float(attendance),
                predicted_pass=result.passed, confidence=result.confidence,
            ))
        except PersistenceError as e:
            log.warning("prediction for %r returned without being stored: %s", name, e)
            outcome.persistence_error = str(e)
        return outcome

    def record_trend(self, student_name: str, week: int, study_hours: float, attendance: float) -> TrendOutcome:
        if isinstance(week, bool) or not isinstance(week, int) or week < 1:
            raise InvalidInputError(f"week must be an integer >= 1, got {week!r}")
        result = predict(self.registry.current(), study_hours, attendance)
        outcome = TrendOutcome(result=result)
        try:
            outcome.record = self.trends.record(TrendRecord(
                student_name=student_name, week=week,
                study_hours=float(study_hours), attendance=float(attendance),
                predicted_pass=result.passed, confidence=result.confidence,
            ))
        except PersistenceError as e:
            log.warning("trend week %d for %r returned without being stored: %s", week, student_name, e)
            outcome.persistence_error = str(e)
        return outcome

    def batch_predict(self, students: Sequence[Dict]) -> BatchOutcome:
        """Predict every student (all inputs validated first), storing each row."""
        model = self.registry.current()
        results = [predict(model, s["study_hours"], s["attendance"]) for s in students]
        outcome = BatchOutcome()
        for student, result in zip(students, results):
            try:
                self.predictions.record(PredictionRecord(
                    name=student["name"], study_hours=float(student["study_hours"]),
                    attendance=float(student["attendance"]),
                    predicted_pass=result.passed, confidence=result.confidence,
                ))
            except PersistenceError:
                outcome.persistence_errors += 1
            outcome.items.append(BatchItem(
                name=student["name"], study_hours=float(student["study_hours"]),
                attendance=float(student["attendance"]), result=result,
                recommendation=recommendation(student["study_hours"], student["attendance"], result),
            ))
        if outcome.persistence_errors:
            log.warning("%d of %d batch predictions not stored", outcome.persistence_errors, len(students))
        outcome.summary = batch_summary(results)
        return outcome

    # ---------------- reads ----------------
    def student_trend(self, student_name: str, week_from: Optional[int] = None,
                      week_to: Optional[int] = None) -> Dict:
        rows = self.trends.list(student_name=student_name, week_from=week_from,
                                week_to=week_to, order_by_week=True)
        return student_trend_summary(student_name, rows)

    def analytics(self) -> Dict:
        stats = self.predictions.class_statistics()
        return {
            "total_students": stats.total_students,
            "pass_rate": stats.pass_rate,
            "avg_study_hours": stats.avg_study_hours,
            "avg_attendance": stats.avg_attendance,
            "weekly_trends": weekly_prediction_summary(self.predictions.list()),
        }
