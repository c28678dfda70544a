import os
import math
import pickle
import uuid
import logging
import joblib
import numpy as np
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Sequence, Tuple
from sklearn.linear_model import SGDClassifier
from sklearn.metrics import accuracy_score
from sklearn.preprocessing import StandardScaler

from ..errors import DegenerateDatasetError, InvalidInputError
from .data_utils import TrainingRecord, load_dataset

log = logging.getLogger(__name__)

DECISION_THRESHOLD = 0.5


@dataclass(frozen=True)
class TrainedModel:
    """A fitted logistic regression plus the z-score statistics it was fit on."""
    version: str
    weights: Tuple[float, ...]
    bias: float
    accuracy: float
    feature_names: Tuple[str, ...]
    feature_means: Tuple[float, ...]
    feature_scales: Tuple[float, ...]
    created_at: datetime
    n_samples: int = 0

    @property
    def features_used(self) -> str:
        return ",".join(self.feature_names)


@dataclass(frozen=True)
class PredictionResult:
    probability: float
    passed: bool
    confidence: float

    @property
    def label(self) -> str:
        return "Pass" if self.passed else "Fail"


def generate_version(created_at: datetime) -> str:
    return f"logreg-{created_at.strftime('%Y%m%d-%H%M%S')}-{uuid.uuid4().hex[:6]}"


def _to_arrays(records: Sequence[TrainingRecord], features: Sequence[str]) -> Tuple[np.ndarray, np.ndarray]:
    X = np.array([[getattr(r, f) for f in features] for r in records], dtype=float)
    y = np.array([1 if r.passed else 0 for r in records], dtype=int)
    return X, y


def train_model(records: Sequence[TrainingRecord], settings) -> TrainedModel:
    if not records:
        raise DegenerateDatasetError("cannot train on an empty dataset")
    features = tuple(settings.FEATS)
    X, y = _to_arrays(records, features)
    n_pass = int(y.sum())
    if n_pass == 0 or n_pass == len(y):
        raise DegenerateDatasetError(
            f"training data needs both classes, got {n_pass} pass / {len(y) - n_pass} fail"
        )

    log.info("training logistic regression on %d rows (%d pass)", len(y), n_pass)
    scaler = StandardScaler()
    X_scaled = scaler.fit_transform(X)

    clf = SGDClassifier(
        loss="log_loss", penalty="l2", alpha=settings.ALPHA,
        learning_rate="constant", eta0=settings.LEARNING_RATE,
        max_iter=settings.MAX_ITER, tol=None, shuffle=True,
        random_state=settings.RANDOM_STATE,
    )
    clf.fit(X_scaled, y)

    created_at = datetime.now(timezone.utc)
    model = TrainedModel(
        version=generate_version(created_at),
        weights=tuple(float(w) for w in clf.coef_[0]),
        bias=float(clf.intercept_[0]),
        accuracy=0.0,
        feature_names=features,
        feature_means=tuple(float(m) for m in scaler.mean_),
        feature_scales=tuple(float(s) for s in scaler.scale_),
        created_at=created_at,
        n_samples=len(y),
    )
    # in-sample accuracy, scored through the same path used at inference
    preds = [1 if predict(model, r.study_hours, r.attendance).passed else 0 for r in records]
    accuracy = float(accuracy_score(y, preds))
    model = replace(model, accuracy=accuracy)
    log.info("trained model %s, in-sample accuracy %.4f", model.version, accuracy)
    return model


def sigmoid(z: float) -> float:
    if z >= 0:
        return 1.0 / (1.0 + math.exp(-z))
    ez = math.exp(z)
    return ez / (1.0 + ez)


def confidence_from_probability(probability: float) -> float:
    return min(1.0, max(0.0, abs(probability - DECISION_THRESHOLD) * 2))


def validate_inputs(study_hours: float, attendance: float) -> Tuple[float, float]:
    try:
        hours, att = float(study_hours), float(attendance)
    except (TypeError, ValueError):
        raise InvalidInputError("study_hours and attendance must be numbers")
    if not (math.isfinite(hours) and math.isfinite(att)):
        raise InvalidInputError("study_hours and attendance must be finite")
    if hours < 0:
        raise InvalidInputError(f"study_hours must be >= 0, got {hours}")
    if not 0 <= att <= 100:
        raise InvalidInputError(f"attendance must be within [0, 100], got {att}")
    return hours, att


def predict(model: TrainedModel, study_hours: float, attendance: float) -> PredictionResult:
    hours, att = validate_inputs(study_hours, attendance)
    values = {"study_hours": hours, "attendance": att}
    x = np.array([values[f] for f in model.feature_names], dtype=float)
    z = (x - np.array(model.feature_means)) / np.array(model.feature_scales)
    score = float(np.dot(np.array(model.weights), z) + model.bias)
    probability = sigmoid(score)
    return PredictionResult(
        probability=probability,
        passed=probability >= DECISION_THRESHOLD,
        confidence=confidence_from_probability(probability),
    )


def save_model(model: TrainedModel, model_path: str) -> None:
    dirname = os.path.dirname(model_path)
    if dirname:
        os.makedirs(dirname, exist_ok=True)
    joblib.dump(model, model_path)


# what joblib.load raises on a truncated or foreign file
UNREADABLE_ARTIFACT = (pickle.UnpicklingError, EOFError, KeyError, ValueError, IndexError, AttributeError, ImportError)


def load_model(model_path: str) -> TrainedModel:
    model = joblib.load(model_path)
    if not isinstance(model, TrainedModel):
        raise TypeError(f"{model_path} does not hold a TrainedModel (got {type(model).__name__})")
    return model


def train_or_load(model_path: str, data_csv: str, settings) -> Tuple[TrainedModel, bool]:
    """Return (model, trained_now). A saved artifact wins over retraining."""
    if os.path.exists(model_path):
        try:
            model = load_model(model_path)
        except UNREADABLE_ARTIFACT + (TypeError,) as e:
            log.warning("unreadable model artifact %s, retraining: %r", model_path, e)
        else:
            if tuple(model.feature_names) == tuple(settings.FEATS):
                log.info("loaded model %s from %s", model.version, model_path)
                return model, False
            log.warning("saved model features %s differ from %s, retraining", model.feature_names, settings.FEATS)
    model = train_model(load_dataset(data_csv).records, settings)
    save_model(model, model_path)
    return model, True
