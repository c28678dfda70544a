import os

import pytest

from pass_predictor.errors import (
    DegenerateDatasetError, InvalidInputError, NoActiveModelError, TrainingInProgressError,
)
from pass_predictor.registry import ModelRegistry
from pass_predictor.service import PredictionService
from pass_predictor.store import ModelVersionLog, PredictionStore, TrendStore

from conftest import write_csv


def test_predict_before_training(service):
    with pytest.raises(NoActiveModelError):
        service.predict("Grace", 9, 90)


def test_predict_is_recorded(ready_service):
    out = ready_service.predict("Grace", 9, 90)
    assert out.result.passed
    assert out.persisted
    [stored] = ready_service.predictions.list(name="Grace")
    assert stored.predicted_pass is True
    assert stored.confidence == out.result.confidence


def test_invalid_input_is_not_recorded(ready_service):
    with pytest.raises(InvalidInputError):
        ready_service.predict("Grace", -1, 50)
    assert ready_service.predictions.list() == []


def test_persistence_failure_keeps_the_prediction(settings, trained_model, session_factory, broken_session_factory):
    svc = PredictionService(
        settings, ModelRegistry(trained_model), PredictionStore(broken_session_factory),
        TrendStore(broken_session_factory), ModelVersionLog(session_factory),
    )
    out = svc.predict("Grace", 9, 90)
    assert out.result.passed
    assert not out.persisted
    assert "student_predictions" in out.persistence_error

    trend = svc.record_trend("Grace", 1, 9, 90)
    assert trend.result.passed
    assert not trend.persisted
    assert trend.persistence_error


def test_record_trend(ready_service):
    out = ready_service.record_trend("Denis", 2, 2.0, 30.0)
    assert not out.result.passed
    assert out.record.week == 2
    assert out.record.student_name == "Denis"


@pytest.mark.parametrize("week", [0, -3, 1.5, "2", True])
def test_record_trend_rejects_bad_week(ready_service, week):
    with pytest.raises(InvalidInputError):
        ready_service.record_trend("Denis", week, 5, 80)


def test_retrain_activates_and_logs_version(service, reference_csv, settings):
    out = service.retrain(str(reference_csv))
    assert out.model.accuracy == 1.0
    assert out.persisted
    assert service.model_info() is out.model
    assert service.versions.latest().version == out.model.version
    assert service.versions.latest().features_used == "study_hours,attendance"
    assert os.path.exists(settings.MODEL_PATH)


def test_retrain_keeps_new_model_when_version_log_fails(settings, trained_model, session_factory,
                                                     broken_session_factory, reference_csv):
    svc = PredictionService(
        settings, ModelRegistry(trained_model), PredictionStore(session_factory),
        TrendStore(session_factory), ModelVersionLog(broken_session_factory),
    )
    out = svc.retrain(str(reference_csv))
    assert not out.persisted
    assert out.version_record is None
    assert "model_versions" in out.persistence_error
    assert svc.model_info() is out.model
    assert out.model.version != trained_model.version


def test_retrain_reports_rejected_rows(service, tmp_path):
    rows = [(9, 90, True), (8, 85, True), (1, 20, False), (2, 30, False), (-4, 50, True), (5, 150, False)]
    out = service.retrain(str(write_csv(tmp_path / "mixed.csv", rows)))
    assert out.rejected_rows == 2
    assert out.model.n_samples == 4


def test_failed_retrain_keeps_previous_model(ready_service, trained_model, tmp_path):
    path = write_csv(tmp_path / "all_pass.csv", [(9, 90, True), (8, 80, True)])
    with pytest.raises(DegenerateDatasetError):
        ready_service.retrain(str(path))
    assert ready_service.model_info() is trained_model
    assert ready_service.versions.list() == []


def test_only_one_training_run_at_a_time(service, reference_csv):
    service._training_lock.acquire()
    try:
        with pytest.raises(TrainingInProgressError):
            service.retrain(str(reference_csv))
    finally:
        service._training_lock.release()
    assert service.retrain(str(reference_csv)).model.accuracy == 1.0


def test_bootstrap_trains_once_then_loads(settings, session_factory):
    first = PredictionService.from_session_factory(settings, session_factory)
    assert first.bootstrap()
    assert len(first.versions.list()) == 1

    second = PredictionService.from_session_factory(settings, session_factory)
    assert second.bootstrap()
    assert second.model_info() == first.model_info()
    assert len(second.versions.list()) == 1


def test_bootstrap_retrains_over_a_corrupt_artifact(settings, session_factory):
    os.makedirs(os.path.dirname(settings.MODEL_PATH), exist_ok=True)
    with open(settings.MODEL_PATH, "wb") as fh:
        fh.write(b"not a joblib file at all")

    svc = PredictionService.from_session_factory(settings, session_factory)
    assert svc.bootstrap()
    assert svc.model_info().accuracy == 1.0
    assert len(svc.versions.list()) == 1

    # the artifact was rewritten and loads on the next start
    again = PredictionService.from_session_factory(settings, session_factory)
    assert again.bootstrap()
    assert again.model_info() == svc.model_info()


def test_corrupt_artifact_and_no_dataset_leaves_service_not_ready(settings, session_factory, tmp_path):
    missing = settings.model_copy(update={"DATA_CSV": str(tmp_path / "missing.csv")})
    os.makedirs(os.path.dirname(missing.MODEL_PATH), exist_ok=True)
    with open(missing.MODEL_PATH, "wb") as fh:
        fh.write(b"\x80\x04truncated")

    svc = PredictionService.from_session_factory(missing, session_factory)
    assert svc.bootstrap() is False
    assert not svc.registry.is_ready


def test_bootstrap_without_dataset(settings, session_factory, tmp_path):
    missing = settings.model_copy(update={"DATA_CSV": str(tmp_path / "missing.csv")})
    svc = PredictionService.from_session_factory(missing, session_factory)
    assert svc.bootstrap() is False
    assert not svc.registry.is_ready
    with pytest.raises(NoActiveModelError):
        svc.model_info()


def test_batch_predict(ready_service):
    out = ready_service.batch_predict([
        {"name": "Kukutia", "study_hours": 9.0, "attendance": 92.0},
        {"name": "Kirionki", "study_hours": 1.0, "attendance": 30.0},
    ])
    assert [i.result.passed for i in out.items] == [True, False]
    assert out.summary["pass_count"] == 1
    assert out.summary["pass_rate"] == pytest.approx(0.5)
    assert out.persistence_errors == 0
    assert len(ready_service.predictions.list()) == 2


def test_batch_predict_validates_everything_first(ready_service):
    with pytest.raises(InvalidInputError):
        ready_service.batch_predict([
            {"name": "ok", "study_hours": 9.0, "attendance": 92.0},
            {"name": "bad", "study_hours": 9.0, "attendance": 192.0},
        ])
    assert ready_service.predictions.list() == []


def test_student_trend_and_analytics(ready_service):
    for week, (hours, attendance) in enumerate([(2, 30), (5, 60), (9, 90)], start=1):
        ready_service.record_trend("Denis", week, hours, attendance)
    ready_service.predict("Grace", 9, 90)

    summary = ready_service.student_trend("Denis")
    assert [t.week for t in summary["weekly_data"]] == [1, 2, 3]
    assert summary["overall_trend"] in ("Improving", "Declining", "Stable")
    assert summary["improvement_score"] == 10.0

    stats = ready_service.analytics()
    assert stats["total_students"] == 1
    assert stats["pass_rate"] == 1.0
    assert len(stats["weekly_trends"]) == 1
