import pytest

from pass_predictor.config import Settings
from pass_predictor.database import init_db, make_engine, make_session_factory
from pass_predictor.registry import ModelRegistry
from pass_predictor.service import PredictionService
from pass_predictor.utils.data_utils import TrainingRecord
from pass_predictor.utils.model_utils import train_model

# 5 pass with hours >= 8 and attendance >= 80, 5 fail with hours <= 3 and attendance <= 40
REFERENCE_ROWS = [
    (8.0, 80.0, True),
    (9.0, 85.0, True),
    (10.0, 90.0, True),
    (8.5, 95.0, True),
    (12.0, 100.0, True),
    (1.0, 20.0, False),
    (2.0, 30.0, False),
    (3.0, 40.0, False),
    (0.0, 10.0, False),
    (2.5, 35.0, False),
]


def write_csv(path, rows, header="name,study_hours,attendance,passed"):
    lines = [header]
    for i, (hours, attendance, passed) in enumerate(rows):
        lines.append(f"student{i},{hours},{attendance},{1 if passed else 0}")
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture()
def reference_records():
    return [TrainingRecord(h, a, p) for h, a, p in REFERENCE_ROWS]


@pytest.fixture()
def reference_csv(tmp_path):
    return write_csv(tmp_path / "students.csv", REFERENCE_ROWS)


@pytest.fixture()
def settings(tmp_path, reference_csv):
    return Settings(
        DATABASE_URL="sqlite://",
        MODEL_PATH=str(tmp_path / "models" / "model.joblib"),
        DATA_CSV=str(reference_csv),
    )


@pytest.fixture()
def trained_model(reference_records, settings):
    return train_model(reference_records, settings)


@pytest.fixture()
def session_factory():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture()
def broken_session_factory():
    # no tables created, every statement fails
    engine = make_engine("sqlite://")
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture()
def service(settings, session_factory):
    return PredictionService.from_session_factory(settings, session_factory)


@pytest.fixture()
def ready_service(service, trained_model):
    service.registry.activate(trained_model)
    return service


@pytest.fixture()
def empty_registry():
    return ModelRegistry()
