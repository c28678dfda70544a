import threading
from dataclasses import replace

import pytest

from pass_predictor.errors import NoActiveModelError
from pass_predictor.registry import ModelRegistry


def test_current_before_activation(empty_registry):
    assert not empty_registry.is_ready
    with pytest.raises(NoActiveModelError):
        empty_registry.current()


def test_activate_then_current(empty_registry, trained_model):
    assert empty_registry.activate(trained_model) is None
    assert empty_registry.current() is trained_model
    assert empty_registry.is_ready


def test_activate_swaps_and_returns_previous(trained_model):
    registry = ModelRegistry(trained_model)
    newer = replace(trained_model, version="newer", weights=(9.0, 9.0))
    assert registry.activate(newer) is trained_model
    assert registry.current() is newer
    # the old instance is untouched
    assert trained_model.weights != newer.weights


def test_activate_rejects_non_models(empty_registry):
    with pytest.raises(TypeError):
        empty_registry.activate({"weights": [1, 2]})


def test_readers_see_whole_models_during_swaps(trained_model):
    models = [replace(trained_model, version=f"v{i}", weights=(float(i), float(i))) for i in range(20)]
    registry = ModelRegistry(models[0])
    seen, stop = [], threading.Event()

    def reader():
        while not stop.is_set():
            m = registry.current()
            seen.append((m.version, m.weights))

    threads = [threading.Thread(target=reader) for _ in range(4)]
    for t in threads:
        t.start()
    for m in models[1:]:
        registry.activate(m)
    stop.set()
    for t in threads:
        t.join()

    valid = {(m.version, m.weights) for m in models}
    assert seen
    assert all(pair in valid for pair in seen)
    assert registry.current() is models[-1]
