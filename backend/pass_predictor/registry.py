import logging
import threading
from typing import Optional

from .errors import NoActiveModelError
from .utils.model_utils import TrainedModel

log = logging.getLogger(__name__)


class ModelRegistry:
    """Holds the single active TrainedModel.

    Models are immutable, so swapping the reference is the whole update:
    readers never lock and always see one complete model. Writers are
    serialised by ``_write_lock``.
    """

    def __init__(self, model: Optional[TrainedModel] = None):
        self._write_lock = threading.Lock()
        self._active: Optional[TrainedModel] = model

    def activate(self, model: TrainedModel) -> Optional[TrainedModel]:
        if not isinstance(model, TrainedModel):
            raise TypeError(f"expected TrainedModel, got {type(model).__name__}")
        with self._write_lock:
            previous, self._active = self._active, model
        log.info("activated model %s (previous: %s)", model.version,
                 previous.version if previous else None)
        return previous

    def current(self) -> TrainedModel:
        model = self._active
        if model is None:
            raise NoActiveModelError()
        return model

    @property
    def is_ready(self) -> bool:
        return self._active is not None
