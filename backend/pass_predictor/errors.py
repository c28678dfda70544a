class PassPredictorError(Exception):
    """Base class for every error raised by the prediction core."""
    status_code = 500


class DatasetError(PassPredictorError):
    status_code = 400


class DataFormatError(DatasetError):
    """A row is missing a required column or a field does not parse."""


class EmptyDatasetError(DatasetError):
    """No usable rows remain after validation."""


class DegenerateDatasetError(DatasetError):
    """Training needs at least one passing and one failing record."""


class NoActiveModelError(PassPredictorError):
    status_code = 503

    def __init__(self, message: str = "no model has been activated yet"):
        super().__init__(message)


class InvalidInputError(PassPredictorError):
    status_code = 422


class PersistenceError(PassPredictorError):
    status_code = 500


class TrainingInProgressError(PassPredictorError):
    status_code = 409

    def __init__(self, message: str = "a training run is already in progress"):
        super().__init__(message)
