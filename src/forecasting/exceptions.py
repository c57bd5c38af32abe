class SeriesValidationError(ValueError):
    """Raised when input series are malformed (dates, NaNs, too few points)."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


class ModelFitError(RuntimeError):
    """Raised when a forecaster cannot produce a usable fit."""
    pass
