# sales_forecaster_src/exceptions.py

"""
Exception hierarchy for the online sales forecaster.

Structural input problems (DataLoadError, RangeError from the splitter) are
fatal to a run. DomainError and InsufficientDataError raised while fitting a
single candidate are caught by the roster fitter and recorded as that
candidate's failure.
"""


class ForecasterError(Exception):
    """Base class for all forecaster errors."""
    pass


class DataLoadError(ForecasterError):
    """Raised when the input series cannot be parsed into a contiguous monthly series."""
    pass


class RangeError(ForecasterError, ValueError):
    """Raised for train/test windows outside the series span, reversed or overlapping."""
    pass


class DomainError(ForecasterError, ValueError):
    """Raised when a transform or multiplicative model meets non-positive data."""
    pass


class InsufficientDataError(ForecasterError, ValueError):
    """Raised when a model or transform needs more observations than are available."""

    def __init__(self, message: str, required: int = 0, available: int = 0):
        super().__init__(message)
        self.required = required
        self.available = available


class ConfigurationError(ForecasterError):
    """Raised when the configuration file cannot be read or parsed."""
    pass


class ModelFitError(ForecasterError):
    """Raised when no configuration of a candidate model could be estimated."""
    pass
