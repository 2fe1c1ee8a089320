"""cellseg.exceptions

Notes (what this module does)
- Error taxonomy shared by the partitioner, tuner, and comparator.
- Configuration and data errors are ValueErrors so callers that only know the
  standard library still catch them.
"""


class CellsegError(Exception):
    """Base class for workflow errors."""


class ConfigurationError(CellsegError, ValueError):
    """Invalid fraction, grid, resampling plan, or hyperparameter value."""


class DataError(CellsegError, ValueError):
    """Malformed or insufficiently populated dataset or partition."""


class TuningError(CellsegError, RuntimeError):
    """No configuration of a grid could be scored on any resample."""
