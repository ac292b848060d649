"""
Exception types for the boundary estimation pipeline.

Policy (who raises, who handles):

    ConfigurationError            raised eagerly by config validation,
                                  before calibration or sampling starts.
    CalibrationConvergenceFailure raised by the loss calibrator; fatal,
                                  no trace is produced.
    RootFindingFailure            raised by the closure solver. The sampler
                                  treats it as a rejected proposal, except
                                  while building the initial state.
    DegenerateMove                raised inside a dimension move when the
                                  knot configuration cannot support it; the
                                  sampler logs it and skips the move.

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""


class BoundaryError(Exception):
    """Base class for all boundary estimation errors."""


class ConfigurationError(BoundaryError, ValueError):
    """Invalid selector or setting, detected before any computation."""


class RootFindingFailure(BoundaryError):
    """The closure constraint has no root inside the search bracket."""


class CalibrationConvergenceFailure(BoundaryError):
    """The constrained optimizer used during calibration did not converge."""


class DegenerateMove(BoundaryError):
    """A dimension-changing move is impossible for the current knots."""
