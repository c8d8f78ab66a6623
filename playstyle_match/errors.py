"""
Exceptions raised by the analysis pipeline.

Oracle unavailability is not an exception: ``open_engine`` returns None and
the analyzer falls back to material evaluation.
"""


class AnalysisCancelled(Exception):
    """Raised when a running game analysis was cancelled by the caller."""


class InvalidMoveListError(ValueError):
    """Raised when a move list is empty or cannot be replayed legally."""


class EvaluationError(Exception):
    """Raised when the engine produced no usable score for a position."""
