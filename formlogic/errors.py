"""
Exception types raised inside the engine.

Most of these never reach callers: the evaluator catches them per condition
node (or per rule) and degrades to False with a log entry.
"""


class FormLogicError(Exception):
    """Base class for engine errors."""


class InvalidReferenceError(FormLogicError, ValueError):
    """A field reference is empty or whitespace."""


class ConditionEvaluationError(FormLogicError):
    """A single condition node could not be evaluated."""


class ComparisonError(ConditionEvaluationError):
    """Ordering comparison between null or incompatible operands."""


class UnsupportedOperatorError(ConditionEvaluationError):
    """Operator outside the ConditionOperator vocabulary."""
