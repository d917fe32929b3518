"""Error taxonomy for the study engine.

None of these are meant to escape a running session: callers recover by
skipping the item, treating it as "no match", or falling back to a local grade.
"""


class MnemeError(Exception):
    """Base class for all engine errors."""


class ValidationError(MnemeError):
    """Malformed content: bad keyword spec, empty required answer, bad record."""


class NotFoundError(MnemeError):
    """A referenced question has no matching content record."""

    def __init__(self, question_id: str):
        super().__init__(f"Question not found: {question_id}")
        self.question_id = question_id


class EscalationFailure(MnemeError):
    """The remote essay grader was unreachable, timed out, or answered garbage."""


class StateInvariantViolation(MnemeError):
    """A persisted ReviewState is outside its documented bounds."""

    def __init__(self, question_id: str, violations: list[str]):
        super().__init__(f"Review state {question_id} out of range: {', '.join(violations)}")
        self.question_id = question_id
        self.violations = list(violations)
