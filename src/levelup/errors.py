"""Domain exceptions raised by the progression services.

Each maps to one HTTP status in ``levelup.middleware.error_handler``.
"""

from __future__ import annotations


class LevelUpError(Exception):
    """Base class for domain errors."""

    status_code = 400
    code = "levelup_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(LevelUpError):
    """A catalog entity (course, topic, problem) does not exist."""

    status_code = 404
    code = "not_found"


class PreconditionFailed(LevelUpError):
    """The learner attempted a step before completing the step it depends on."""

    status_code = 409
    code = "precondition_failed"


class RequirementsNotMet(LevelUpError):
    """A course completion claim was made before every topic was complete."""

    status_code = 409
    code = "requirements_not_met"


class GradingUnavailable(LevelUpError):
    """The external grading service is not configured or did not answer."""

    status_code = 503
    code = "grading_unavailable"
