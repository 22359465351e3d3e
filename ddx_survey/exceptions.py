"""
Error hierarchy for the evaluation study.

Every error carries a technical message (logged) and a user message (shown to
the rater or admin). The API layer maps each class to an HTTP status code.
"""

from typing import Optional


class StudyError(Exception):
    """Base class for all study errors."""

    status_code = 500
    default_user_message = "Something went wrong. Please try again."

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.user_message = user_message or self.default_user_message


class NotFound(StudyError):
    """A referenced vignette, LLM output or rater record does not exist."""

    status_code = 404
    default_user_message = "The requested record was not found."


class DuplicateEvaluation(StudyError):
    status_code = 409
    default_user_message = (
        "You have already evaluated this vignette. Please continue with the next one."
    )

    def __init__(self, rater_id: str, vignette_id: int):
        super().__init__(f"Rater {rater_id!r} already evaluated vignette {vignette_id}")
        self.rater_id = rater_id
        self.vignette_id = vignette_id


class DuplicateDemographics(StudyError):
    status_code = 409
    default_user_message = "Your demographic survey has already been submitted."

    def __init__(self, rater_id: str):
        super().__init__(f"Rater {rater_id!r} already submitted demographics")
        self.rater_id = rater_id


class InvalidTransition(StudyError):
    """A survey action was attempted in a stage that does not allow it."""

    status_code = 409
    default_user_message = "This step is not available at the current point of the survey."


class FormValidationError(StudyError):
    """A submitted form is incomplete or out of range. Raised before any write."""

    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, user_message=message)
        self.field = field


class MissingCredential(StudyError):
    status_code = 400
    default_user_message = "No LLM API key was provided or configured."


class GenerationError(StudyError):
    """The language model request itself failed."""

    status_code = 502
    default_user_message = "Diagnosis generation failed. Please try again later."


class SchemaValidationFailure(GenerationError):
    """The language model answered, but not in the expected diagnosis schema."""

    default_user_message = "The language model returned an invalid differential diagnosis."


class AdminNotConfigured(StudyError):
    status_code = 503
    default_user_message = "Admin password is not configured."
