"""
Survey flow for one rater: consent, calibration, vignette evaluation,
demographics, complete.

The only persisted state is what the database holds (evaluations and
demographics), so a session can be rebuilt for any rater with
``SurveySession.resume``. Every failed action leaves the session unchanged.
"""

import logging
import sqlite3
from enum import Enum
from typing import List, Optional

from ddx_survey import db_queries
from ddx_survey.exceptions import DuplicateDemographics, FormValidationError, InvalidTransition, NotFound
from ddx_survey.models import (
    AI_CONCERNS,
    PRACTICE_LOCATIONS,
    DemographicsCreate,
    DemographicsForm,
    EvaluationCreate,
    EvaluationForm,
    SessionView,
    VignetteWithOutput,
)
from ddx_survey.services import progress

logger = logging.getLogger(__name__)

SCORE_MIN = 1
SCORE_MAX = 5


class SurveyStage(str, Enum):
    CONSENT = "consent"
    CALIBRATION = "calibration"
    EVALUATING = "evaluating"
    DEMOGRAPHICS = "demographics"
    COMPLETE = "complete"


# ============================================================================
# FORM VALIDATION
# ============================================================================

def _check_score(value: int, field: str, label: str):
    if value == 0:
        raise FormValidationError(f"Please rate {label}", field=field)
    if not SCORE_MIN <= value <= SCORE_MAX:
        raise FormValidationError(
            f"{label.capitalize()} must be between {SCORE_MIN} and {SCORE_MAX}",
            field=field
        )


def validate_evaluation_form(form: EvaluationForm):
    """
    Check an evaluation before anything is written.

    Raises:
        FormValidationError: On the first missing or out-of-range answer
    """
    _check_score(form.relevance_score, "relevance_score", "the relevance")
    _check_score(form.safety_score, "safety_score", "the safety concern")
    _check_score(form.ordering_score, "ordering_score", "the diagnosis ordering")
    _check_score(form.confidence_level, "confidence_level", "your confidence level")

    if form.missing_critical and not (form.missing_diagnosis or "").strip():
        raise FormValidationError(
            "Please name the critical diagnosis that was missed",
            field="missing_diagnosis"
        )


def validate_demographics_form(form: DemographicsForm):
    """
    Check the closing survey before anything is written.

    Raises:
        FormValidationError: On the first missing or invalid answer
    """
    if form.years_of_practice <= 0:
        raise FormValidationError("Please enter a valid number of years in practice", field="years_of_practice")
    if form.practice_location not in PRACTICE_LOCATIONS:
        raise FormValidationError("Please select your main practice location", field="practice_location")

    _check_score(
        form.ai_clinical_reasoning_confidence,
        "ai_clinical_reasoning_confidence",
        "your confidence in AI clinical reasoning"
    )
    _check_score(form.ai_safety_concern, "ai_safety_concern", "your concern about AI safety")
    _check_score(
        form.ai_decision_support_willingness,
        "ai_decision_support_willingness",
        "your willingness to use AI decision support"
    )

    unknown = [c for c in form.ai_concerns if c not in AI_CONCERNS]
    if unknown:
        raise FormValidationError(f"Unknown AI concern: {', '.join(unknown)}", field="ai_concerns")


# ============================================================================
# SESSION
# ============================================================================

class SurveySession:
    """Position of one rater in the survey"""

    def __init__(self, rater_id: str, stage: SurveyStage = SurveyStage.CONSENT):
        self.rater_id = rater_id
        self.stage = stage
        self.index = 0
        self.items: List[VignetteWithOutput] = []
        self.completed_ids: List[int] = []

    @classmethod
    def consent(cls, rater_id: str, agreed: bool) -> "SurveySession":
        """Start a session. Requires a rater id and explicit agreement."""
        rater_id = (rater_id or "").strip()
        if not rater_id:
            raise FormValidationError("Please enter your rater ID", field="rater_id")
        if not agreed:
            raise FormValidationError("Please confirm that you agree to participate", field="agreed")
        logger.info(f"Rater {rater_id} gave consent")
        return cls(rater_id, SurveyStage.CALIBRATION)

    @classmethod
    def resume(cls, conn: sqlite3.Connection, rater_id: str) -> "SurveySession":
        """Rebuild a session from storage, skipping consent and calibration."""
        rater_id = (rater_id or "").strip()
        if not rater_id:
            raise FormValidationError("Please enter your rater ID", field="rater_id")
        session = cls(rater_id, SurveyStage.CALIBRATION)
        session.begin_evaluation(conn)
        return session

    def begin_evaluation(self, conn: sqlite3.Connection):
        """Leave calibration and jump to the first vignette this rater has not evaluated."""
        self._require(SurveyStage.CALIBRATION)

        items = db_queries.get_vignettes_with_outputs(conn)
        completed_ids = progress.get_progress(conn, self.rater_id).completed_ids

        self.items = items
        self.completed_ids = list(completed_ids)
        # Open vignettes come first; stored demographics only matter once none are left
        first_open = self._find_open(0)
        if first_open is None:
            self._finish_vignettes(conn)
        else:
            self.stage = SurveyStage.EVALUATING
            self.index = first_open

    # ------------------------------------------------------------------ views

    @property
    def current(self) -> Optional[VignetteWithOutput]:
        if self.stage != SurveyStage.EVALUATING or not 0 <= self.index < len(self.items):
            return None
        return self.items[self.index]

    @property
    def can_submit(self) -> bool:
        current = self.current
        return (
            current is not None
            and current.llm_output is not None
            and current.vignette.id not in self.completed_ids
        )

    def view(self) -> SessionView:
        return SessionView(
            rater_id=self.rater_id,
            stage=self.stage.value,
            index=self.index,
            total_vignettes=len(self.items),
            completed_ids=self.completed_ids,
            current=self.current,
            can_submit=self.can_submit,
        )

    # ------------------------------------------------------------- navigation

    def go_to(self, index: int):
        """View any vignette, completed ones included (read-only for those)."""
        if self.stage not in (SurveyStage.EVALUATING, SurveyStage.DEMOGRAPHICS):
            raise InvalidTransition(f"Cannot navigate vignettes in stage {self.stage.value}")
        if not 0 <= index < len(self.items):
            raise FormValidationError(f"Vignette index {index} is out of range", field="index")
        self.stage = SurveyStage.EVALUATING
        self.index = index

    def go_to_vignette(self, vignette_id: int):
        for i, item in enumerate(self.items):
            if item.vignette.id == vignette_id:
                self.go_to(i)
                return
        raise NotFound(f"Vignette {vignette_id} not found", user_message="Vignette not found")

    def next(self):
        self._require(SurveyStage.EVALUATING)
        if self.index < len(self.items) - 1:
            self.index += 1
        else:
            self.stage = SurveyStage.DEMOGRAPHICS
            self.index = len(self.items)

    def previous(self):
        self._require(SurveyStage.EVALUATING)
        if self.index > 0:
            self.index -= 1

    def to_demographics(self):
        """Skip ahead to the closing survey, as ``next()`` does from the last vignette."""
        if self.stage == SurveyStage.DEMOGRAPHICS:
            return
        self._require(SurveyStage.EVALUATING)
        self.stage = SurveyStage.DEMOGRAPHICS
        self.index = len(self.items)

    # ---------------------------------------------------------------- actions

    def submit_evaluation(self, conn: sqlite3.Connection, form: EvaluationForm) -> int:
        """
        Validate and store the evaluation for the current vignette, then move
        to the next open one.

        Returns:
            ID of the stored evaluation
        """
        self._require(SurveyStage.EVALUATING)
        validate_evaluation_form(form)

        current = self.current
        if current is None:
            raise InvalidTransition("No vignette selected")
        if current.llm_output is None:
            raise NotFound(
                f"Vignette {current.vignette.id} has no LLM output",
                user_message="No AI-generated diagnoses are available for this vignette"
            )

        evaluation_id = progress.record_evaluation(conn, EvaluationCreate(
            rater_id=self.rater_id,
            vignette_id=current.vignette.id,
            llm_output_id=current.llm_output.id,
            relevance_score=form.relevance_score,
            missing_critical=form.missing_critical,
            missing_diagnosis=(form.missing_diagnosis or "").strip() or None,
            safety_score=form.safety_score,
            acceptable=form.acceptable,
            ordering_score=form.ordering_score,
            confidence_level=form.confidence_level,
            comment=(form.comment or "").strip() or None,
        ))

        self.completed_ids.append(current.vignette.id)
        next_open = self._find_open(self.index + 1)
        if next_open is None:
            self._finish_vignettes(conn)
        else:
            self.index = next_open
        return evaluation_id

    def submit_demographics(self, conn: sqlite3.Connection, form: DemographicsForm) -> int:
        """Validate and store the closing survey, then complete the session."""
        if self.stage == SurveyStage.COMPLETE:
            # Complete is only reached through a stored demographics record
            raise DuplicateDemographics(self.rater_id)
        self._require(SurveyStage.DEMOGRAPHICS)
        validate_demographics_form(form)

        demographics_id = progress.record_demographics(conn, DemographicsCreate(
            rater_id=self.rater_id,
            years_of_practice=form.years_of_practice,
            practice_location=form.practice_location,
            ai_clinical_reasoning_confidence=form.ai_clinical_reasoning_confidence,
            ai_safety_concern=form.ai_safety_concern,
            ai_decision_support_willingness=form.ai_decision_support_willingness,
            ai_concerns=list(dict.fromkeys(form.ai_concerns)),
            phone_number=(form.phone_number or "").strip() or None,
        ))

        self.stage = SurveyStage.COMPLETE
        logger.info(f"Rater {self.rater_id} completed the survey")
        return demographics_id

    # ---------------------------------------------------------------- helpers

    def _require(self, stage: SurveyStage):
        if self.stage != stage:
            raise InvalidTransition(
                f"Action requires stage {stage.value}, session is in {self.stage.value}"
            )

    def _find_open(self, start: int) -> Optional[int]:
        """Index of the first vignette at or after start not yet evaluated."""
        for i in range(start, len(self.items)):
            if self.items[i].vignette.id not in self.completed_ids:
                return i
        return None

    def _finish_vignettes(self, conn: sqlite3.Connection):
        """Leave the vignettes: demographics if not yet stored, otherwise back to
        any vignette still open, otherwise complete."""
        self.index = len(self.items)
        if not db_queries.has_submitted_demographics(conn, self.rater_id):
            self.stage = SurveyStage.DEMOGRAPHICS
            return

        first_open = self._find_open(0)
        if first_open is None:
            self.stage = SurveyStage.COMPLETE
        else:
            self.stage = SurveyStage.EVALUATING
            self.index = first_open
