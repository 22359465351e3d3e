"""
Survey API router.

Endpoints a rater's front end calls while moving through consent,
calibration, vignette evaluation and demographics. The session is rebuilt
from the database on every request.
"""

import logging
from typing import List

from fastapi import APIRouter

from ddx_survey import db_queries
from ddx_survey.database import get_db
from ddx_survey.exceptions import NotFound
from ddx_survey.models import (
    CalibrationContent,
    ConsentRequest,
    DemographicsForm,
    EvaluationForm,
    RaterDemographics,
    RaterProgress,
    SessionView,
    VignetteWithOutput,
)
from ddx_survey.services import progress
from ddx_survey.services.calibration import get_calibration_content
from ddx_survey.services.survey_flow import SurveySession, SurveyStage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/survey", tags=["survey"])


@router.get("/calibration", response_model=CalibrationContent)
async def calibration():
    """Practice cases shown before the real evaluations"""
    return get_calibration_content()


@router.post("/consent", response_model=SessionView)
async def consent(request: ConsentRequest):
    """Register consent; the next stage is calibration"""
    session = SurveySession.consent(request.rater_id, request.agreed)
    return session.view()


@router.get("/raters/{rater_id}", response_model=SessionView)
def get_session(rater_id: str):
    """Where this rater should continue"""
    with get_db() as conn:
        return SurveySession.resume(conn, rater_id).view()


@router.get("/raters/{rater_id}/vignettes", response_model=List[VignetteWithOutput])
def list_vignettes(rater_id: str):
    """All vignettes in display order with their current LLM output"""
    with get_db() as conn:
        return db_queries.get_vignettes_with_outputs(conn)


@router.get("/raters/{rater_id}/progress", response_model=RaterProgress)
def get_progress(rater_id: str):
    with get_db() as conn:
        return progress.get_progress(conn, rater_id)


@router.post("/raters/{rater_id}/evaluations", response_model=SessionView)
def submit_evaluation(rater_id: str, form: EvaluationForm):
    """
    Store the evaluation for `form.vignette_id` (or the rater's current
    vignette) and return the next position.
    """
    with get_db() as conn:
        session = SurveySession.resume(conn, rater_id)
        if form.vignette_id is not None:
            session.go_to_vignette(form.vignette_id)
        session.submit_evaluation(conn, form)
        return session.view()


@router.post("/raters/{rater_id}/demographics", response_model=SessionView)
def submit_demographics(rater_id: str, form: DemographicsForm):
    """Store the closing survey; the session is complete afterwards"""
    with get_db() as conn:
        session = SurveySession.resume(conn, rater_id)
        if session.stage == SurveyStage.EVALUATING:
            session.to_demographics()
        session.submit_demographics(conn, form)
        return session.view()


@router.get("/raters/{rater_id}/demographics", response_model=RaterDemographics)
def get_demographics(rater_id: str):
    with get_db() as conn:
        demographics = db_queries.get_rater_demographics(conn, rater_id)
    if not demographics:
        raise NotFound(f"No demographics for rater {rater_id!r}", user_message="Demographics not found")
    return demographics
