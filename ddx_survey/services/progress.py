"""
Rater progress tracking and the one-submission-per-rater gates.

Nothing is cached between calls; every answer is computed from the database.
The read-before-write checks give a fast, friendly rejection. The UNIQUE
constraints in the schema are what actually hold the invariants, and the query
layer turns a constraint violation into the same Duplicate* error.
"""

import logging
import sqlite3

from ddx_survey import db_queries
from ddx_survey.exceptions import DuplicateDemographics, DuplicateEvaluation, NotFound
from ddx_survey.models import DemographicsCreate, EvaluationCreate, RaterProgress

logger = logging.getLogger(__name__)


def get_progress(conn: sqlite3.Connection, rater_id: str) -> RaterProgress:
    return db_queries.get_rater_progress(conn, rater_id)


def has_evaluated(conn: sqlite3.Connection, rater_id: str, vignette_id: int) -> bool:
    return db_queries.has_evaluated_vignette(conn, rater_id, vignette_id)


def record_evaluation(conn: sqlite3.Connection, evaluation: EvaluationCreate) -> int:
    """
    Store an evaluation if the rater has not evaluated the vignette yet.

    Returns:
        ID of the new evaluation

    Raises:
        DuplicateEvaluation: If an evaluation for (rater, vignette) exists
        NotFound: If the vignette or the referenced LLM output does not exist
    """
    if has_evaluated(conn, evaluation.rater_id, evaluation.vignette_id):
        raise DuplicateEvaluation(evaluation.rater_id, evaluation.vignette_id)

    if not db_queries.get_vignette_by_id(conn, evaluation.vignette_id):
        raise NotFound(f"Vignette {evaluation.vignette_id} not found", user_message="Vignette not found")

    output = db_queries.get_llm_output_by_id(conn, evaluation.llm_output_id)
    if not output or output.vignette_id != evaluation.vignette_id:
        raise NotFound(
            f"LLM output {evaluation.llm_output_id} not found for vignette {evaluation.vignette_id}",
            user_message="No AI-generated diagnoses are available for this vignette"
        )

    evaluation_id = db_queries.save_evaluation(conn, evaluation)
    logger.info(
        f"Recorded evaluation {evaluation_id} by rater {evaluation.rater_id} "
        f"for vignette {evaluation.vignette_id}"
    )
    return evaluation_id


def record_demographics(conn: sqlite3.Connection, demographics: DemographicsCreate) -> int:
    """
    Store the demographics record for a rater.

    Raises:
        DuplicateDemographics: If the rater already submitted demographics
    """
    if db_queries.has_submitted_demographics(conn, demographics.rater_id):
        raise DuplicateDemographics(demographics.rater_id)

    demographics_id = db_queries.save_rater_demographics(conn, demographics)
    logger.info(f"Recorded demographics {demographics_id} for rater {demographics.rater_id}")
    return demographics_id
