"""
Admin API router.

Vignette management, diagnosis generation and read access to collected
responses. Every endpoint requires a valid admin session token.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends

from ddx_survey import db_queries
from ddx_survey.database import get_db
from ddx_survey.dependencies import require_admin
from ddx_survey.exceptions import NotFound
from ddx_survey.models import (
    BatchGenerationSummary,
    DeleteVignetteResponse,
    Evaluation,
    GenerateRequest,
    LLMOutput,
    VignetteCreate,
    VignetteStats,
    VignetteWithStats,
)
from ddx_survey.services import generation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _vignette_not_found(vignette_id: int) -> NotFound:
    return NotFound(f"Vignette {vignette_id} not found", user_message="Vignette not found")


# ============================================================================
# VIGNETTES
# ============================================================================

@router.get("/vignettes", response_model=List[VignetteWithStats])
def list_vignettes():
    """All vignettes with evaluation counts and current diagnoses"""
    with get_db() as conn:
        return db_queries.get_all_vignettes_with_stats(conn)


@router.get("/vignettes/{vignette_id}", response_model=VignetteStats)
def get_vignette(vignette_id: int):
    with get_db() as conn:
        stats = db_queries.get_vignette_with_stats(conn, vignette_id)
    if not stats.vignette:
        raise _vignette_not_found(vignette_id)
    return stats


@router.post("/vignettes", status_code=201)
def create_vignette(request: VignetteCreate):
    with get_db() as conn:
        vignette_id = db_queries.create_vignette(
            conn, request.category, request.patient_initials, request.content
        )
    logger.info(f"Created vignette {vignette_id} ({request.category})")
    return {"status": "success", "vignette_id": vignette_id}


@router.put("/vignettes/{vignette_id}")
def update_vignette(vignette_id: int, request: VignetteCreate):
    with get_db() as conn:
        if not db_queries.get_vignette_by_id(conn, vignette_id):
            raise _vignette_not_found(vignette_id)
        db_queries.update_vignette(
            conn, vignette_id, request.category, request.patient_initials, request.content
        )
    logger.info(f"Updated vignette {vignette_id}")
    return {"status": "success"}


@router.delete("/vignettes/{vignette_id}", response_model=DeleteVignetteResponse)
def delete_vignette(vignette_id: int):
    """Delete a vignette with its evaluations and LLM outputs"""
    with get_db() as conn:
        stats = db_queries.get_vignette_with_stats(conn, vignette_id)
        if not stats.vignette:
            raise _vignette_not_found(vignette_id)
        db_queries.delete_vignette(conn, vignette_id)

    logger.info(
        f"Deleted vignette {vignette_id} with {stats.evaluation_count} evaluations "
        f"(had LLM output: {stats.has_llm_output})"
    )
    return DeleteVignetteResponse(
        deleted_evaluations=stats.evaluation_count,
        deleted_llm_output=stats.has_llm_output
    )


# ============================================================================
# GENERATION
# ============================================================================

@router.post("/vignettes/{vignette_id}/generate", response_model=LLMOutput)
def generate_for_vignette(vignette_id: int, request: GenerateRequest = GenerateRequest()):
    """Generate a differential for one vignette; `force` regenerates even if one exists"""
    generate = generation.regenerate_diagnoses if request.force else generation.generate_diagnoses
    with get_db() as conn:
        return generate(conn, vignette_id, api_key=request.api_key, model_name=request.model_name)


@router.post("/generate-all", response_model=BatchGenerationSummary)
def generate_all(request: GenerateRequest = GenerateRequest()):
    """Generate differentials for every vignette without one"""
    with get_db() as conn:
        return generation.generate_all_diagnoses(
            conn, api_key=request.api_key, model_name=request.model_name
        )


@router.get("/llm-outputs", response_model=List[LLMOutput])
def list_llm_outputs():
    with get_db() as conn:
        return db_queries.get_all_llm_outputs(conn)


# ============================================================================
# RESPONSES
# ============================================================================

@router.get("/raters/{rater_id}/evaluations", response_model=List[Evaluation])
def list_rater_evaluations(rater_id: str):
    with get_db() as conn:
        return db_queries.get_evaluations_by_rater(conn, rater_id)
