"""
Database query helpers for the evaluation study.

These functions are the only place that talks SQL. They take an open
connection (see ``ddx_survey.database.get_db``) and return pydantic models.
No range or category validation happens here; callers own that.
"""

import json
import sqlite3
from typing import List, Optional

from ddx_survey.exceptions import DuplicateDemographics, DuplicateEvaluation
from ddx_survey.models import (
    DemographicsCreate,
    Diagnosis,
    Evaluation,
    EvaluationCreate,
    LLMOutput,
    RaterDemographics,
    RaterProgress,
    Vignette,
    VignetteStats,
    VignetteWithOutput,
    VignetteWithStats,
)


def _is_unique_violation(exc: sqlite3.IntegrityError) -> bool:
    return "UNIQUE constraint failed" in str(exc)


def _row_to_llm_output(row: sqlite3.Row) -> LLMOutput:
    return LLMOutput(
        id=row["id"],
        vignette_id=row["vignette_id"],
        diagnoses=[Diagnosis(**d) for d in json.loads(row["diagnoses"])],
        model_name=row["model_name"],
        temperature=row["temperature"],
        missing_information=json.loads(row["missing_information"] or "[]"),
        created_at=row["created_at"],
    )


def _row_to_demographics(row: sqlite3.Row) -> RaterDemographics:
    data = dict(row)
    data["ai_concerns"] = json.loads(data["ai_concerns"] or "[]")
    return RaterDemographics(**data)


# ============================================================================
# VIGNETTES
# ============================================================================

def get_all_vignettes(conn: sqlite3.Connection) -> List[Vignette]:
    """Get all vignettes in display order (category, then id)."""
    cursor = conn.cursor()
    cursor.execute("SELECT * FROM vignettes ORDER BY category, id")
    return [Vignette(**dict(row)) for row in cursor.fetchall()]


def get_vignette_by_id(conn: sqlite3.Connection, vignette_id: int) -> Optional[Vignette]:
    cursor = conn.cursor()
    cursor.execute("SELECT * FROM vignettes WHERE id = ?", (vignette_id,))
    row = cursor.fetchone()
    return Vignette(**dict(row)) if row else None


def get_vignettes_by_category(conn: sqlite3.Connection, category: str) -> List[Vignette]:
    cursor = conn.cursor()
    cursor.execute("SELECT * FROM vignettes WHERE category = ? ORDER BY id", (category,))
    return [Vignette(**dict(row)) for row in cursor.fetchall()]


def create_vignette(
    conn: sqlite3.Connection,
    category: str,
    patient_initials: str,
    content: str
) -> int:
    """
    Insert a vignette.

    Returns:
        ID of the new vignette
    """
    cursor = conn.cursor()
    cursor.execute(
        "INSERT INTO vignettes (category, patient_initials, content) VALUES (?, ?, ?)",
        (category, patient_initials, content)
    )
    return cursor.lastrowid


def update_vignette(
    conn: sqlite3.Connection,
    vignette_id: int,
    category: str,
    patient_initials: str,
    content: str
):
    cursor = conn.cursor()
    cursor.execute(
        "UPDATE vignettes SET category = ?, patient_initials = ?, content = ? WHERE id = ?",
        (category, patient_initials, content, vignette_id)
    )


def delete_vignette(conn: sqlite3.Connection, vignette_id: int):
    """
    Delete a vignette together with its evaluations and LLM outputs.

    Dependents go first so an interrupted delete never leaves orphans. All
    three statements run on the same connection, so ``get_db()`` commits
    them together.
    """
    cursor = conn.cursor()
    cursor.execute("DELETE FROM evaluations WHERE vignette_id = ?", (vignette_id,))
    cursor.execute("DELETE FROM llm_outputs WHERE vignette_id = ?", (vignette_id,))
    cursor.execute("DELETE FROM vignettes WHERE id = ?", (vignette_id,))


def get_vignette_with_stats(conn: sqlite3.Connection, vignette_id: int) -> VignetteStats:
    """
    Get a vignette with its evaluation count and whether it has an LLM output.

    Returns:
        VignetteStats, with vignette=None and zero counts if the vignette does not exist
    """
    vignette = get_vignette_by_id(conn, vignette_id)
    if not vignette:
        return VignetteStats()

    cursor = conn.cursor()
    cursor.execute("""
        SELECT
            (SELECT COUNT(*) FROM evaluations WHERE vignette_id = ?) as evaluation_count,
            (SELECT COUNT(*) > 0 FROM llm_outputs WHERE vignette_id = ?) as has_llm_output
    """, (vignette_id, vignette_id))
    row = cursor.fetchone()

    return VignetteStats(
        vignette=vignette,
        evaluation_count=row["evaluation_count"],
        has_llm_output=bool(row["has_llm_output"])
    )


def get_all_vignettes_with_stats(conn: sqlite3.Connection) -> List[VignetteWithStats]:
    """Admin listing: every vignette with stats and its current diagnoses."""
    cursor = conn.cursor()
    cursor.execute("""
        SELECT
            v.*,
            (SELECT COUNT(*) FROM evaluations e WHERE e.vignette_id = v.id) as evaluation_count
        FROM vignettes v
        ORDER BY v.category, v.id
    """)
    rows = cursor.fetchall()

    results = []
    for row in rows:
        output = get_llm_output_by_vignette_id(conn, row["id"])
        results.append(VignetteWithStats(
            id=row["id"],
            category=row["category"],
            patient_initials=row["patient_initials"],
            content=row["content"],
            created_at=row["created_at"],
            evaluation_count=row["evaluation_count"],
            has_llm_output=output is not None,
            llm_diagnoses=output.diagnoses if output else None
        ))
    return results


# ============================================================================
# LLM OUTPUTS
# ============================================================================

def save_llm_output(
    conn: sqlite3.Connection,
    vignette_id: int,
    diagnoses: List[Diagnosis],
    model_name: str,
    temperature: float,
    missing_information: Optional[List[str]] = None
) -> int:
    """
    Store a generated differential. Earlier outputs for the vignette are kept
    but superseded.

    Returns:
        ID of the new output row
    """
    cursor = conn.cursor()
    cursor.execute("""
        INSERT INTO llm_outputs (vignette_id, diagnoses, model_name, temperature, missing_information)
        VALUES (?, ?, ?, ?, ?)
    """, (
        vignette_id,
        json.dumps([d.model_dump(exclude_none=True) for d in diagnoses]),
        model_name,
        temperature,
        json.dumps(missing_information or []),
    ))
    return cursor.lastrowid


def get_llm_output_by_vignette_id(conn: sqlite3.Connection, vignette_id: int) -> Optional[LLMOutput]:
    """Get the most recently created output for a vignette."""
    cursor = conn.cursor()
    cursor.execute("""
        SELECT * FROM llm_outputs
        WHERE vignette_id = ?
        ORDER BY created_at DESC, id DESC
        LIMIT 1
    """, (vignette_id,))
    row = cursor.fetchone()
    return _row_to_llm_output(row) if row else None


def get_llm_output_by_id(conn: sqlite3.Connection, output_id: int) -> Optional[LLMOutput]:
    cursor = conn.cursor()
    cursor.execute("SELECT * FROM llm_outputs WHERE id = ?", (output_id,))
    row = cursor.fetchone()
    return _row_to_llm_output(row) if row else None


def get_all_llm_outputs(conn: sqlite3.Connection) -> List[LLMOutput]:
    cursor = conn.cursor()
    cursor.execute("SELECT * FROM llm_outputs ORDER BY vignette_id, created_at, id")
    return [_row_to_llm_output(row) for row in cursor.fetchall()]


def get_vignettes_with_outputs(conn: sqlite3.Connection) -> List[VignetteWithOutput]:
    """Pair every vignette (display order) with its latest output, or None."""
    return [
        VignetteWithOutput(
            vignette=vignette,
            llm_output=get_llm_output_by_vignette_id(conn, vignette.id)
        )
        for vignette in get_all_vignettes(conn)
    ]


# ============================================================================
# EVALUATIONS
# ============================================================================

def save_evaluation(conn: sqlite3.Connection, evaluation: EvaluationCreate) -> int:
    """
    Insert an evaluation.

    Returns:
        ID of the new evaluation

    Raises:
        DuplicateEvaluation: If the rater already evaluated this vignette
    """
    cursor = conn.cursor()
    try:
        cursor.execute("""
            INSERT INTO evaluations
            (rater_id, vignette_id, llm_output_id, relevance_score, missing_critical, missing_diagnosis,
             safety_score, acceptable, ordering_score, confidence_level, comment)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            evaluation.rater_id,
            evaluation.vignette_id,
            evaluation.llm_output_id,
            evaluation.relevance_score,
            1 if evaluation.missing_critical else 0,
            evaluation.missing_diagnosis,
            evaluation.safety_score,
            1 if evaluation.acceptable else 0,
            evaluation.ordering_score,
            evaluation.confidence_level,
            evaluation.comment,
        ))
    except sqlite3.IntegrityError as e:
        if _is_unique_violation(e):
            raise DuplicateEvaluation(evaluation.rater_id, evaluation.vignette_id) from e
        raise
    return cursor.lastrowid


def get_evaluations_by_rater(conn: sqlite3.Connection, rater_id: str) -> List[Evaluation]:
    cursor = conn.cursor()
    cursor.execute(
        "SELECT * FROM evaluations WHERE rater_id = ? ORDER BY created_at, id",
        (rater_id,)
    )
    return [Evaluation(**dict(row)) for row in cursor.fetchall()]


def get_rater_progress(conn: sqlite3.Connection, rater_id: str) -> RaterProgress:
    """
    Compute completion state for a rater from the evaluations table.

    Returns:
        RaterProgress with completed vignette ids in evaluation order
    """
    cursor = conn.cursor()

    cursor.execute("SELECT COUNT(*) FROM vignettes")
    total_vignettes = cursor.fetchone()[0]

    cursor.execute(
        "SELECT vignette_id FROM evaluations WHERE rater_id = ? ORDER BY created_at, id",
        (rater_id,)
    )
    completed_ids = [row["vignette_id"] for row in cursor.fetchall()]

    return RaterProgress(
        rater_id=rater_id,
        total_vignettes=total_vignettes,
        completed_vignettes=len(completed_ids),
        completed_ids=completed_ids
    )


def has_evaluated_vignette(conn: sqlite3.Connection, rater_id: str, vignette_id: int) -> bool:
    cursor = conn.cursor()
    cursor.execute(
        "SELECT id FROM evaluations WHERE rater_id = ? AND vignette_id = ? LIMIT 1",
        (rater_id, vignette_id)
    )
    return cursor.fetchone() is not None


# ============================================================================
# RATER DEMOGRAPHICS
# ============================================================================

def save_rater_demographics(conn: sqlite3.Connection, demographics: DemographicsCreate) -> int:
    """
    Insert the demographics record for a rater.

    Raises:
        DuplicateDemographics: If the rater already has a record
    """
    cursor = conn.cursor()
    try:
        cursor.execute("""
            INSERT INTO rater_demographics
            (rater_id, years_of_practice, practice_location, ai_clinical_reasoning_confidence,
             ai_safety_concern, ai_decision_support_willingness, ai_concerns, phone_number)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            demographics.rater_id,
            demographics.years_of_practice,
            demographics.practice_location,
            demographics.ai_clinical_reasoning_confidence,
            demographics.ai_safety_concern,
            demographics.ai_decision_support_willingness,
            json.dumps(demographics.ai_concerns),
            demographics.phone_number,
        ))
    except sqlite3.IntegrityError as e:
        if _is_unique_violation(e):
            raise DuplicateDemographics(demographics.rater_id) from e
        raise
    return cursor.lastrowid


def get_rater_demographics(conn: sqlite3.Connection, rater_id: str) -> Optional[RaterDemographics]:
    cursor = conn.cursor()
    cursor.execute("SELECT * FROM rater_demographics WHERE rater_id = ? LIMIT 1", (rater_id,))
    row = cursor.fetchone()
    return _row_to_demographics(row) if row else None


def has_submitted_demographics(conn: sqlite3.Connection, rater_id: str) -> bool:
    cursor = conn.cursor()
    cursor.execute("SELECT id FROM rater_demographics WHERE rater_id = ? LIMIT 1", (rater_id,))
    return cursor.fetchone() is not None
