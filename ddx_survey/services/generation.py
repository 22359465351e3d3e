"""
Admin entry points for differential generation.

- generate_diagnoses: idempotent, returns the existing output when there is one
- regenerate_diagnoses: always calls the model and stores a new output row
- generate_all_diagnoses: sequential batch with per-vignette results
"""

import logging
import sqlite3
from dataclasses import dataclass, replace
from typing import Optional

from ddx_survey import db_queries
from ddx_survey.config import settings
from ddx_survey.exceptions import MissingCredential, NotFound, StudyError
from ddx_survey.models import BatchGenerationSummary, GenerationItemResult, LLMOutput
from ddx_survey.services import llm

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationConfig:
    """Generation defaults, read once from settings"""
    default_model: str
    default_temperature: float
    provider: str = "openrouter"
    min_diagnoses: int = 1
    max_diagnoses: int = 5

    @classmethod
    def from_settings(cls) -> "GenerationConfig":
        return cls(
            default_model=settings.llm_model,
            default_temperature=settings.llm_temperature,
            provider=settings.llm_provider,
            min_diagnoses=settings.min_diagnoses,
            max_diagnoses=settings.max_diagnoses,
        )

    def merged(self, model_name: Optional[str] = None, temperature: Optional[float] = None) -> "GenerationConfig":
        """Apply per-call overrides; blank values keep the defaults"""
        changes = {}
        if model_name and model_name.strip():
            changes["default_model"] = model_name.strip()
        if temperature is not None:
            changes["default_temperature"] = temperature
        return replace(self, **changes)


def resolve_api_key(config: GenerationConfig, override: Optional[str] = None) -> str:
    """
    Pick the request key, falling back to the one configured for config.provider.

    Raises:
        MissingCredential: If neither is set
    """
    api_key = (override or "").strip() or settings.api_key_for(config.provider)
    if not api_key:
        raise MissingCredential(f"No API key provided for provider {config.provider!r}")
    return api_key


def _generate_and_save(
    conn: sqlite3.Connection,
    vignette_id: int,
    content: str,
    api_key: str,
    config: GenerationConfig
) -> LLMOutput:
    generated = llm.generate_differential_diagnoses(
        vignette_text=content,
        model_name=config.default_model,
        temperature=config.default_temperature,
        api_key=api_key,
        provider=config.provider,
        min_diagnoses=config.min_diagnoses,
        max_diagnoses=config.max_diagnoses,
    )
    output_id = db_queries.save_llm_output(
        conn,
        vignette_id,
        generated.diagnoses,
        config.default_model,
        config.default_temperature,
        generated.missing_information,
    )
    # Commit per vignette so a later failure in a batch keeps earlier outputs
    conn.commit()
    logger.info(f"Saved LLM output {output_id} for vignette {vignette_id}")
    return db_queries.get_llm_output_by_id(conn, output_id)


def generate_diagnoses(
    conn: sqlite3.Connection,
    vignette_id: int,
    api_key: Optional[str] = None,
    model_name: Optional[str] = None,
    config: Optional[GenerationConfig] = None
) -> LLMOutput:
    """
    Return the current output for a vignette, generating one only if missing.

    Raises:
        NotFound: If the vignette does not exist
        MissingCredential: If generation is needed and no API key is available
    """
    vignette = db_queries.get_vignette_by_id(conn, vignette_id)
    if not vignette:
        raise NotFound(f"Vignette {vignette_id} not found", user_message="Vignette not found")

    existing = db_queries.get_llm_output_by_vignette_id(conn, vignette_id)
    if existing:
        logger.info(f"Vignette {vignette_id} already has output {existing.id}, skipping generation")
        return existing

    config = (config or GenerationConfig.from_settings()).merged(model_name=model_name)
    return _generate_and_save(conn, vignette_id, vignette.content, resolve_api_key(config, api_key), config)


def regenerate_diagnoses(
    conn: sqlite3.Connection,
    vignette_id: int,
    api_key: Optional[str] = None,
    model_name: Optional[str] = None,
    config: Optional[GenerationConfig] = None
) -> LLMOutput:
    """Generate a new output even if one exists. The new row supersedes older ones."""
    vignette = db_queries.get_vignette_by_id(conn, vignette_id)
    if not vignette:
        raise NotFound(f"Vignette {vignette_id} not found", user_message="Vignette not found")

    config = (config or GenerationConfig.from_settings()).merged(model_name=model_name)
    return _generate_and_save(conn, vignette_id, vignette.content, resolve_api_key(config, api_key), config)


def generate_all_diagnoses(
    conn: sqlite3.Connection,
    api_key: Optional[str] = None,
    model_name: Optional[str] = None,
    config: Optional[GenerationConfig] = None
) -> BatchGenerationSummary:
    """
    Generate outputs for every vignette that lacks one, one at a time.

    A failure on one vignette is recorded in the summary and the batch moves
    on. A missing credential fails the whole batch before any call.
    """
    config = (config or GenerationConfig.from_settings()).merged(model_name=model_name)
    key = resolve_api_key(config, api_key)

    vignettes = db_queries.get_all_vignettes(conn)
    results = []

    for i, vignette in enumerate(vignettes, start=1):
        existing = db_queries.get_llm_output_by_vignette_id(conn, vignette.id)
        if existing:
            results.append(GenerationItemResult(
                vignette_id=vignette.id,
                status="skipped",
                llm_output_id=existing.id
            ))
            continue

        logger.info(f"Generating for vignette {vignette.id} ({i}/{len(vignettes)})...")
        try:
            output = _generate_and_save(conn, vignette.id, vignette.content, key, config)
        except StudyError as e:
            logger.error(f"Generation failed for vignette {vignette.id}: {e}")
            results.append(GenerationItemResult(
                vignette_id=vignette.id,
                status="failed",
                error=e.user_message
            ))
            continue

        results.append(GenerationItemResult(
            vignette_id=vignette.id,
            status="generated",
            llm_output_id=output.id
        ))

    summary = BatchGenerationSummary(
        total=len(results),
        generated=sum(1 for r in results if r.status == "generated"),
        skipped=sum(1 for r in results if r.status == "skipped"),
        failed=sum(1 for r in results if r.status == "failed"),
        results=results,
    )
    logger.info(
        f"Batch generation finished: {summary.generated} generated, "
        f"{summary.skipped} skipped, {summary.failed} failed"
    )
    return summary
