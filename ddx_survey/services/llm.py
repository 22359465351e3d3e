"""
Differential diagnosis generation through an external language model.

One call to ``generate_differential_diagnoses`` issues exactly one request to
the configured provider and returns a validated, rank-ordered list of 1-5
diagnoses. Responses that do not match the schema raise
``SchemaValidationFailure``; nothing is written to the database here.
"""

import json
import logging
import re
from typing import List, Optional

import anthropic
import openai
from anthropic import Anthropic
from openai import OpenAI
from pydantic import BaseModel, Field, ValidationError, model_validator

from ddx_survey.config import settings
from ddx_survey.exceptions import GenerationError, SchemaValidationFailure
from ddx_survey.models import Diagnosis

logger = logging.getLogger(__name__)


# ============================================================================
# RESPONSE SCHEMA
# ============================================================================

class DifferentialDiagnosisItem(BaseModel):
    """One diagnosis as the model is asked to return it"""
    condition: str = Field(..., description="The medical name of the condition.")
    icd10Code: str = Field(..., description="The accurate ICD-10 code for the condition.")
    supportingEvidence: str = Field(..., description="Key findings from SOAP data that support the diagnosis.")
    likelihoodRank: int = Field(
        ...,
        description="Numerical rank, 1 being the most likely. Ensure ranks are consecutive starting from 1."
    )
    diagnosticTests: List[str] = Field(..., description="Recommended diagnostic tests for the condition.")
    regionalConsiderations: str = Field(..., description="Regional or cultural factors influencing the diagnosis.")


class DifferentialDiagnosisResponse(BaseModel):
    """Full structured response"""
    differentialDiagnosis: List[DifferentialDiagnosisItem] = Field(
        ...,
        min_length=1,
        max_length=5,
        description="Array of differential diagnoses, ranked by likelihood"
    )
    missingInformation: Optional[List[str]] = Field(
        None,
        description="Critical gaps in patient history or examination."
    )

    @model_validator(mode="after")
    def check_consecutive_ranks(self):
        self.differentialDiagnosis.sort(key=lambda item: item.likelihoodRank)
        ranks = [item.likelihoodRank for item in self.differentialDiagnosis]
        expected = list(range(1, len(ranks) + 1))
        if ranks != expected:
            raise ValueError(f"likelihoodRank values must be consecutive from 1, got {ranks}")
        return self


class GeneratedDifferential(BaseModel):
    """Adapter result in the internal representation"""
    diagnoses: List[Diagnosis]
    missing_information: List[str] = []


# ============================================================================
# PROMPT
# ============================================================================

PROMPT_TEMPLATE = """**Purpose:**
Generate a prioritized differential diagnosis based on SOAP (Subjective & Objective) findings, tailored to Indonesia's epidemiological, cultural, and healthcare landscape. The output will include **ICD-10** codes for each diagnosis.

---

## Input:
- **Subjective Data:** Patient-reported symptoms (e.g., duration, severity, associated factors).
- **Objective Data:** Clinician observations (vital signs, physical exam, lab/imaging results).
- **Additional Information (optional):** User-provided information (e.g., lab results, drugs, medications, previous illnesses).
---

## Output Requirements:

### 1. **Prioritization:**
Order diagnoses by likelihood, accounting for:
- **Regional Prevalence:** Prioritize diseases endemic to Indonesia (e.g., dengue, tuberculosis, typhoid, malaria, leptospirosis, diabetes, hypertension).
- **Demographics:** Consider age, gender, geographic location (e.g., malaria risk in Papua, dengue in urban Java), and socioeconomic factors (e.g., sanitation, nutrition).
- **Seasonality:** Note disease patterns (e.g., dengue peaks in rainy seasons).

### 2. **Diagnosis Format per Entry:**
- **Condition Name:** Medical term for the condition.
- **ICD-10 Code:** Include the most accurate and specific ICD-10 code for the condition.
- **Supporting Evidence:** Explicitly link SOAP findings to the diagnosis.
- **Diagnostic Tests:** Recommend locally accessible tests.
- **Regional Considerations:** Note cultural practices, healthcare access barriers, or environmental exposures.

### 3. **Missing Information Alert:**
Identify critical gaps in history or exams.

---

Return between $MIN_DIAGNOSES and $MAX_DIAGNOSES diagnoses as ONLY valid JSON matching this schema:

$JSON_SCHEMA

VIGNETTE:
$VIGNETTE_TEXT"""


def build_prompt(vignette_text: str, min_diagnoses: int = 1, max_diagnoses: int = 5) -> str:
    """Fill the prompt template. Plain replacement keeps braces in vignette text intact."""
    schema = json.dumps(DifferentialDiagnosisResponse.model_json_schema(), indent=2)
    return (
        PROMPT_TEMPLATE
        .replace("$MIN_DIAGNOSES", str(min_diagnoses))
        .replace("$MAX_DIAGNOSES", str(max_diagnoses))
        .replace("$JSON_SCHEMA", schema)
        .replace("$VIGNETTE_TEXT", vignette_text)
    )


# ============================================================================
# RESPONSE PARSING
# ============================================================================

_FENCE = re.compile(r"```(?:json)?\s*(.*?)(?:```|$)", re.DOTALL)


def extract_json_from_response(response_text: str) -> str:
    """Strip a markdown fence and any text around the outermost braces."""
    text = response_text.strip()
    fenced = _FENCE.search(text)
    if fenced:
        text = fenced.group(1)
    start = text.find("{")
    end = text.rfind("}")
    if start >= 0:
        text = text[start:end + 1] if end > start else text[start:]
    return text.strip()


def parse_differential(
    response_text: str,
    min_diagnoses: int = 1,
    max_diagnoses: int = 5
) -> GeneratedDifferential:
    """
    Validate a raw model response and map it to internal diagnoses.

    Raises:
        SchemaValidationFailure: If the text is not JSON, does not match the
            schema, or has a diagnosis count outside the configured bounds
    """
    json_text = extract_json_from_response(response_text or "")
    if not json_text:
        raise SchemaValidationFailure("Empty response from language model")

    try:
        parsed = DifferentialDiagnosisResponse.model_validate_json(json_text)
    except ValidationError as e:
        raise SchemaValidationFailure(
            f"Failed to validate LLM response: {e}\nExtracted JSON: {json_text[:500]}"
        ) from e

    count = len(parsed.differentialDiagnosis)
    if not min_diagnoses <= count <= max_diagnoses:
        raise SchemaValidationFailure(
            f"Expected {min_diagnoses}-{max_diagnoses} diagnoses, got {count}"
        )

    return GeneratedDifferential(
        diagnoses=[
            Diagnosis(
                diagnosis=item.condition,
                rationale=item.supportingEvidence,
                icd10Code=item.icd10Code,
                likelihoodRank=item.likelihoodRank,
                diagnosticTests=item.diagnosticTests,
                regionalConsiderations=item.regionalConsiderations,
            )
            for item in parsed.differentialDiagnosis
        ],
        missing_information=parsed.missingInformation or [],
    )


# ============================================================================
# PROVIDER CALLS
# ============================================================================

def get_openrouter_client(api_key: str) -> OpenAI:
    """Get an OpenAI-compatible client pointed at OpenRouter"""
    return OpenAI(
        api_key=api_key,
        base_url=settings.openrouter_base_url,
        timeout=settings.llm_timeout_seconds,
    )


def get_anthropic_client(api_key: str) -> Anthropic:
    return Anthropic(
        api_key=api_key,
        timeout=settings.llm_timeout_seconds,
    )


def _call_openrouter(prompt: str, model_name: str, temperature: float, api_key: str) -> str:
    client = get_openrouter_client(api_key)
    try:
        completion = client.chat.completions.create(
            model=model_name,
            temperature=temperature,
            max_tokens=settings.llm_max_tokens,
            messages=[{"role": "user", "content": prompt}],
            response_format={
                "type": "json_schema",
                "json_schema": {
                    "name": "differential_diagnosis",
                    "schema": DifferentialDiagnosisResponse.model_json_schema(),
                },
            },
        )
    except openai.OpenAIError as e:
        raise GenerationError(f"OpenRouter request failed: {e}") from e

    if not completion.choices:
        raise SchemaValidationFailure("OpenRouter returned no choices")
    return completion.choices[0].message.content or ""


def _call_anthropic(prompt: str, model_name: str, temperature: float, api_key: str) -> str:
    client = get_anthropic_client(api_key)
    try:
        message = client.messages.create(
            model=model_name,
            max_tokens=settings.llm_max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
        )
    except anthropic.APIError as e:
        raise GenerationError(f"Anthropic request failed: {e}") from e

    return "".join(block.text for block in message.content if block.type == "text")


PROVIDERS = {
    "openrouter": _call_openrouter,
    "anthropic": _call_anthropic,
}


def generate_differential_diagnoses(
    vignette_text: str,
    model_name: str,
    temperature: float,
    api_key: str,
    provider: Optional[str] = None,
    min_diagnoses: int = 1,
    max_diagnoses: int = 5
) -> GeneratedDifferential:
    """
    Generate a differential diagnosis for one vignette.

    Args:
        vignette_text: Free-text case description
        model_name: Provider model identifier
        temperature: Sampling temperature
        api_key: Provider API key
        provider: 'openrouter' or 'anthropic' (defaults to settings.llm_provider)

    Returns:
        GeneratedDifferential with diagnoses sorted by likelihoodRank

    Raises:
        GenerationError: If the request fails
        SchemaValidationFailure: If the response does not match the schema
    """
    provider = provider or settings.llm_provider
    call = PROVIDERS.get(provider)
    if call is None:
        raise GenerationError(f"Unknown LLM provider: {provider}")

    prompt = build_prompt(vignette_text, min_diagnoses, max_diagnoses)
    logger.info(f"Requesting differential from {provider} model {model_name} (temperature={temperature})")

    response_text = call(prompt, model_name, temperature, api_key)
    result = parse_differential(response_text, min_diagnoses, max_diagnoses)

    logger.info(f"Received {len(result.diagnoses)} diagnoses")
    return result
