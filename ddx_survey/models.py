"""
Pydantic models for the diagnosis evaluation study.

These models define the stored records and the structure of API requests and responses.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

VignetteCategory = Literal["common", "ambiguous", "emergent", "rare"]
PracticeLocation = Literal["hospital", "clinic", "puskesmas", "home"]
AIConcern = Literal[
    "liability",
    "risk",
    "privacy",
    "clinical_reasoning_inability",
    "transparency_lack",
    "other",
]

VIGNETTE_CATEGORIES = ("common", "ambiguous", "emergent", "rare")
PRACTICE_LOCATIONS = ("hospital", "clinic", "puskesmas", "home")
AI_CONCERNS = (
    "liability",
    "risk",
    "privacy",
    "clinical_reasoning_inability",
    "transparency_lack",
    "other",
)


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    database: str


class ErrorResponse(BaseModel):
    """Error response"""
    status: str = "error"
    error: str


# ============================================================================
# STUDY RECORDS
# ============================================================================

class Vignette(BaseModel):
    """Synthetic patient case"""
    id: int
    category: str
    patient_initials: str
    content: str
    created_at: str


class VignetteCreate(BaseModel):
    """Admin request to create or update a vignette"""
    category: VignetteCategory
    patient_initials: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)


class Diagnosis(BaseModel):
    """One entry of a differential diagnosis (camelCase keys as stored)"""
    diagnosis: str
    rationale: str
    icd10Code: Optional[str] = None
    likelihoodRank: Optional[int] = None  # 1 = most likely
    diagnosticTests: Optional[List[str]] = None
    regionalConsiderations: Optional[str] = None


class LLMOutput(BaseModel):
    """Generated differential for a vignette"""
    id: int
    vignette_id: int
    diagnoses: List[Diagnosis]
    model_name: str
    temperature: float
    missing_information: List[str] = []
    created_at: str


class EvaluationCreate(BaseModel):
    """Evaluation as written to storage"""
    rater_id: str
    vignette_id: int
    llm_output_id: int
    relevance_score: int  # 1-5
    missing_critical: bool
    missing_diagnosis: Optional[str] = None
    safety_score: int  # 1-5
    acceptable: bool
    ordering_score: int  # 1-5
    confidence_level: int  # 1-5
    comment: Optional[str] = None


class Evaluation(EvaluationCreate):
    """Stored evaluation"""
    id: int
    created_at: str


class EvaluationForm(BaseModel):
    """Rater answers for the current vignette. Zero means unanswered."""
    relevance_score: int = 0
    missing_critical: bool = False
    missing_diagnosis: Optional[str] = None
    safety_score: int = 0
    acceptable: bool = False
    ordering_score: int = 0
    confidence_level: int = 0
    comment: Optional[str] = None
    vignette_id: Optional[int] = None  # guards against submitting for a stale page


class DemographicsCreate(BaseModel):
    """Demographics as written to storage"""
    rater_id: str
    years_of_practice: int
    practice_location: str
    ai_clinical_reasoning_confidence: int  # 1-5 Likert
    ai_safety_concern: int  # 1-5 Likert
    ai_decision_support_willingness: int  # 1-5 Likert
    ai_concerns: List[str] = []
    phone_number: Optional[str] = None


class RaterDemographics(DemographicsCreate):
    """Stored demographics"""
    id: int
    created_at: str


class DemographicsForm(BaseModel):
    """Closing survey answers. Zero or empty means unanswered."""
    years_of_practice: int = 0
    practice_location: str = ""
    ai_clinical_reasoning_confidence: int = 0
    ai_safety_concern: int = 0
    ai_decision_support_willingness: int = 0
    ai_concerns: List[str] = []
    phone_number: Optional[str] = None


class RaterProgress(BaseModel):
    """Derived completion state for a rater"""
    rater_id: str
    total_vignettes: int
    completed_vignettes: int
    completed_ids: List[int]


# ============================================================================
# COMPOSITE VIEWS
# ============================================================================

class VignetteStats(BaseModel):
    """Vignette with evaluation count and output presence"""
    vignette: Optional[Vignette] = None
    evaluation_count: int = 0
    has_llm_output: bool = False


class VignetteWithStats(Vignette):
    """Admin listing row"""
    evaluation_count: int
    has_llm_output: bool
    llm_diagnoses: Optional[List[Diagnosis]] = None


class VignetteWithOutput(BaseModel):
    """Vignette paired with its current LLM output"""
    vignette: Vignette
    llm_output: Optional[LLMOutput] = None


class DeleteVignetteResponse(BaseModel):
    status: str = "success"
    deleted_evaluations: int
    deleted_llm_output: bool


# ============================================================================
# SURVEY FLOW
# ============================================================================

class ConsentRequest(BaseModel):
    rater_id: str = ""
    agreed: bool = False


class SessionView(BaseModel):
    """Survey position for a rater"""
    rater_id: str
    stage: str
    index: int
    total_vignettes: int
    completed_ids: List[int]
    current: Optional[VignetteWithOutput] = None
    can_submit: bool = False


class CalibrationDiagnosis(BaseModel):
    diagnosis: str
    rationale: str


class CalibrationQuestion(BaseModel):
    question: str
    consideration: str


class CalibrationCase(BaseModel):
    title: str
    vignette: str
    diagnoses: List[CalibrationDiagnosis]
    discussion_points: List[str]
    practice_questions: List[CalibrationQuestion]


class CalibrationContent(BaseModel):
    instructions: List[str]
    cases: List[CalibrationCase]


# ============================================================================
# ADMIN
# ============================================================================

class AdminLoginRequest(BaseModel):
    password: str


class AdminLoginResponse(BaseModel):
    status: str = "success"
    token: str
    expires_in: int


class GenerateRequest(BaseModel):
    """Optional per-call overrides for diagnosis generation"""
    api_key: Optional[str] = None
    model_name: Optional[str] = None
    force: bool = False


class GenerationItemResult(BaseModel):
    vignette_id: int
    status: str  # generated, skipped, failed
    llm_output_id: Optional[int] = None
    error: Optional[str] = None


class BatchGenerationSummary(BaseModel):
    total: int
    generated: int
    skipped: int
    failed: int
    results: List[GenerationItemResult]
