"""
Database schema for the differential diagnosis evaluation study.

Vignettes are the study cases, llm_outputs hold every generated differential
(the newest row per vignette is the current one), evaluations hold one rater
judgement per vignette, and rater_demographics holds the closing survey.

Dependent rows are removed by the query layer, not by ON DELETE CASCADE.
"""

# Millisecond timestamps so that "latest output" ordering is stable
TIMESTAMP_DEFAULT = "(strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))"

SCHEMA_SQL = f"""
-- Vignettes (synthetic patient cases)
CREATE TABLE IF NOT EXISTS vignettes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    category TEXT NOT NULL,
    patient_initials TEXT NOT NULL,
    content TEXT NOT NULL,
    created_at TIMESTAMP NOT NULL DEFAULT {TIMESTAMP_DEFAULT}
);

-- Generated differential diagnoses (never updated, only superseded)
CREATE TABLE IF NOT EXISTS llm_outputs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    vignette_id INTEGER NOT NULL,
    diagnoses TEXT NOT NULL,
    model_name TEXT NOT NULL,
    temperature REAL NOT NULL,
    missing_information TEXT,
    created_at TIMESTAMP NOT NULL DEFAULT {TIMESTAMP_DEFAULT},
    FOREIGN KEY (vignette_id) REFERENCES vignettes(id)
);

-- Rater evaluations (one per rater and vignette)
CREATE TABLE IF NOT EXISTS evaluations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    rater_id TEXT NOT NULL,
    vignette_id INTEGER NOT NULL,
    llm_output_id INTEGER NOT NULL,
    relevance_score INTEGER NOT NULL,
    missing_critical BOOLEAN NOT NULL DEFAULT 0,
    missing_diagnosis TEXT,
    safety_score INTEGER NOT NULL,
    acceptable BOOLEAN NOT NULL DEFAULT 0,
    ordering_score INTEGER NOT NULL,
    confidence_level INTEGER NOT NULL,
    comment TEXT,
    created_at TIMESTAMP NOT NULL DEFAULT {TIMESTAMP_DEFAULT},
    FOREIGN KEY (vignette_id) REFERENCES vignettes(id),
    FOREIGN KEY (llm_output_id) REFERENCES llm_outputs(id),
    UNIQUE(rater_id, vignette_id)
);

-- Closing demographics survey (one per rater)
CREATE TABLE IF NOT EXISTS rater_demographics (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    rater_id TEXT UNIQUE NOT NULL,
    years_of_practice INTEGER NOT NULL,
    practice_location TEXT NOT NULL,
    ai_clinical_reasoning_confidence INTEGER NOT NULL,
    ai_safety_concern INTEGER NOT NULL,
    ai_decision_support_willingness INTEGER NOT NULL,
    ai_concerns TEXT NOT NULL DEFAULT '[]',
    phone_number TEXT,
    created_at TIMESTAMP NOT NULL DEFAULT {TIMESTAMP_DEFAULT}
);

-- Create indexes for better query performance
CREATE INDEX IF NOT EXISTS idx_vignettes_category ON vignettes(category);
CREATE INDEX IF NOT EXISTS idx_llm_outputs_vignette ON llm_outputs(vignette_id, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_evaluations_rater ON evaluations(rater_id);
CREATE INDEX IF NOT EXISTS idx_evaluations_vignette ON evaluations(vignette_id);
"""

STUDY_TABLES = ["evaluations", "llm_outputs", "rater_demographics", "vignettes"]
