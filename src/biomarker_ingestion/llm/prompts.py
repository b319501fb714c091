# ============================================================================
# src/biomarker_ingestion/llm/prompts.py
# ============================================================================
"""
Prompt fragments for the extraction call.

The system prompt embeds the registry's field lists so the model only ever
sees column names that exist.
"""

from typing import Optional, Tuple

SYSTEM_PROMPT = """You are a medical data extraction specialist. Analyze the provided medical document text and extract structured data that maps EXACTLY to the database schema below.

CRITICAL: Use EXACT table and column names. Do not invent column names.

DATABASE SCHEMA:

{schema}

RESPONSE FORMAT - a single JSON object:
{{
  "documentType": "lab_report|imaging_study|cardiovascular_test|wearable_export|medical_record|other",
  "confidence": 0.95,
  "extractedFields": {{
    "LAB_RESULTS": [
      {{"result_name": "Hemoglobin", "numeric_value": 14.5, "unit": "g/dL", "reference_range_min": 12.0, "reference_range_max": 16.0, "abnormal_flag": "normal"}}
    ],
    "HEART_METRICS": {{"device_type": "manual", "measurement_timestamp": "2024-01-15T09:30:00Z", "systolic_bp": 120, "diastolic_bp": 80}}
  }},
  "recommendations": []
}}

RULES:
1. Keys of extractedFields are table names in upper case. A table may hold one object or a list of objects.
2. Date format: YYYY-MM-DD. Timestamp format: YYYY-MM-DDTHH:MM:SSZ.
3. abnormal_flag: ONLY "normal", "high", "low", "critical_high", "critical_low".
4. Include only fields that have actual values in the document.
5. Numbers as numbers, booleans as true/false, text as strings.
6. Optionally add "_confidence" (0-1) to a record when you are unsure of it."""

USER_PROMPT = """Analyze this medical document and extract structured data according to the schema.

FILENAME: {file_name}
DOCUMENT TEXT:
{text}

EXTRACTION REQUIREMENTS:
1. Identify the document type first
2. Map all lab results with values, units and reference ranges
3. Extract vital signs and wearable/biomarker measurements
4. Capture imaging and cardiovascular findings if present
5. Note any allergies or adverse reactions
6. Preserve all timestamps and dates
7. Provide recommendations based on findings

Return the complete JSON object in the format above."""


def build_prompts(schema_description: str, text: str, file_name: Optional[str] = None) -> Tuple[str, str]:
    """(system_prompt, user_prompt) for one document."""
    return (
        SYSTEM_PROMPT.format(schema=schema_description),
        USER_PROMPT.format(file_name=file_name or "pasted-text", text=text),
    )
