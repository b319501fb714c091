# ============================================================================
# src/biomarker_ingestion/schema/tables.py
# ============================================================================
"""
Built-in destination tables.

Each table is declared as (field, type, required, description) rows. The
patient owning a row is not a schema field: the record store adds the
patient_id column itself.
"""

from typing import Dict, Iterable, Sequence, Tuple

from .types import SemanticType, TableKind, TableSchema

T = SemanticType

FieldRow = Tuple[str, SemanticType, bool, str]


def _table(
    name: str,
    kind: TableKind,
    rows: Iterable[FieldRow],
    duplicate_key: Sequence[str] = (),
    flag_fields: Sequence[str] = (),
    extractable: bool = True,
) -> TableSchema:
    rows = list(rows)
    return TableSchema(
        name=name,
        required_fields=frozenset(r[0] for r in rows if r[2]),
        optional_fields=frozenset(r[0] for r in rows if not r[2]),
        field_types={r[0]: r[1] for r in rows},
        kind=kind,
        duplicate_key=tuple(duplicate_key),
        flag_fields=frozenset(flag_fields),
        descriptions={r[0]: r[3] for r in rows},
        extractable=extractable,
    )


LAB_RESULTS = _table("lab_results", TableKind.CLINICAL_TEST, [
    ("result_name", T.TEXT, True, "Exact name of the lab parameter"),
    ("numeric_value", T.NUMERIC, False, "Numerical result value"),
    ("text_value", T.TEXT, False, "Text result if not numeric"),
    ("unit", T.TEXT, False, "Units exactly as written (g/dL, mg/dL, %)"),
    ("reference_range_min", T.NUMERIC, False, "Lower bound of normal range"),
    ("reference_range_max", T.NUMERIC, False, "Upper bound of normal range"),
    ("reference_range_text", T.TEXT, False, "Text description of range"),
    ("abnormal_flag", T.TEXT, False, 'One of "normal", "high", "low", "critical_high", "critical_low"'),
    ("result_status", T.TEXT, False, '"final", "preliminary", "corrected"'),
    ("interpretation", T.TEXT, False, "Clinical interpretation"),
    ("reviewing_physician", T.TEXT, False, "Doctor who reviewed"),
    ("test_category", T.TEXT, False, '"Hematology", "Chemistry", "Immunology"'),
    ("measurement_timestamp", T.TIMESTAMP, False, "Collection time, YYYY-MM-DDTHH:MM:SSZ"),
], duplicate_key=("result_name", "measurement_timestamp"), flag_fields=("abnormal_flag",))

HEART_METRICS = _table("heart_metrics", TableKind.BIOMARKER, [
    ("device_type", T.TEXT, True, '"manual", "ecg", "holter", "smartwatch"'),
    ("measurement_timestamp", T.TIMESTAMP, True, "YYYY-MM-DDTHH:MM:SSZ"),
    ("resting_heart_rate", T.INTEGER, False, "BPM at rest"),
    ("max_heart_rate", T.INTEGER, False, "Maximum BPM"),
    ("min_heart_rate", T.INTEGER, False, "Minimum BPM"),
    ("average_heart_rate", T.INTEGER, False, "Average BPM"),
    ("systolic_bp", T.INTEGER, False, "Systolic blood pressure"),
    ("diastolic_bp", T.INTEGER, False, "Diastolic blood pressure"),
    ("hrv_score", T.INTEGER, False, "Heart rate variability score"),
    ("hrv_rmssd", T.NUMERIC, False, "HRV RMSSD (ms)"),
    ("hrv_sdnn", T.NUMERIC, False, "HRV SDNN (ms)"),
    ("vo2_max", T.NUMERIC, False, "VO2 max"),
    ("workout_heart_rate", T.INTEGER, False, "Average BPM during workouts"),
    ("recovery_heart_rate", T.INTEGER, False, "BPM one minute after exercise"),
    ("walking_heart_rate", T.INTEGER, False, "Average BPM while walking"),
], duplicate_key=("measurement_timestamp",))

ACTIVITY_METRICS = _table("activity_metrics", TableKind.BIOMARKER, [
    ("device_type", T.TEXT, True, '"manual", "smartwatch", "fitness_tracker"'),
    ("measurement_date", T.DATE, True, "YYYY-MM-DD"),
    ("measurement_timestamp", T.TIMESTAMP, True, "YYYY-MM-DDTHH:MM:SSZ"),
    ("steps_count", T.INTEGER, False, "Number of steps"),
    ("total_calories", T.INTEGER, False, "Total calories burned"),
    ("active_calories", T.INTEGER, False, "Active calories burned"),
    ("basal_calories", T.INTEGER, False, "Basal calories burned"),
    ("exercise_minutes", T.INTEGER, False, "Minutes of exercise"),
    ("moderate_activity_minutes", T.INTEGER, False, "Minutes of moderate activity"),
    ("vigorous_activity_minutes", T.INTEGER, False, "Minutes of vigorous activity"),
    ("distance_walked_meters", T.NUMERIC, False, "Walking distance in meters"),
    ("distance_ran_meters", T.NUMERIC, False, "Running distance in meters"),
    ("distance_cycled_meters", T.NUMERIC, False, "Cycling distance in meters"),
    ("flights_climbed", T.INTEGER, False, "Flights of stairs climbed"),
], duplicate_key=("measurement_timestamp",))

SLEEP_METRICS = _table("sleep_metrics", TableKind.BIOMARKER, [
    ("device_type", T.TEXT, True, '"manual", "smartwatch", "ring"'),
    ("sleep_date", T.DATE, True, "Night of sleep, YYYY-MM-DD"),
    ("total_sleep_time", T.INTEGER, False, "Total sleep in minutes"),
    ("deep_sleep_minutes", T.INTEGER, False, "Deep sleep in minutes"),
    ("rem_sleep_minutes", T.INTEGER, False, "REM sleep in minutes"),
    ("light_sleep_minutes", T.INTEGER, False, "Light sleep in minutes"),
    ("awake_minutes", T.INTEGER, False, "Minutes awake"),
    ("sleep_efficiency", T.NUMERIC, False, "Percent of time in bed asleep"),
    ("sleep_latency", T.INTEGER, False, "Minutes to fall asleep"),
    ("sleep_score", T.INTEGER, False, "Device sleep score"),
    ("sleep_disturbances", T.INTEGER, False, "Number of disturbances"),
    ("restfulness_score", T.INTEGER, False, "Device restfulness score"),
], duplicate_key=("sleep_date",))

NUTRITION_METRICS = _table("nutrition_metrics", TableKind.BIOMARKER, [
    ("measurement_date", T.DATE, True, "YYYY-MM-DD"),
    ("total_calories", T.INTEGER, False, "Calories consumed"),
    ("protein_grams", T.NUMERIC, False, "Protein (g)"),
    ("carbohydrates_grams", T.NUMERIC, False, "Carbohydrates (g)"),
    ("fat_grams", T.NUMERIC, False, "Fat (g)"),
    ("fiber_grams", T.NUMERIC, False, "Fiber (g)"),
    ("sugar_grams", T.NUMERIC, False, "Sugar (g)"),
    ("sodium_mg", T.NUMERIC, False, "Sodium (mg)"),
    ("calcium_mg", T.NUMERIC, False, "Calcium (mg)"),
    ("iron_mg", T.NUMERIC, False, "Iron (mg)"),
    ("vitamin_d_iu", T.NUMERIC, False, "Vitamin D (IU)"),
    ("vitamin_b12_mcg", T.NUMERIC, False, "Vitamin B12 (mcg)"),
    ("vitamin_c_mg", T.NUMERIC, False, "Vitamin C (mg)"),
], duplicate_key=("measurement_date",))

MICROBIOME_METRICS = _table("microbiome_metrics", TableKind.BIOMARKER, [
    ("test_date", T.DATE, True, "Sample date, YYYY-MM-DD"),
    ("test_provider", T.TEXT, False, "Lab or kit provider"),
    ("alpha_diversity", T.NUMERIC, False, "Alpha diversity index"),
    ("beta_diversity", T.NUMERIC, False, "Beta diversity index"),
    ("beneficial_bacteria_score", T.NUMERIC, False, "Beneficial bacteria score"),
    ("pathogenic_bacteria_score", T.NUMERIC, False, "Pathogenic bacteria score"),
    ("butyrate_production", T.NUMERIC, False, "Butyrate production"),
    ("acetate_production", T.NUMERIC, False, "Acetate production"),
    ("propionate_production", T.NUMERIC, False, "Propionate production"),
    ("species_richness", T.INTEGER, False, "Number of species detected"),
], duplicate_key=("test_date",))

ENVIRONMENTAL_METRICS = _table("environmental_metrics", TableKind.BIOMARKER, [
    ("measurement_date", T.DATE, True, "YYYY-MM-DD"),
    ("measurement_timestamp", T.TIMESTAMP, True, "YYYY-MM-DDTHH:MM:SSZ"),
    ("device_type", T.TEXT, False, '"manual_entry", "air_monitor", "smartwatch"'),
    ("air_quality_index", T.INTEGER, False, "Air quality index"),
    ("uv_exposure_minutes", T.INTEGER, False, "Minutes of UV exposure"),
    ("weather_temperature", T.NUMERIC, False, "Outdoor temperature"),
    ("humidity_percentage", T.NUMERIC, False, "Relative humidity (%)"),
    ("barometric_pressure", T.NUMERIC, False, "Barometric pressure"),
    ("pm25_level", T.NUMERIC, False, "PM2.5 concentration"),
    ("pm10_level", T.NUMERIC, False, "PM10 concentration"),
], duplicate_key=("measurement_timestamp",))

RECOVERY_STRAIN_METRICS = _table("recovery_strain_metrics", TableKind.BIOMARKER, [
    ("device_type", T.TEXT, True, '"whoop", "smartwatch", "manual"'),
    ("measurement_date", T.DATE, True, "YYYY-MM-DD"),
    ("recovery_score", T.NUMERIC, False, "Recovery score"),
    ("strain_score", T.NUMERIC, False, "Strain score"),
    ("hrv_score", T.INTEGER, False, "Heart rate variability score"),
    ("resting_hr_score", T.NUMERIC, False, "Resting heart rate score"),
    ("sleep_performance_score", T.NUMERIC, False, "Sleep performance score"),
    ("stress_score", T.NUMERIC, False, "Stress score"),
    ("skin_temperature", T.NUMERIC, False, "Skin temperature"),
    ("skin_temperature_deviation", T.NUMERIC, False, "Deviation from baseline"),
], duplicate_key=("measurement_date",))

CARDIOVASCULAR_TESTS = _table("cardiovascular_tests", TableKind.CLINICAL_TEST, [
    ("test_type", T.TEXT, True, '"ecg", "stress_test", "echocardiogram", "holter"'),
    ("test_date", T.DATE, True, "YYYY-MM-DD"),
    ("heart_rate", T.INTEGER, False, "Heart rate during test"),
    ("max_heart_rate", T.INTEGER, False, "Peak heart rate"),
    ("blood_pressure_peak", T.TEXT, False, "Peak BP reading"),
    ("ecg_interpretation", T.TEXT, False, "ECG findings"),
    ("performing_physician", T.TEXT, False, "Doctor performing test"),
    ("performing_facility", T.TEXT, False, "Facility name"),
], duplicate_key=("test_type", "test_date"))

IMAGING_STUDIES = _table("imaging_studies", TableKind.CLINICAL_TEST, [
    ("study_type", T.TEXT, True, '"x-ray", "ct", "mri", "ultrasound", "mammogram"'),
    ("study_date", T.DATE, True, "YYYY-MM-DD"),
    ("body_part", T.TEXT, False, "Anatomical area imaged"),
    ("findings", T.TEXT, False, "Radiological findings"),
    ("impression", T.TEXT, False, "Radiologist impression"),
    ("radiologist", T.TEXT, False, "Reading radiologist"),
    ("performing_facility", T.TEXT, False, "Imaging facility"),
], duplicate_key=("study_type", "study_date"))

ALLERGIES = _table("allergies", TableKind.CLINICAL_RECORD, [
    ("allergen", T.TEXT, True, "Substance causing allergy"),
    ("reaction", T.TEXT, True, "Type of allergic reaction"),
    ("severity", T.TEXT, False, '"mild", "moderate", "severe"'),
    ("onset_date", T.DATE, False, "YYYY-MM-DD"),
    ("active", T.BOOLEAN, False, "true/false if allergy is current"),
], duplicate_key=("allergen",))

DOCUMENT_PROCESSING_LOGS = _table("document_processing_logs", TableKind.DOCUMENT_LOG, [
    ("text_fingerprint", T.IDENTIFIER, True, "Hash of the leading extracted text"),
    ("file_name", T.TEXT, False, "Uploaded file name"),
    ("document_type", T.TEXT, False, "Document type reported by the model"),
    ("confidence", T.NUMERIC, False, "Model confidence"),
    ("processing_status", T.TEXT, False, "completed / partial"),
    ("extracted_char_count", T.INTEGER, False, "Length of extracted text"),
    ("total_inserted", T.INTEGER, False, "Records inserted by the run"),
], duplicate_key=("text_fingerprint",), extractable=False)


BUILTIN_TABLES: Tuple[TableSchema, ...] = (
    LAB_RESULTS,
    HEART_METRICS,
    ACTIVITY_METRICS,
    SLEEP_METRICS,
    NUTRITION_METRICS,
    MICROBIOME_METRICS,
    ENVIRONMENTAL_METRICS,
    RECOVERY_STRAIN_METRICS,
    CARDIOVASCULAR_TESTS,
    IMAGING_STUDIES,
    ALLERGIES,
    DOCUMENT_PROCESSING_LOGS,
)


def builtin_tables() -> Dict[str, TableSchema]:
    return {table.name: table for table in BUILTIN_TABLES}
