# ============================================================================
# src/biomarker_ingestion/config/__init__.py
# ============================================================================
"""
Convenient imports for all settings
"""

from .base_config import base_settings
from .llm_config import llm_settings
from .ingestion_config import ingestion_settings
from .logging_config import logging_settings
