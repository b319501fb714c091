# ============================================================================
# src/biomarker_ingestion/core/__init__.py
# ============================================================================
"""
Core pipeline types.

The pipeline itself lives in core.pipeline and is imported from the
package root; this module only exposes the leaf types other subpackages
depend on.
"""

from .processing_log import LogStatus, PipelineStep, ProcessingLog, ProcessingLogEntry
from .results import PipelineResult, RunStatus, TableResult

__all__ = [
    'LogStatus',
    'PipelineStep',
    'ProcessingLog',
    'ProcessingLogEntry',
    'PipelineResult',
    'RunStatus',
    'TableResult',
]
