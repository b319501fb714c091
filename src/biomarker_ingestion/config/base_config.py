# ============================================================================
# src/biomarker_ingestion/config/base_config.py
# ============================================================================
"""
Base Configuration
- Data directory
- Record store database
"""

from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings

class BaseSettingsConfig(BaseSettings):
    # Root data directory
    DATA_DIR: Path = Field(
        default=Path("data"),
        description="Directory for local databases and uploads"
    )

    # Persistent record store
    STORE_DB_PATH: Path = Field(
        default=Path("data/biomarkers.db"),
        description="SQLite database backing the destination tables"
    )

    STORE_UNIQUE_KEYS: bool = Field(
        default=False,
        description="Add unique indexes on (patient_id, duplicate key) as a race backstop"
    )

    def create_directories(self):
        """Create all necessary directories if they don't exist"""
        for directory in (self.DATA_DIR, self.STORE_DB_PATH.parent):
            directory.mkdir(parents=True, exist_ok=True)

# Global instance
base_settings = BaseSettingsConfig()
