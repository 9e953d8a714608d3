from datetime import time, timedelta
from typing import List, Union
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
import json

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./app.db"
    API_V1_STR: str = "/api/v1"

    # Logging
    LOG_LEVEL: str = "INFO"
    ERROR_LOG_FILE: str = "cron_errors.log"  # error-grade sink, empty string disables

    # Nightly maintenance cycle
    MAINTENANCE_ENABLED: bool = True
    MAINTENANCE_SCHEDULE_TIME: time = time(11, 50)
    MAINTENANCE_CYCLE_TIMEOUT: timedelta = timedelta(minutes=25)
    MAINTENANCE_SHUTDOWN_GRACE: timedelta = timedelta(minutes=2)
    MAINTENANCE_MAX_WORKERS: int = 4

    # Production line progression
    PROGRESSION_PROJECT_IDS: Union[str, List[int]] = []
    AUTO_TASK_TYPE_ID: int = 59
    AUTO_TASK_PRIORITY: str = "Medium"
    AUTO_TASK_STATUS: str = "Inprogress"
    AUTO_TASK_COLOR_CODE: str = "#FF5733"
    DEFAULT_STOCKYARD_ID: int = 19
    # Force-completing activities skips real QC outcomes; it must be switched on explicitly
    FORCE_COMPLETE_ACTIVITIES: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False
    )

    @field_validator("PROGRESSION_PROJECT_IDS", mode="before")
    @classmethod
    def parse_project_ids(cls, v):
        if isinstance(v, str):
            if not v.strip():
                return []
            try:
                v = json.loads(v)
            except json.JSONDecodeError:
                return [int(project_id.strip()) for project_id in v.split(",") if project_id.strip()]
        if isinstance(v, int):
            return [v]
        return v

settings = Settings()
