"""Runtime settings for the report runner, worker and CLI.

Values come from the environment; a `.env` file next to the repository
root is loaded first when present.
"""

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

ENV_PATH = Path(__file__).resolve().parents[1] / ".env"

DEFAULT_TASK_QUEUE = "fulfillment-reports"


class ReportSettings(BaseModel):
    """Order store access, batch sizing and logging options."""
    model_config = ConfigDict(frozen=True)

    store_url: Optional[str] = None
    store_token: Optional[str] = None
    store_timeout: float = Field(default=30.0, gt=0)

    max_concurrency: int = Field(default=8, ge=1)
    retry_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=60.0, ge=0)

    task_queue: str = DEFAULT_TASK_QUEUE
    log_level: str = "INFO"
    log_json: bool = False

    temporal_endpoint: Optional[str] = None
    temporal_namespace: str = "default"
    temporal_api_key: Optional[str] = None

    @property
    def log_level_number(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "ReportSettings":
        """Build settings from environment variables.

        Args:
            environ: Mapping to read instead of os.environ (the .env file
                is only loaded when reading os.environ)
            **overrides: Explicit values that win over the environment

        Returns:
            Validated ReportSettings
        """
        if environ is None:
            if ENV_PATH.exists():
                load_dotenv(ENV_PATH)
            environ = os.environ

        values = {
            "store_url": environ.get("ORDER_STORE_URL"),
            "store_token": environ.get("ORDER_STORE_TOKEN"),
            "store_timeout": environ.get("ORDER_STORE_TIMEOUT"),
            "max_concurrency": environ.get("REPORT_MAX_CONCURRENCY"),
            "retry_attempts": environ.get("REPORT_RETRY_ATTEMPTS"),
            "retry_base_delay": environ.get("REPORT_RETRY_BASE_DELAY"),
            "retry_max_delay": environ.get("REPORT_RETRY_MAX_DELAY"),
            "task_queue": environ.get("REPORT_TASK_QUEUE"),
            "log_level": environ.get("LOG_LEVEL"),
            "log_json": environ.get("LOG_JSON"),
            "temporal_endpoint": environ.get("TEMPORAL_ENDPOINT"),
            "temporal_namespace": environ.get("TEMPORAL_NAMESPACE"),
            "temporal_api_key": environ.get("TEMPORAL_API_KEY"),
        }
        # Unset and empty variables fall back to the field defaults
        values = {k: v for k, v in values.items() if v not in (None, "")}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
