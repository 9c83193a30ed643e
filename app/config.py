from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[1]
CONFIG_PATH = PROJECT_ROOT / "configs" / "config.yaml"


class EngineSettings(BaseModel):
    storage_key: str = "prediction_state_v2"
    ttl_hours: float = Field(3.0, gt=0)
    history_limit: int = Field(20, ge=1)
    artificial_delay_ms: int = Field(400, ge=0)
    toast_duration_ms: int = Field(4000, ge=0)
    data_source: Literal["mock", "api"] = "mock"
    mock_seed: Optional[int] = None

    @property
    def ttl_ms(self) -> int:
        return int(self.ttl_hours * 60 * 60 * 1000)


class StorageSettings(BaseModel):
    db_url: str = "sqlite:///./outputs/prediction.db"


class ApiSourceSettings(BaseModel):
    base_url: str = "http://127.0.0.1:8000"
    endpoint: str = "/crisis-prediction/latest"
    timeout_s: float = Field(10.0, gt=0)
    retries: int = Field(3, ge=1)
    retry_delay_s: float = Field(1.0, ge=0)
    auth_token: Optional[str] = None


class LoggingSettings(BaseModel):
    level: str = "INFO"


class Settings(BaseModel):
    engine: EngineSettings = Field(default_factory=EngineSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    api: ApiSourceSettings = Field(default_factory=ApiSourceSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_settings(path: Optional[Path] = None) -> Settings:
    """Read configs/config.yaml into validated settings.

    A missing file falls back to defaults; invalid YAML or values raise.
    """
    cfg_path = Path(path) if path is not None else CONFIG_PATH
    if not cfg_path.exists():
        logger.warning("Config file %s not found, using defaults", cfg_path)
        return Settings()

    with cfg_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return Settings.model_validate(raw)
