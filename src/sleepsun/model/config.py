from pathlib import Path
from typing import Literal, Optional, Union

import pydantic
import yaml
from pydantic import BaseModel, ConfigDict, Field

from ..errors import ValidationError

SUNRISE_SUNSET_URL = "https://api.sunrise-sunset.org/json"


class EngineConfig(BaseModel):
  model_config = ConfigDict(extra="forbid")

  backend: Literal["sqlite", "memory"] = "sqlite"
  db_path: str = "sleep_sun.db"
  api_url: str = SUNRISE_SUNSET_URL
  request_timeout: float = Field(default=20.0, gt=0)
  concurrency_limit: int = Field(default=5, ge=1)
  dispatch_delay: float = Field(default=0.05, ge=0)
  # Shortest session stop_tracking will persist; 0 disables the check.
  min_session_seconds: int = Field(default=900, ge=0)
  graph_max_height: float = Field(default=100.0, gt=0)


def load_config(path: Optional[Union[str, Path]] = None, **overrides) -> EngineConfig:
  cfg = {}
  if path is not None and Path(path).exists():
    cfg = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(cfg, dict):
      raise ValidationError(f"config file {path} must contain a mapping")
  cfg.update({k: v for k, v in overrides.items() if v is not None})
  try:
    return EngineConfig(**cfg)
  except pydantic.ValidationError as e:
    raise ValidationError(f"invalid configuration: {e}") from e
