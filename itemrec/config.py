# itemrec/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from itemrec.errors import ConfigError

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"

# env var -> JobConfig field
ENV_OVERRIDES = {
    "ITEMREC_INPUT_DIR": "input_dir",
    "ITEMREC_SINK_DIR": "sink_dir",
    "ITEMREC_MAX_WORKERS": "max_workers",
    "ITEMREC_METRICS_PATH": "metrics_path",
    "ITEMREC_LOG_LEVEL": "log_level",
}

MODELDATA_TARGET = "itemrec_scores"
TRAINING_MODELDATA_TARGET = "training_itemrec_scores"


def parse_bool(value: Any) -> bool:
    """Accept real booleans and the usual 'true'/'false' spellings."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "1", "yes", "y"):
        return True
    if text in ("false", "0", "no", "n"):
        return False
    raise ConfigError(f"Cannot interpret {value!r} as a boolean")


@dataclass
class JobConfig:
    input_dir: str = ""
    appid: Optional[int] = None
    algoid: Optional[int] = None
    evalid: Optional[int] = None
    model_set: bool = False
    unseen_only: bool = False
    num_recommendations: int = 10
    max_workers: Optional[int] = None
    task_timeout_sec: Optional[float] = None
    chunk_size: int = 4096
    sink_dir: str = "modeldata"
    sink_batch_size: int = 1000
    sink_max_retries: int = 3
    sink_backoff_sec: float = 0.5
    metrics_path: Optional[str] = None
    log_level: str = "INFO"
    log_dir: Optional[str] = None
    env: str = "dev"

    def __post_init__(self):
        self.model_set = parse_bool(self.model_set)
        self.unseen_only = parse_bool(self.unseen_only)
        try:
            for name in ("appid", "algoid", "evalid", "max_workers"):
                value = getattr(self, name)
                if value is not None:
                    setattr(self, name, int(value))
            self.num_recommendations = int(self.num_recommendations)
            self.chunk_size = int(self.chunk_size)
            self.sink_batch_size = int(self.sink_batch_size)
            self.sink_max_retries = int(self.sink_max_retries)
            self.sink_backoff_sec = float(self.sink_backoff_sec)
            if self.task_timeout_sec is not None:
                self.task_timeout_sec = float(self.task_timeout_sec)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid job configuration: {e}") from e

    # evaluation runs go to the training store and are keyed by evalid
    @property
    def offline_eval(self) -> bool:
        return self.evalid is not None

    @property
    def context_id(self) -> int:
        return self.evalid if self.offline_eval else self.appid

    @property
    def sink_target(self) -> str:
        return TRAINING_MODELDATA_TARGET if self.offline_eval else MODELDATA_TARGET

    @property
    def workers(self) -> int:
        return self.max_workers or os.cpu_count() or 1

    def validate(self) -> "JobConfig":
        missing = [name for name in ("appid", "algoid") if getattr(self, name) is None]
        if not self.input_dir:
            missing.insert(0, "input_dir")
        if missing:
            raise ConfigError(f"Missing required job arguments: {missing}")
        if self.num_recommendations < 0:
            raise ConfigError("num_recommendations must be >= 0")
        if self.max_workers is not None and self.max_workers <= 0:
            raise ConfigError("max_workers must be positive")
        if self.chunk_size <= 0 or self.sink_batch_size <= 0:
            raise ConfigError("chunk_size and sink_batch_size must be positive")
        if self.sink_max_retries < 0:
            raise ConfigError("sink_max_retries must be >= 0")
        if self.task_timeout_sec is not None and self.task_timeout_sec <= 0:
            raise ConfigError("task_timeout_sec must be positive")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _flatten(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Sections in config.yaml are only for readability; fields are unique."""
    flat: Dict[str, Any] = {}
    for key, value in (raw or {}).items():
        if isinstance(value, dict):
            flat.update(_flatten(value))
        else:
            flat[key] = value
    return flat


def load_config(env: str | None = None, path: str | os.PathLike | None = None, **overrides) -> JobConfig:
    """
    Load job config with environment override:
      - loads .env
      - resolves env = arg or APP_ENV or 'dev'
      - merges the `base` section with the env section of config.yaml
      - applies ITEMREC_* environment variables, then explicit overrides
    Overrides set to None are ignored so argparse defaults do not mask the file.
    """
    load_dotenv()

    env = (env or os.getenv("APP_ENV") or "dev").lower()

    cfg_path = Path(path) if path else DEFAULT_CONFIG_PATH
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {cfg_path}") from e

    merged = {**_flatten(raw.get("base", {})), **_flatten(raw.get(env, {}))}

    for var, field_name in ENV_OVERRIDES.items():
        value = os.getenv(var)
        if value:
            merged[field_name] = value

    merged.update({k: v for k, v in overrides.items() if v is not None})
    merged["env"] = env

    known = {f.name for f in fields(JobConfig)}
    unknown = sorted(set(merged) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys: {unknown}")
    return JobConfig(**merged)
