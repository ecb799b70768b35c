"""
Agent Configuration
===================

One AgentConfig value is built at startup and passed to every component.
Sources, later ones win:

  1. Defaults below
  2. JSON file (~/.provider-agent/config.json or --config)
  3. PROVIDER_* environment variables
  4. Command-line flags
"""

from __future__ import annotations
import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Mapping, Optional

CONFIG_PATH = Path.home() / ".provider-agent" / "config.json"

ENV_VARS = {
    "coordinator_url": "PROVIDER_COORDINATOR_URL",
    "provider":        "PROVIDER_ADDR",
    "poll_interval":   "PROVIDER_POLL_INTERVAL",
    "output_root":     "PROVIDER_OUTPUT_DIR",
    "job_timeout":     "PROVIDER_JOB_TIMEOUT",
    "log_level":       "PROVIDER_LOG_LEVEL",
}


@dataclass(frozen=True)
class AgentConfig:
    provider:            str
    coordinator_url:     str             = "http://localhost:8080"
    poll_interval:       float           = 5.0
    output_root:         str             = "./outputs"
    mount_point:         str             = "/out"
    artifact_uri_prefix: str             = "/outputs"
    job_timeout:         Optional[float] = None   # None → wait for the container indefinitely
    spool_path:          Optional[str]   = None   # None → <output_root>/.pending-results.jsonl
    request_timeout:     float           = 10.0
    log_level:           str             = "INFO"

    def __post_init__(self):
        if not self.provider:
            raise ValueError("provider address is required (--provider or PROVIDER_ADDR)")
        if not self.coordinator_url:
            raise ValueError("coordinator_url must not be empty")
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.job_timeout is not None and self.job_timeout <= 0:
            raise ValueError(f"job_timeout must be positive, got {self.job_timeout}")
        if not self.mount_point.startswith("/"):
            raise ValueError(f"mount_point must be absolute, got {self.mount_point!r}")

    @property
    def resolved_spool_path(self) -> Path:
        if self.spool_path:
            return Path(self.spool_path)
        return Path(self.output_root) / ".pending-results.jsonl"

    def to_dict(self) -> dict:
        return asdict(self)


def load_config(path: Path) -> dict:
    if path.exists():
        return json.loads(path.read_text())
    return {}


def save_config(path: Path, cfg: dict):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(cfg, indent=2))


def _coerce(name: str, value):
    if value is None or value == "":
        return None
    if name in ("poll_interval", "job_timeout", "request_timeout"):
        return float(value)
    return str(value)


def build_config(
    file_cfg:  Optional[Mapping] = None,
    env:       Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping] = None,
) -> AgentConfig:
    """Merge the configuration layers. Unknown file keys are ignored."""
    known = {f.name for f in fields(AgentConfig)}
    merged: dict = {}

    for key, value in (file_cfg or {}).items():
        if key in known and value is not None:
            merged[key] = _coerce(key, value)

    env = os.environ if env is None else env
    for key, var in ENV_VARS.items():
        if env.get(var):
            merged[key] = _coerce(key, env[var])

    for key, value in (overrides or {}).items():
        if key in known and value is not None:
            merged[key] = _coerce(key, value)

    merged = {k: v for k, v in merged.items() if v is not None}
    return AgentConfig(**{"provider": "", **merged})
