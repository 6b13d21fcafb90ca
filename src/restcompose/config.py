"""
Configuration loading and validation for the compose orchestrator.

Sources, later ones win:
1. Dataclass defaults
2. YAML file (load_config)
3. Environment variables (OrchestratorConfig.from_env), e.g.
   RESTCOMPOSE_MAX_BATCH_SIZE=20
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from .core.errors import ConfigError

ENV_PREFIX = "RESTCOMPOSE_"


@dataclass
class OrchestratorConfig:
    """Limits for one compose request."""
    max_batch_size: int = 50
    per_route_call_limit: int = 10
    query_timeout_ms: int = 30000
    max_execution_time_ms: int = 60000  # total budget checked before each sub-query
    max_cost_ms: Optional[int] = None  # whole-batch limit checked after all settle
    max_payload_size: int = 1024 * 1024
    max_field_depth: int = 10
    enable_caching: bool = True
    cancel_on_timeout: bool = True

    def __post_init__(self):
        for name in (
            "max_batch_size",
            "per_route_call_limit",
            "query_timeout_ms",
            "max_execution_time_ms",
            "max_payload_size",
            "max_field_depth",
        ):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")

        if self.max_cost_ms is not None and (not isinstance(self.max_cost_ms, int) or self.max_cost_ms <= 0):
            raise ConfigError(f"max_cost_ms must be a positive integer or None, got {self.max_cost_ms!r}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrchestratorConfig":
        """Create config from a dict; unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_env(
        cls,
        base: Optional["OrchestratorConfig"] = None,
        prefix: str = ENV_PREFIX,
        environ: Optional[dict[str, str]] = None,
    ) -> "OrchestratorConfig":
        """Overlay PREFIX_<FIELD> environment variables on base (or defaults)."""
        environ = os.environ if environ is None else environ
        data = (base or cls()).to_dict()

        for f in fields(cls):
            raw = environ.get(f"{prefix}{f.name.upper()}")
            if raw is None:
                continue
            data[f.name] = _parse_env_value(f.name, raw, data[f.name])

        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def save(self, path: Path | str = "restcompose.yaml") -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        content = yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)
        path.write_text(content)


def _parse_env_value(name: str, raw: str, current: Any) -> Any:
    raw = raw.strip()

    if isinstance(current, bool):
        if raw.lower() in ("1", "true", "yes", "on"):
            return True
        if raw.lower() in ("0", "false", "no", "off"):
            return False
        raise ConfigError(f"{name} must be a boolean, got {raw!r}")

    if name == "max_cost_ms" and raw.lower() in ("", "none", "null"):
        return None

    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def load_config(path: Path | str = "restcompose.yaml") -> OrchestratorConfig | None:
    """Load configuration from YAML file; None if the file does not exist."""
    path = Path(path)
    if not path.exists():
        return None

    data = yaml.safe_load(path.read_text()) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")
    return OrchestratorConfig.from_dict(data)
