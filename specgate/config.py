"""Gate settings.

Settings live in the optional, hand-edited ``openspec/specgate-config.json``.
The tool only reads it; the state document stays the single file specgate
writes. Environment variables override the file.
"""
from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Mapping

from specgate.errors import ConfigError
from specgate.paths import ProjectPaths
from specgate.state.logger import log_event
from specgate.state.models import parse_flag

_BOOL_FIELDS = ("strict_discussion_mode", "extrasafe", "block_unlisted_files")
_LIST_FIELDS = ("bash_read_commands", "bash_write_commands")
_FLOAT_FIELDS = ("stdin_timeout", "git_timeout")


def _env_flag(name: str) -> bool | None:
    raw = os.environ.get(name)
    return None if raw is None else parse_flag(raw)


@dataclass
class GateConfig:
    strict_discussion_mode: bool = False
    extrasafe: bool = True
    bash_read_commands: List[str] = field(default_factory=list)
    bash_write_commands: List[str] = field(default_factory=list)
    block_unlisted_files: bool = False
    stdin_timeout: float = 5.0
    git_timeout: float = 5.0

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "GateConfig":
        """Build settings from a parsed file. Raises ConfigError for values of the wrong shape."""
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in d.items():
            if key not in known:
                continue
            if key in _BOOL_FIELDS:
                if (flag := parse_flag(value)) is None: raise ConfigError(f"{key}: expected a boolean, got {value!r}")
                kwargs[key] = flag
            elif key in _LIST_FIELDS:
                if isinstance(value, str): value = [value]
                if not isinstance(value, list): raise ConfigError(f"{key}: expected a list of commands, got {value!r}")
                kwargs[key] = [str(c).strip() for c in value if str(c).strip()]
            elif key in _FLOAT_FIELDS:
                try:
                    kwargs[key] = float(value)
                except (TypeError, ValueError) as exc:
                    raise ConfigError(f"{key}: expected a number of seconds, got {value!r}") from exc
        return cls(**kwargs)

    def apply_env(self) -> "GateConfig":
        if (v := _env_flag("SPECGATE_STRICT")) is not None: self.strict_discussion_mode = v
        if (v := _env_flag("SPECGATE_EXTRASAFE")) is not None: self.extrasafe = v
        if (v := _env_flag("SPECGATE_BLOCK_UNLISTED")) is not None: self.block_unlisted_files = v
        return self

    def to_dict(self) -> Dict[str, Any]: return asdict(self)


def load_config(paths: ProjectPaths) -> GateConfig:
    """Load settings for ``paths``; a missing or corrupt file yields defaults."""
    path = paths.config_file
    if not path.exists():
        return GateConfig().apply_env()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ConfigError("config must be a JSON object")
        config = GateConfig.from_dict(data)
    except (OSError, ValueError, ConfigError) as exc:
        log_event(event="config_invalid", component="config", level="warn", path=str(path), error=str(exc))
        config = GateConfig()
    return config.apply_env()


__all__ = ["GateConfig", "load_config"]
