from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .errors import ConfigError
from .executor import ExecutionPolicy
from .lib.env import default_log_candidates, expand_path

ENV_PREFIX = "PROVISION_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"{key}: expected a boolean, got {value!r}")


def _as_list(key: str, value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    raise ConfigError(f"{key}: expected a list, got {value!r}")


@dataclass(frozen=True)
class ProvisionConfig:
    raw: Dict[str, Any]

    @property
    def log_paths(self) -> List[Path]:
        paths: List[Path] = []
        single = self.raw.get("log_path")
        if single:
            paths.append(expand_path(str(single)))
        paths.extend(expand_path(p) for p in _as_list("log_paths", self.raw.get("log_paths")))
        return paths or default_log_candidates()

    @property
    def catalog(self) -> Optional[str]:
        value = self.raw.get("catalog")
        return str(value) if value else None

    @property
    def skip(self) -> List[str]:
        skip = _as_list("skip", self.raw.get("skip"))
        # skip_wsl: true, skip_git: true, ...
        for key, value in self.raw.items():
            if key.startswith("skip_") and _as_bool(key, value):
                label = key[len("skip_") :]
                if label not in skip:
                    skip.append(label)
        return skip

    @property
    def only(self) -> List[str]:
        return _as_list("only", self.raw.get("only"))

    @property
    def stop_on_required_failure(self) -> bool:
        if "best_effort" in self.raw:
            return not _as_bool("best_effort", self.raw["best_effort"])
        return _as_bool("required_steps_abort", self.raw.get("required_steps_abort", True))

    @property
    def force(self) -> bool:
        return _as_bool("force", self.raw.get("force", False))

    @property
    def dry_run(self) -> bool:
        return _as_bool("dry_run", self.raw.get("dry_run", False))

    @property
    def verbose(self) -> bool:
        return _as_bool("verbose", self.raw.get("verbose", False))

    @property
    def retries(self) -> int:
        try:
            n = int(self.raw.get("retries", 0))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"retries: expected an integer, got {self.raw.get('retries')!r}") from e
        if n < 0:
            raise ConfigError("retries: must be >= 0")
        return n

    @property
    def retry_delay(self) -> float:
        try:
            d = float(self.raw.get("retry_delay", 0))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"retry_delay: expected a number, got {self.raw.get('retry_delay')!r}") from e
        if d < 0:
            raise ConfigError("retry_delay: must be >= 0")
        return d

    @property
    def report(self) -> Optional[Path]:
        value = self.raw.get("report")
        return expand_path(str(value)) if value else None

    def policy(self) -> ExecutionPolicy:
        return ExecutionPolicy(
            stop_on_required_failure=self.stop_on_required_failure,
            force=self.force,
            dry_run=self.dry_run,
            retries=self.retries,
            retry_delay_s=self.retry_delay,
        )


def load_config_file(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {path}")
    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ConfigError("Config file must be YAML")

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping/object")
    return raw


def config_from_env(env: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}

    def get(name: str) -> Optional[str]:
        value = env.get(ENV_PREFIX + name)
        return value if value not in (None, "") else None

    if get("LOG_PATH"):
        out["log_paths"] = [p for p in get("LOG_PATH").split(os.pathsep) if p]
    for name, key in [
        ("CATALOG", "catalog"),
        ("SKIP", "skip"),
        ("ONLY", "only"),
        ("BEST_EFFORT", "best_effort"),
        ("FORCE", "force"),
        ("DRY_RUN", "dry_run"),
        ("RETRIES", "retries"),
        ("REPORT", "report"),
    ]:
        if get(name) is not None:
            out[key] = get(name)
    return out


def load_config(
    path: Optional[str] = None,
    *,
    env: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> ProvisionConfig:
    """Merge config file < environment < explicit overrides (CLI flags).

    Overrides with a value of None are ignored so unset flags do not mask
    file or environment settings.
    """

    env = os.environ if env is None else env
    path = path or env.get(ENV_PREFIX + "CONFIG") or None

    raw: Dict[str, Any] = {}
    if path:
        raw.update(load_config_file(path))

    env_raw = config_from_env(env)
    if "log_paths" in env_raw:
        raw.pop("log_path", None)
    if "best_effort" in env_raw:
        raw.pop("required_steps_abort", None)
    raw.update(env_raw)

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key == "log_paths":
            raw.pop("log_path", None)
        if key == "best_effort":
            raw.pop("required_steps_abort", None)
        raw[key] = value

    cfg = ProvisionConfig(raw=raw)
    # Surface bad values now rather than mid-run.
    cfg.policy()
    _ = cfg.skip, cfg.only, cfg.report
    return cfg
