from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .actions import CommandRun, FeatureToggle, FileWrite, PackageInstall, RegistryEdit, step_for
from .errors import CatalogError
from .registry import Step, StepRegistry

logger = logging.getLogger(__name__)

DEFAULT_CATALOG = "workstation.yaml"


def _manifest_dir() -> Path:
    return Path(__file__).resolve().parent / "manifests"


def default_catalog_path() -> Path:
    return _manifest_dir() / DEFAULT_CATALOG


def load_catalog_data(path: Optional[str] = None) -> Dict[str, Any]:
    """Load a step catalog; None means the bundled workstation catalog."""

    p = Path(path) if path else default_catalog_path()
    if not p.exists():
        raise CatalogError(f"Catalog not found: {p}")
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise CatalogError(f"Invalid YAML in catalog {p}: {e}") from e
    if not isinstance(data, dict):
        raise CatalogError(f"Catalog must be a mapping/dict: {p}")
    return data


def _field(entry: Mapping[str, Any], key: str, where: str) -> str:
    value = entry.get(key)
    if value is None or str(value).strip() == "":
        raise CatalogError(f"{where}: missing '{key}'")
    return str(value)


def _build_action(entry: Mapping[str, Any], where: str):
    kind = _field(entry, "kind", where).lower()
    if kind == "package":
        return PackageInstall(manager=_field(entry, "manager", where), package=_field(entry, "package", where))
    if kind == "feature":
        return FeatureToggle(feature=_field(entry, "feature", where))
    if kind == "file":
        content = entry.get("content")
        if not isinstance(content, str):
            raise CatalogError(f"{where}: 'content' must be a string")
        return FileWrite(path=_field(entry, "path", where), content=content)
    if kind == "registry":
        if "value" not in entry:
            raise CatalogError(f"{where}: missing 'value'")
        return RegistryEdit(
            key=_field(entry, "key", where),
            value_name=_field(entry, "value_name", where),
            value=str(entry["value"]),
            kind=str(entry.get("type") or "REG_DWORD").upper(),
        )
    if kind == "command":
        argv = entry.get("argv")
        if not isinstance(argv, list) or not argv:
            raise CatalogError(f"{where}: 'argv' must be a non-empty list")
        return CommandRun(
            argv=tuple(str(a) for a in argv),
            creates=entry.get("creates"),
            creates_path=entry.get("creates_path"),
        )
    raise CatalogError(f"{where}: unknown kind '{kind}'")


def step_from_entry(entry: Any, index: int) -> Step:
    if not isinstance(entry, dict):
        raise CatalogError(f"steps[{index}]: entry must be a mapping")
    where = f"steps[{index}]"
    name = _field(entry, "name", where)
    where = f"step '{name}'"

    tags = entry.get("tags") or []
    if isinstance(tags, str):
        tags = [tags]
    if not isinstance(tags, list):
        raise CatalogError(f"{where}: 'tags' must be a list")

    required = entry.get("required", True)
    if not isinstance(required, bool):
        raise CatalogError(f"{where}: 'required' must be true or false")

    return step_for(
        name,
        _build_action(entry, where),
        required=required,
        tags=[str(t) for t in tags],
        description=str(entry.get("description") or ""),
    )


def build_registry(data: Mapping[str, Any]) -> StepRegistry:
    """Build a registry in catalog order.

    Raises CatalogError for malformed entries and DuplicateStepName when two
    entries share a name.
    """

    entries = data.get("steps")
    if not isinstance(entries, list):
        raise CatalogError("Catalog 'steps' must be a list")

    steps: List[Step] = [step_from_entry(e, i) for i, e in enumerate(entries)]
    registry = StepRegistry(steps)
    logger.debug("Loaded %d step(s) from catalog", len(registry))
    return registry


def load_registry(path: Optional[str] = None) -> StepRegistry:
    return build_registry(load_catalog_data(path))
