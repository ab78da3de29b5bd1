"""Typed provisioning actions.

Each action kind is a small frozen dataclass. `check_action` and
`perform_action` dispatch on the type, so a catalog entry becomes a Step
without any string comparisons at run time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import singledispatch
from typing import Iterable, Optional, Tuple

from .errors import StepActionFailed
from .lib.command import command_exists, run_cmd
from .lib.env import expand_path
from .lib.regedit import values_equal
from .registry import Check, Step, StepContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackageInstall:
    manager: str
    package: str


@dataclass(frozen=True)
class FeatureToggle:
    feature: str


@dataclass(frozen=True)
class FileWrite:
    path: str
    content: str


@dataclass(frozen=True)
class RegistryEdit:
    key: str
    value_name: str
    value: str
    kind: str = "REG_DWORD"


@dataclass(frozen=True)
class CommandRun:
    argv: Tuple[str, ...]
    creates: Optional[str] = None
    creates_path: Optional[str] = None


def _package_manager(ctx: StepContext, name: str):
    pm = ctx.package_managers.get(name)
    if pm is None:
        raise StepActionFailed(f"Unknown package manager: {name}")
    return pm


def _require(obj, what: str):
    if obj is None:
        raise StepActionFailed(f"No {what} available in this run")
    return obj


@singledispatch
def check_action(action, ctx: StepContext) -> Check:
    raise TypeError(f"Unsupported action type: {type(action).__name__}")


@singledispatch
def perform_action(action, ctx: StepContext) -> Optional[str]:
    raise TypeError(f"Unsupported action type: {type(action).__name__}")


@check_action.register
def _(action: PackageInstall, ctx: StepContext) -> Check:
    if _package_manager(ctx, action.manager).is_installed(action.package):
        return Check.ALREADY_SATISFIED
    return Check.NEEDS_ACTION


@perform_action.register
def _(action: PackageInstall, ctx: StepContext) -> Optional[str]:
    return _package_manager(ctx, action.manager).install(action.package)


@check_action.register
def _(action: FeatureToggle, ctx: StepContext) -> Check:
    if _require(ctx.features, "feature toggler").is_enabled(action.feature):
        return Check.ALREADY_SATISFIED
    return Check.NEEDS_ACTION


@perform_action.register
def _(action: FeatureToggle, ctx: StepContext) -> Optional[str]:
    return _require(ctx.features, "feature toggler").enable(action.feature)


@check_action.register
def _(action: FileWrite, ctx: StepContext) -> Check:
    p = expand_path(action.path)
    if p.is_file() and p.read_bytes() == action.content.encode("utf-8"):
        return Check.ALREADY_SATISFIED
    return Check.NEEDS_ACTION


@perform_action.register
def _(action: FileWrite, ctx: StepContext) -> Optional[str]:
    p = expand_path(action.path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(action.content, encoding="utf-8")
    return f"wrote {p}"


@check_action.register
def _(action: RegistryEdit, ctx: StepContext) -> Check:
    current = _require(ctx.registry, "registry editor").get(action.key, action.value_name)
    if values_equal(current, action.value, action.kind):
        return Check.ALREADY_SATISFIED
    return Check.NEEDS_ACTION


@perform_action.register
def _(action: RegistryEdit, ctx: StepContext) -> Optional[str]:
    _require(ctx.registry, "registry editor").set(action.key, action.value_name, action.value, action.kind)
    return f"set {action.key}\\{action.value_name}={action.value}"


@check_action.register
def _(action: CommandRun, ctx: StepContext) -> Check:
    if action.creates and command_exists(action.creates):
        return Check.ALREADY_SATISFIED
    if action.creates_path and expand_path(action.creates_path).exists():
        return Check.ALREADY_SATISFIED
    # No marker configured (or not present yet): run it.
    return Check.NEEDS_ACTION


@perform_action.register
def _(action: CommandRun, ctx: StepContext) -> Optional[str]:
    r = run_cmd(action.argv)
    return f"exit {r.returncode}"


def step_for(
    name: str,
    action,
    *,
    required: bool = True,
    tags: Iterable[str] = (),
    description: str = "",
) -> Step:
    """Bind an action value to a Step using the dispatching check/perform."""

    return Step(
        name=name,
        precondition=lambda ctx: check_action(action, ctx),
        action=lambda ctx: perform_action(action, ctx),
        required=required,
        tags=frozenset(tags),
        description=description or describe(action),
    )


def describe(action) -> str:
    if isinstance(action, PackageInstall):
        return f"install {action.package} via {action.manager}"
    if isinstance(action, FeatureToggle):
        return f"enable OS feature {action.feature}"
    if isinstance(action, FileWrite):
        return f"write {action.path}"
    if isinstance(action, RegistryEdit):
        return f"set registry {action.key}\\{action.value_name}"
    if isinstance(action, CommandRun):
        return "run " + " ".join(action.argv)
    return type(action).__name__
