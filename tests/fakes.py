from __future__ import annotations

from typing import Callable, Dict, List, Optional

from workstation_provisioner.registry import Check, Step, StepContext


class FakePackageManager:
    def __init__(self, installed=(), fail: Optional[set] = None):
        self.installed = set(installed)
        self.fail = set(fail or ())
        self.install_calls: List[str] = []

    def is_installed(self, name: str) -> bool:
        return name in self.installed

    def install(self, name: str) -> str:
        self.install_calls.append(name)
        if name in self.fail:
            raise RuntimeError(f"cannot install {name}")
        self.installed.add(name)
        return f"installed {name}"


class FakeFeatures:
    def __init__(self, enabled=()):
        self.enabled = set(enabled)

    def is_enabled(self, feature: str) -> bool:
        return feature in self.enabled

    def enable(self, feature: str) -> str:
        self.enabled.add(feature)
        return f"enabled {feature}"


class FakeRegistry:
    def __init__(self, values: Optional[Dict] = None):
        self.values = dict(values or {})

    def get(self, key: str, name: str) -> Optional[str]:
        return self.values.get((key, name))

    def set(self, key: str, name: str, value: str, kind: str) -> None:
        self.values[(key, name)] = str(value)


def make_step(
    name: str,
    *,
    satisfied: bool = False,
    action: Optional[Callable] = None,
    required: bool = True,
    calls: Optional[List[str]] = None,
    tags=(),
) -> Step:
    """Step with a fixed precondition; records action calls into `calls`."""

    def precondition(ctx: StepContext) -> Check:
        return Check.ALREADY_SATISFIED if satisfied else Check.NEEDS_ACTION

    def run_action(ctx: StepContext) -> Optional[str]:
        if calls is not None:
            calls.append(name)
        if action is not None:
            return action(ctx)
        return None

    return Step(name=name, precondition=precondition, action=run_action, required=required, tags=frozenset(tags))


def fail(message: str = "boom") -> Callable:
    def _raise(ctx):
        raise RuntimeError(message)

    return _raise
