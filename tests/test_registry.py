from __future__ import annotations

import pytest

from tests.fakes import make_step
from workstation_provisioner.errors import DuplicateStepName
from workstation_provisioner.registry import StepRegistry, step_filter


def test_register_preserves_order() -> None:
    reg = StepRegistry([make_step("c"), make_step("a"), make_step("b")])
    assert reg.names() == ["c", "a", "b"]
    assert [s.name for s in reg.select()] == ["c", "a", "b"]
    assert len(reg) == 3
    assert "a" in reg and "z" not in reg


def test_duplicate_name_rejected() -> None:
    reg = StepRegistry([make_step("git")])
    with pytest.raises(DuplicateStepName) as exc:
        reg.register(make_step("git"))
    assert exc.value.name == "git"
    assert reg.names() == ["git"]


def test_select_filters_without_reordering() -> None:
    reg = StepRegistry([make_step(n) for n in ["one", "two", "three", "four"]])
    assert [s.name for s in reg.select(lambda s: s.name != "two")] == ["one", "three", "four"]


def test_step_filter_by_name_and_tag() -> None:
    reg = StepRegistry(
        [
            make_step("chocolatey", tags=["chocolatey"]),
            make_step("wsl-feature", tags=["wsl"]),
            make_step("python", tags=["chocolatey", "python"]),
            make_step("git", tags=["git"]),
        ]
    )

    skipped = reg.select(step_filter(skip=["wsl", "git"]))
    assert [s.name for s in skipped] == ["chocolatey", "python"]

    only = reg.select(step_filter(only=["chocolatey"]))
    assert [s.name for s in only] == ["chocolatey", "python"]

    both = reg.select(step_filter(skip=["python"], only=["chocolatey", "git"]))
    assert [s.name for s in both] == ["chocolatey", "git"]


def test_get_returns_registered_step() -> None:
    step = make_step("x")
    reg = StepRegistry([step])
    assert reg.get("x") is step
    with pytest.raises(KeyError):
        reg.get("missing")
