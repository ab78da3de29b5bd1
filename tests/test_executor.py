from __future__ import annotations

import pytest

from tests.fakes import fail, make_step
from workstation_provisioner.executor import ExecutionPolicy, StepExecutor
from workstation_provisioner.registry import Check, Step
from workstation_provisioner.report import OverallStatus, StepStatus, render_summary


def test_scenario_success_with_warnings(sink, ctx) -> None:
    calls = []
    steps = [
        make_step("InstallA", calls=calls),
        make_step("InstallB", satisfied=True, calls=calls),
        make_step("InstallC", required=False, action=fail(), calls=calls),
    ]

    report = StepExecutor(sink).run(steps, ctx)

    assert report.statuses() == [StepStatus.SUCCEEDED, StepStatus.SKIPPED, StepStatus.WARNED]
    assert report.overall_status is OverallStatus.SUCCESS_WITH_WARNINGS
    assert report.exit_code == 0
    assert calls == ["InstallA", "InstallC"]


def test_scenario_required_failure_aborts(sink, ctx) -> None:
    calls = []
    steps = [
        make_step("InstallA", action=fail("no network"), calls=calls),
        make_step("InstallB", satisfied=True, calls=calls),
        make_step("InstallC", required=False, action=fail(), calls=calls),
    ]

    report = StepExecutor(sink).run(steps, ctx)

    assert report.statuses() == [StepStatus.FAILED]
    assert report.overall_status is OverallStatus.FAILED
    assert report.exit_code == 1
    assert report.not_run == ("InstallB", "InstallC")
    assert report.aborted
    assert "no network" in report.outcomes[0].message
    assert calls == ["InstallA"]


def test_best_effort_continues_after_required_failure(sink, ctx) -> None:
    steps = [make_step("a", action=fail()), make_step("b"), make_step("c", satisfied=True)]

    report = StepExecutor(sink, ExecutionPolicy(stop_on_required_failure=False)).run(steps, ctx)

    assert report.statuses() == [StepStatus.FAILED, StepStatus.SUCCEEDED, StepStatus.SKIPPED]
    assert report.overall_status is OverallStatus.FAILED
    assert report.not_run == ()


def test_one_outcome_per_selected_step(sink, ctx) -> None:
    steps = [
        make_step("s1"),
        make_step("s2", satisfied=True),
        make_step("s3", required=False, action=fail()),
        make_step("s4", satisfied=True),
        make_step("s5"),
    ]
    report = StepExecutor(sink).run(steps, ctx)
    assert [o.step_name for o in report.outcomes] == ["s1", "s2", "s3", "s4", "s5"]


def test_satisfied_precondition_never_invokes_action(sink, ctx) -> None:
    calls = []
    report = StepExecutor(sink).run([make_step("x", satisfied=True, calls=calls)], ctx)
    assert calls == []
    assert report.outcomes[0].status is StepStatus.SKIPPED
    assert report.outcomes[0].attempts == 0


def test_rerun_of_idempotent_step_is_skipped(sink, ctx) -> None:
    state = {"done": False}

    def precondition(_ctx):
        return Check.ALREADY_SATISFIED if state["done"] else Check.NEEDS_ACTION

    def action(_ctx):
        state["done"] = True
        return "configured"

    step = Step(name="configure", precondition=precondition, action=action)
    executor = StepExecutor(sink)

    first = executor.run([step], ctx)
    second = executor.run([step], ctx)

    assert first.statuses() == [StepStatus.SUCCEEDED]
    assert first.outcomes[0].message == "configured"
    assert second.statuses() == [StepStatus.SKIPPED]


def test_exceptions_are_contained_at_step_boundary(sink, ctx) -> None:
    class Weird(Exception):
        pass

    def bad_action(_ctx):
        raise Weird()

    def bad_check(_ctx):
        raise KeyError("registry")

    steps = [
        make_step("optional-action", required=False, action=bad_action),
        Step(name="optional-check", precondition=bad_check, action=lambda _c: None, required=False),
        make_step("last"),
    ]
    report = StepExecutor(sink).run(steps, ctx)

    assert report.statuses() == [StepStatus.WARNED, StepStatus.WARNED, StepStatus.SUCCEEDED]
    assert report.outcomes[0].message == "Weird"
    assert "precondition check failed" in report.outcomes[1].message


def test_force_bypasses_precondition(sink, ctx) -> None:
    calls = []
    report = StepExecutor(sink, ExecutionPolicy(force=True)).run(
        [make_step("x", satisfied=True, calls=calls)], ctx
    )
    assert calls == ["x"]
    assert report.statuses() == [StepStatus.SUCCEEDED]


def test_dry_run_never_invokes_actions(sink, ctx) -> None:
    calls = []
    steps = [make_step("todo", calls=calls), make_step("done", satisfied=True, calls=calls)]
    report = StepExecutor(sink, ExecutionPolicy(dry_run=True)).run(steps, ctx)

    assert calls == []
    assert report.statuses() == [StepStatus.SKIPPED, StepStatus.SKIPPED]
    assert report.outcomes[0].message.startswith("dry run")
    assert report.outcomes[1].message == "already satisfied"


def test_retries_reinvoke_action_until_success(sink, ctx) -> None:
    attempts = {"n": 0}
    sleeps = []

    def flaky(_ctx):
        attempts["n"] += 1
        if attempts["n"] < 3:
            raise RuntimeError("transient")
        return "ok"

    executor = StepExecutor(sink, ExecutionPolicy(retries=2, retry_delay_s=1.5), sleep=sleeps.append)
    report = executor.run([make_step("flaky", action=flaky)], ctx)

    assert report.statuses() == [StepStatus.SUCCEEDED]
    assert report.outcomes[0].attempts == 3
    assert sleeps == [1.5, 1.5]


def test_retries_exhausted_records_failure(sink, ctx) -> None:
    calls = []
    executor = StepExecutor(sink, ExecutionPolicy(retries=1), sleep=lambda _s: None)
    report = executor.run([make_step("x", action=fail("still broken"), calls=calls)], ctx)

    assert calls == ["x", "x"]
    assert report.outcomes[0].status is StepStatus.FAILED
    assert report.outcomes[0].attempts == 2


def test_transitions_are_logged_as_they_happen(sink, ctx) -> None:
    seen = []

    def action(_ctx):
        # The start line must already be on disk while the action runs.
        seen.append(sink.active_path.read_text(encoding="utf-8"))

    StepExecutor(sink).run([make_step("visible", action=action)], ctx)

    assert "visible: starting" in seen[0]
    text = sink.active_path.read_text(encoding="utf-8")
    assert "[SUCCESS] visible: completed" in text


def test_duration_uses_clock(sink, ctx) -> None:
    ticks = iter([10.0, 12.5])
    report = StepExecutor(sink, clock=lambda: next(ticks)).run([make_step("timed")], ctx)
    assert report.outcomes[0].duration == 2.5


def test_empty_step_list(sink, ctx) -> None:
    report = StepExecutor(sink).run([], ctx)
    assert report.outcomes == ()
    assert report.overall_status is OverallStatus.SUCCESS
    assert report.log_path == sink.active_path


@pytest.mark.parametrize("detail, message", [(True, "True"), (3010, "3010"), ("", "completed"), (0, "completed")])
def test_action_result_is_recorded_as_text(sink, ctx, detail, message) -> None:
    report = StepExecutor(sink).run([make_step("x", action=lambda _c: detail)], ctx)

    assert report.outcomes[0].message == message
    assert render_summary(report)[2].split()[-1] == message


def test_precondition_must_return_check(sink, ctx) -> None:
    calls = []

    def action(_ctx):
        calls.append("ran")

    steps = [
        Step(name="optional", precondition=lambda _c: True, action=action, required=False),
        Step(name="required", precondition=lambda _c: None, action=action),
    ]
    report = StepExecutor(sink).run(steps, ctx)

    assert report.statuses() == [StepStatus.WARNED, StepStatus.FAILED]
    assert "precondition returned True" in report.outcomes[0].message
    assert calls == []


def test_keyboard_interrupt_propagates(sink, ctx) -> None:
    calls = []

    def interrupt(_ctx):
        raise KeyboardInterrupt

    steps = [make_step("a", action=interrupt), make_step("b", calls=calls)]

    with pytest.raises(KeyboardInterrupt):
        StepExecutor(sink).run(steps, ctx)
    assert calls == []
