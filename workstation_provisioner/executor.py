from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence, Tuple

from .logging_utils import LogSink
from .registry import Check, Step, StepContext
from .report import ReportBuilder, RunReport, StepOutcome, StepStatus


@dataclass(frozen=True)
class ExecutionPolicy:
    stop_on_required_failure: bool = True
    force: bool = False
    dry_run: bool = False
    retries: int = 0
    retry_delay_s: float = 0.0


def _now() -> datetime:
    return datetime.now().astimezone()


def _error_text(e: BaseException) -> str:
    text = str(e).strip()
    return f"{type(e).__name__}: {text}" if text else type(e).__name__


class StepExecutor:
    """Run steps strictly in order, one outcome per executed step.

    Any Exception raised by a step's precondition or action is contained at
    the step boundary. Only a failed required step can stop the run, and only
    when policy.stop_on_required_failure is set.
    """

    def __init__(
        self,
        sink: LogSink,
        policy: Optional[ExecutionPolicy] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.sink = sink
        self.policy = policy or ExecutionPolicy()
        self._clock = clock
        self._sleep = sleep

    def run(self, steps: Sequence[Step], ctx: StepContext) -> RunReport:
        steps = list(steps)
        builder = ReportBuilder(started_at=_now())
        not_run: Tuple[str, ...] = ()

        mode = []
        if self.policy.dry_run:
            mode.append("dry run")
        if self.policy.force:
            mode.append("force")
        if not self.policy.stop_on_required_failure:
            mode.append("best effort")
        self.sink.info(f"Running {len(steps)} step(s)" + (f" [{', '.join(mode)}]" if mode else ""))

        for i, step in enumerate(steps, start=1):
            self.sink.info(f"[{i}/{len(steps)}] {step.name}: starting")
            outcome = builder.record(self._run_step(step, ctx))

            if outcome.status is StepStatus.FAILED and self.policy.stop_on_required_failure:
                not_run = tuple(s.name for s in steps[i:])
                if not_run:
                    self.sink.error(
                        f"Aborting: required step {step.name} failed; not running {', '.join(not_run)}"
                    )
                break

        return builder.finalize(_now(), not_run=not_run, log_path=self.sink.active_path)

    def _run_step(self, step: Step, ctx: StepContext) -> StepOutcome:
        timestamp = _now()
        t0 = self._clock()

        def outcome(status: StepStatus, message: str, attempts: int = 0) -> StepOutcome:
            return StepOutcome(
                step_name=step.name,
                status=status,
                message=message,
                timestamp=timestamp,
                duration=max(0.0, self._clock() - t0),
                attempts=attempts,
            )

        if not self.policy.force:
            try:
                check = step.precondition(ctx)
            except Exception as e:
                return self._failure(step, outcome, f"precondition check failed: {_error_text(e)}", 0)

            if not isinstance(check, Check):
                return self._failure(step, outcome, f"precondition returned {check!r}, expected a Check", 0)
            if check is Check.ALREADY_SATISFIED:
                self.sink.info(f"{step.name}: already satisfied, skipping")
                return outcome(StepStatus.SKIPPED, "already satisfied")

        if self.policy.dry_run:
            self.sink.info(f"{step.name}: dry run, action not invoked")
            return outcome(StepStatus.SKIPPED, "dry run: action would run")

        attempts = 0
        max_attempts = 1 + max(0, self.policy.retries)
        while True:
            attempts += 1
            try:
                detail = step.action(ctx)
            except Exception as e:
                err = _error_text(e)
                if attempts < max_attempts:
                    self.sink.warning(f"{step.name}: attempt {attempts}/{max_attempts} failed ({err}); retrying")
                    if self.policy.retry_delay_s > 0:
                        self._sleep(self.policy.retry_delay_s)
                    continue
                return self._failure(step, outcome, err, attempts)

            message = str(detail) if detail else "completed"
            self.sink.success(f"{step.name}: {message}")
            return outcome(StepStatus.SUCCEEDED, message, attempts)

    def _failure(self, step: Step, outcome, message: str, attempts: int) -> StepOutcome:
        if step.required:
            self.sink.error(f"{step.name}: failed ({message})")
            return outcome(StepStatus.FAILED, message, attempts)
        self.sink.warning(f"{step.name}: failed, continuing (optional step) ({message})")
        return outcome(StepStatus.WARNED, message, attempts)
