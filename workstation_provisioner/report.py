from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple


class StepStatus(Enum):
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    WARNED = "warned"
    FAILED = "failed"


class OverallStatus(Enum):
    SUCCESS = "success"
    SUCCESS_WITH_WARNINGS = "success_with_warnings"
    FAILED = "failed"


EXIT_CODES = {
    OverallStatus.SUCCESS: 0,
    # Warnings are non-fatal.
    OverallStatus.SUCCESS_WITH_WARNINGS: 0,
    OverallStatus.FAILED: 1,
}

STATUS_LINES = {
    OverallStatus.SUCCESS: "Provisioning completed successfully",
    OverallStatus.SUCCESS_WITH_WARNINGS: "Provisioning completed with warnings",
    OverallStatus.FAILED: "Provisioning failed",
}


@dataclass(frozen=True)
class StepOutcome:
    step_name: str
    status: StepStatus
    message: str
    timestamp: datetime
    duration: float
    attempts: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step_name,
            "status": self.status.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "duration": round(self.duration, 3),
            "attempts": self.attempts,
        }


def overall_status(outcomes: Iterable[StepOutcome]) -> OverallStatus:
    statuses = {o.status for o in outcomes}
    if StepStatus.FAILED in statuses:
        return OverallStatus.FAILED
    if StepStatus.WARNED in statuses:
        return OverallStatus.SUCCESS_WITH_WARNINGS
    return OverallStatus.SUCCESS


@dataclass(frozen=True)
class RunReport:
    outcomes: Tuple[StepOutcome, ...]
    started_at: datetime
    finished_at: datetime
    overall_status: OverallStatus
    not_run: Tuple[str, ...] = ()
    log_path: Optional[Path] = None

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.overall_status]

    @property
    def aborted(self) -> bool:
        return bool(self.not_run)

    def statuses(self) -> List[StepStatus]:
        return [o.status for o in self.outcomes]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "overall_status": self.overall_status.value,
            "exit_code": self.exit_code,
            "log_path": str(self.log_path) if self.log_path else None,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "not_run": list(self.not_run),
        }


def finalize(
    outcomes: Sequence[StepOutcome],
    *,
    started_at: datetime,
    finished_at: datetime,
    not_run: Iterable[str] = (),
    log_path: Optional[Path] = None,
) -> RunReport:
    outcomes = tuple(outcomes)
    return RunReport(
        outcomes=outcomes,
        started_at=started_at,
        finished_at=finished_at,
        overall_status=overall_status(outcomes),
        not_run=tuple(not_run),
        log_path=log_path,
    )


class ReportBuilder:
    """Accumulates outcomes during a run; finalize() may be called once."""

    def __init__(self, started_at: datetime) -> None:
        self.started_at = started_at
        self._outcomes: List[StepOutcome] = []
        self._report: Optional[RunReport] = None

    @property
    def outcomes(self) -> Tuple[StepOutcome, ...]:
        return tuple(self._outcomes)

    def record(self, outcome: StepOutcome) -> StepOutcome:
        if self._report is not None:
            raise RuntimeError("Report already finalized")
        self._outcomes.append(outcome)
        return outcome

    def finalize(
        self,
        finished_at: datetime,
        *,
        not_run: Iterable[str] = (),
        log_path: Optional[Path] = None,
    ) -> RunReport:
        if self._report is not None:
            raise RuntimeError("Report already finalized")
        self._report = finalize(
            self._outcomes,
            started_at=self.started_at,
            finished_at=finished_at,
            not_run=not_run,
            log_path=log_path,
        )
        return self._report


def _truncate(text: str, width: int) -> str:
    text = " ".join(text.split())
    if len(text) <= width:
        return text
    return text[: width - 3] + "..."


def render_summary(report: RunReport, *, message_width: int = 60) -> List[str]:
    """Per-step table followed by one aggregate status line."""

    rows = [
        (o.step_name, o.status.value.upper(), f"{o.duration:.1f}s", _truncate(o.message, message_width))
        for o in report.outcomes
    ]
    header = ("STEP", "STATUS", "TIME", "MESSAGE")
    widths = [max([len(header[i])] + [len(r[i]) for r in rows]) for i in range(3)]

    def fmt(row: Sequence[str]) -> str:
        return "  ".join(row[i].ljust(widths[i]) for i in range(3)) + "  " + row[3]

    lines = [fmt(header), "  ".join("-" * w for w in widths) + "  " + "-" * len(header[3])]
    lines.extend(fmt(r) for r in rows)
    if report.aborted:
        lines.append(f"Not run (aborted): {', '.join(report.not_run)}")

    elapsed = (report.finished_at - report.started_at).total_seconds()
    counts = {s: 0 for s in StepStatus}
    for o in report.outcomes:
        counts[o.status] += 1
    tally = ", ".join(f"{counts[s]} {s.value}" for s in StepStatus)
    lines.append(f"{STATUS_LINES[report.overall_status]} ({tally}; {elapsed:.1f}s)")
    return [line.rstrip() for line in lines]
