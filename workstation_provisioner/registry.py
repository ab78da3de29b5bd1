from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional

from .errors import DuplicateStepName
from .logging_utils import LogSink

logger = logging.getLogger(__name__)


class Check(Enum):
    ALREADY_SATISFIED = "already_satisfied"
    NEEDS_ACTION = "needs_action"


@dataclass
class StepContext:
    """Everything a step may touch during a run.

    The sink is the run's only log destination; collaborators are looked up by
    the action functions (see actions.py) and can be swapped for fakes.
    """

    sink: LogSink
    package_managers: Mapping[str, object] = field(default_factory=dict)
    features: Optional[object] = None
    registry: Optional[object] = None


Precondition = Callable[[StepContext], Check]
Action = Callable[[StepContext], Optional[str]]


@dataclass(frozen=True)
class Step:
    name: str
    precondition: Precondition
    action: Action
    required: bool = True
    tags: FrozenSet[str] = frozenset()
    description: str = ""

    def matches(self, labels: Iterable[str]) -> bool:
        wanted = set(labels)
        return self.name in wanted or bool(self.tags & wanted)


class StepRegistry:
    """Ordered, name-unique collection of steps.

    Order is registration order and is never changed; later steps may rely on
    earlier ones having run.
    """

    def __init__(self, steps: Iterable[Step] = ()) -> None:
        self._steps: List[Step] = []
        self._by_name: Dict[str, Step] = {}
        for step in steps:
            self.register(step)

    def register(self, step: Step) -> Step:
        if step.name in self._by_name:
            raise DuplicateStepName(step.name)
        self._steps.append(step)
        self._by_name[step.name] = step
        logger.debug("Registered step %s", step.name)
        return step

    def select(self, predicate: Optional[Callable[[Step], bool]] = None) -> List[Step]:
        if predicate is None:
            return list(self._steps)
        return [s for s in self._steps if predicate(s)]

    def get(self, name: str) -> Step:
        return self._by_name[name]

    def names(self) -> List[str]:
        return [s.name for s in self._steps]

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[Step]:
        return iter(list(self._steps))

    def __contains__(self, name: object) -> bool:
        return name in self._by_name


def step_filter(skip: Iterable[str] = (), only: Iterable[str] = ()) -> Callable[[Step], bool]:
    """Build a selection predicate from skip/only labels (step names or tags)."""

    skip_set = {s for s in skip if s}
    only_set = {s for s in only if s}

    def predicate(step: Step) -> bool:
        if skip_set and step.matches(skip_set):
            return False
        if only_set and not step.matches(only_set):
            return False
        return True

    return predicate
