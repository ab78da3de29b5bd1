from __future__ import annotations

from pathlib import Path
from typing import Sequence, Tuple


class ProvisionerError(Exception):
    pass


class LoggingUnavailable(ProvisionerError):
    """No candidate log location accepted a write."""

    def __init__(self, attempts: Sequence[Tuple[Path, str]]):
        self.attempts = list(attempts)
        tried = "; ".join(f"{p}: {err}" for p, err in self.attempts) or "no candidates given"
        super().__init__(f"No writable log location ({tried})")


class DuplicateStepName(ProvisionerError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Step already registered: {name}")


class StepActionFailed(ProvisionerError):
    pass


class LogWriteFailed(ProvisionerError):
    pass


class CatalogError(ProvisionerError):
    pass


class ConfigError(ProvisionerError):
    pass
