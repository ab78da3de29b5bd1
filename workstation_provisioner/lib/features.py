from __future__ import annotations

import logging
import re
from typing import Protocol

from .command import run_cmd

logger = logging.getLogger(__name__)

# DISM exit code for "succeeded, restart required".
ERROR_SUCCESS_REBOOT_REQUIRED = 3010

_STATE_RE = re.compile(r"^\s*State\s*:\s*(\S+)", re.MULTILINE)


class FeatureToggler(Protocol):
    def is_enabled(self, feature: str) -> bool:
        ...

    def enable(self, feature: str) -> str:
        ...


class DismFeatures:
    executable = "dism.exe"

    def is_enabled(self, feature: str) -> bool:
        r = run_cmd(
            [self.executable, "/Online", "/English", "/Get-FeatureInfo", f"/FeatureName:{feature}"],
            check=False,
        )
        if not r.ok:
            return False
        m = _STATE_RE.search(r.stdout)
        # "Enable Pending" counts: the feature is on after the next reboot.
        return bool(m) and m.group(1).lower() in {"enabled", "enablepending"}

    def enable(self, feature: str) -> str:
        r = run_cmd(
            [self.executable, "/Online", "/Enable-Feature", f"/FeatureName:{feature}", "/All", "/NoRestart"],
            ok_codes=(0, ERROR_SUCCESS_REBOOT_REQUIRED),
        )
        if r.returncode == ERROR_SUCCESS_REBOOT_REQUIRED:
            logger.warning("Feature %s enabled; a restart is required", feature)
            return f"enabled {feature} (restart required)"
        return f"enabled {feature}"
