from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional

APP_NAME = "workstation-provisioner"


@dataclass(frozen=True)
class Paths:
    posix_log: str = f"/var/log/{APP_NAME}.log"
    log_file_name: str = "provision.log"
    cwd_log_name: str = f"{APP_NAME}.log"


PATHS = Paths()


def default_log_candidates(env: Optional[Mapping[str, str]] = None) -> List[Path]:
    """Log locations tried in order when none are configured.

    System-wide location first, then the temp dir, then the working directory.
    """

    env = os.environ if env is None else env
    out: List[Path] = []

    program_data = env.get("PROGRAMDATA")
    if program_data:
        out.append(Path(program_data) / APP_NAME / PATHS.log_file_name)
    else:
        out.append(Path(PATHS.posix_log))

    out.append(Path(tempfile.gettempdir()) / APP_NAME / PATHS.log_file_name)
    out.append(Path.cwd() / PATHS.cwd_log_name)
    return out


def expand_path(value: str) -> Path:
    """Expand ~ and environment references ($VAR, and %VAR% on Windows)."""

    return Path(os.path.expandvars(str(value))).expanduser()
