from __future__ import annotations

import logging
from typing import Optional, Protocol

from .command import run_cmd

logger = logging.getLogger(__name__)

NUMERIC_KINDS = {"REG_DWORD", "REG_QWORD"}


class RegistryEditor(Protocol):
    def get(self, key: str, name: str) -> Optional[str]:
        ...

    def set(self, key: str, name: str, value: str, kind: str) -> None:
        ...


def parse_reg_query(stdout: str, name: str) -> Optional[str]:
    """Extract a value from `reg query <key> /v <name>` output.

    Value lines look like: "    LongPathsEnabled    REG_DWORD    0x1".
    """
    for line in stdout.splitlines():
        parts = line.strip().split(None, 2)
        if len(parts) >= 2 and parts[0].lower() == name.lower() and parts[1].startswith("REG_"):
            return parts[2] if len(parts) == 3 else ""
    return None


def values_equal(current: Optional[str], desired: object, kind: str) -> bool:
    if current is None:
        return False
    if kind.upper() in NUMERIC_KINDS:
        try:
            return int(str(current), 0) == int(str(desired), 0)
        except ValueError:
            return False
    return str(current) == str(desired)


class RegCommand:
    executable = "reg"

    def get(self, key: str, name: str) -> Optional[str]:
        r = run_cmd([self.executable, "query", key, "/v", name], check=False)
        if not r.ok:
            return None
        return parse_reg_query(r.stdout, name)

    def set(self, key: str, name: str, value: str, kind: str) -> None:
        run_cmd([self.executable, "add", key, "/v", name, "/t", kind.upper(), "/d", str(value), "/f"])
