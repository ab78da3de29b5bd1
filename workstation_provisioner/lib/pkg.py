from __future__ import annotations

import logging
from typing import Dict, Protocol

from .command import run_cmd

logger = logging.getLogger(__name__)


class PackageManager(Protocol):
    def is_installed(self, name: str) -> bool:
        ...

    def install(self, name: str) -> str:
        ...


class Chocolatey:
    executable = "choco"

    def is_installed(self, name: str) -> bool:
        """Return True if choco lists the package locally.

        --limit-output prints one "name|version" line per match.
        """
        r = run_cmd([self.executable, "list", "--exact", name, "--limit-output"], check=False)
        if not r.ok:
            return False
        wanted = name.lower()
        for line in r.stdout.splitlines():
            if line.split("|", 1)[0].strip().lower() == wanted:
                return True
        return False

    def install(self, name: str) -> str:
        run_cmd([self.executable, "install", name, "-y", "--no-progress"])
        return f"installed {name}"


class Winget:
    executable = "winget"

    def is_installed(self, name: str) -> bool:
        r = run_cmd(
            [self.executable, "list", "--id", name, "--exact", "--accept-source-agreements"],
            check=False,
        )
        return r.ok and name.lower() in r.stdout.lower()

    def install(self, name: str) -> str:
        run_cmd(
            [
                self.executable,
                "install",
                "--id",
                name,
                "--exact",
                "--silent",
                "--accept-package-agreements",
                "--accept-source-agreements",
            ]
        )
        return f"installed {name}"


def default_package_managers() -> Dict[str, PackageManager]:
    return {"choco": Chocolatey(), "chocolatey": Chocolatey(), "winget": Winget()}
