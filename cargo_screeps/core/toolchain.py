"""
Toolchain — the `cargo web` compiler step.

``CargoWebCompiler`` runs ``cargo web check`` / ``cargo web build`` inside
the project root.  Output is inherited so the user sees cargo's progress.
There is no timeout: a hung cargo blocks the pipeline.
"""
from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Protocol, Sequence

from cargo_screeps.errors import ToolchainInvocationError

logger = logging.getLogger(__name__)


class Compiler(Protocol):
    def check(self, root: Path) -> None:
        ...

    def build(self, root: Path) -> None:
        ...


class CargoWebCompiler:
    """Invokes ``cargo web`` for the configured target triple."""

    def __init__(self, cargo: str = "cargo", target_triple: str = "wasm32-unknown-unknown"):
        self.cargo = cargo
        self.target_triple = target_triple

    def check_command(self) -> List[str]:
        return [self.cargo, "web", "check", f"--target={self.target_triple}"]

    def build_command(self) -> List[str]:
        return [self.cargo, "web", "build", f"--target={self.target_triple}", "--release"]

    def _run(self, cmd: Sequence[str], root: Path) -> None:
        logger.debug("running %s in %s", " ".join(cmd), root)
        try:
            result = subprocess.run(list(cmd), cwd=str(root))
        except FileNotFoundError as e:
            raise ToolchainInvocationError(cmd, f"{cmd[0]} not found in PATH") from e
        except OSError as e:
            raise ToolchainInvocationError(cmd, str(e)) from e

        if result.returncode != 0:
            raise ToolchainInvocationError(cmd, f"exit code {result.returncode}")
        logger.debug("finished executing %s", " ".join(cmd[:3]))

    def check(self, root: Path) -> None:
        self._run(self.check_command(), root)

    def build(self, root: Path) -> None:
        self._run(self.build_command(), root)
