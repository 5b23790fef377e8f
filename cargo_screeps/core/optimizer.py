"""
Optimizer — binaryen pass over the compiled wasm module.

The codegen profile is an explicit argument of every call; nothing is
stored between calls, so optimizations never depend on call ordering.

``WasmOptOptimizer`` shells out to binaryen's ``wasm-opt``.  Any other
object with a matching ``optimize`` method can stand in (tests use fakes).
"""
from __future__ import annotations

import logging
import subprocess
import tempfile
from pathlib import Path
from typing import List, Protocol

from cargo_screeps.core.config_loader import OptimizerProfile
from cargo_screeps.errors import OptimizerError, OptimizerParseError, OptimizerUnavailable

logger = logging.getLogger(__name__)

WASM_MAGIC = b"\x00asm"
WASM_VERSION = b"\x01\x00\x00\x00"


class Optimizer(Protocol):
    def optimize(self, data: bytes, profile: OptimizerProfile) -> bytes:
        """Return optimized module bytes or raise OptimizerError."""
        ...


def check_module_header(data: bytes) -> None:
    """Reject anything that is not a version-1 binary wasm module."""
    if data[:4] != WASM_MAGIC:
        raise OptimizerParseError(
            "binaryen found WASM module created by 'cargo-web' to be invalid "
            "(missing \\0asm magic)"
        )
    if data[4:8] != WASM_VERSION:
        raise OptimizerParseError(
            f"binaryen found WASM module created by 'cargo-web' to be invalid "
            f"(unsupported version {data[4:8].hex() or 'missing'})"
        )


def profile_arguments(profile: OptimizerProfile) -> List[str]:
    """
    wasm-opt flags for *profile*.

    The pass flag resets the levels it was given, so the explicit level
    flags must follow it.
    """
    if profile.shrink_level == 0:
        pass_flag = f"-O{profile.optimization_level}"
    else:
        pass_flag = "-Os" if profile.shrink_level == 1 else "-Oz"
    args = [
        pass_flag,
        f"--optimize-level={profile.optimization_level}",
        f"--shrink-level={profile.shrink_level}",
    ]
    if profile.debug_info:
        args.append("--debuginfo")
    return args


class WasmOptOptimizer:
    """Runs ``wasm-opt`` on a temporary copy of the module."""

    def __init__(self, executable: str = "wasm-opt"):
        self.executable = executable

    def optimize(self, data: bytes, profile: OptimizerProfile) -> bytes:
        logger.info("optimizing...")
        logger.debug("running binaryen with codegen config %r", profile)

        check_module_header(data)

        with tempfile.TemporaryDirectory(prefix="cargo_screeps_") as tmp:
            input_path = Path(tmp) / "input.wasm"
            output_path = Path(tmp) / "output.wasm"
            input_path.write_bytes(data)

            cmd = [self.executable, str(input_path), "-o", str(output_path)]
            cmd.extend(profile_arguments(profile))
            logger.debug("running %s", " ".join(cmd))

            try:
                result = subprocess.run(cmd, capture_output=True, text=True, errors="replace")
            except FileNotFoundError as e:
                raise OptimizerUnavailable(f"{self.executable} not found in PATH") from e
            except OSError as e:
                raise OptimizerUnavailable(f"could not start {self.executable}: {e}") from e

            if result.returncode != 0:
                stderr = result.stderr.strip() or "no output"
                raise OptimizerParseError(
                    f"binaryen rejected the WASM module created by 'cargo-web' "
                    f"(exit code {result.returncode}): {stderr}"
                )
            if not output_path.is_file():
                raise OptimizerError(f"{self.executable} completed but wrote no output")

            optimized = output_path.read_bytes()

        logger.info("optimized.")
        logger.debug("module size %d -> %d bytes", len(data), len(optimized))
        return optimized
