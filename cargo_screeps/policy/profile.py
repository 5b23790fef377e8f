"""
Profile — pipeline constants and tunables.

Everything the core treats as a fixed fact about the toolchain or the
target platform lives here, so the extraction and transformation code
carries no opinions of its own.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


CANONICAL_HOSTNAME = "screeps.com"


@dataclass(frozen=True)
class PipelineProfile:
    """Describes the toolchain output shape and the target host's quirks."""

    # Identity
    profile_id: str

    # Artifact classification (lower-case extensions, no dot)
    binary_extension: str = "wasm"
    script_extension: str = "js"

    # Host rewrites: calls the Screeps runtime lacks -> header-provided stand-ins
    call_rewrites: Tuple[Tuple[str, str], ...] = (("console.error", "console_error"),)

    # Module names must use the same alphabet the scaffold placeholder matches
    module_name_pattern: str = r"[A-Za-z0-9_-]+"

    # Hooks an initialization header must reference for the output to work
    required_header_hooks: Tuple[str, ...] = (
        "wasm_fetch_module_bytes",
        "wasm_create_stdweb_vars",
    )

    @classmethod
    def v1(cls) -> PipelineProfile:
        """cargo-web + Screeps main server."""
        return cls(profile_id="cargo-web-screeps-v1")
