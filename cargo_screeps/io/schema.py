"""
Schema — Pydantic models at the file boundaries.

Inputs:
  screeps.toml        — FileConfiguration (validated, then resolved into
                        the frozen dataclasses of core/config_loader.py).

Outputs:
  BuildReport         — what a build did, returned by the runner.
  UploadPayload       — target/upload_payload.json for the upload transport.
"""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr

from cargo_screeps import PACKAGE_NAME, SCHEMA_VERSION, __version__
from cargo_screeps.policy.profile import CANONICAL_HOSTNAME


# ── screeps.toml ─────────────────────────────────────────────────────────────

class OptimizerSection(BaseModel):
    """``[build.optimizer]``: binaryen codegen profile."""
    model_config = ConfigDict(extra="forbid")

    shrink_level: StrictInt = Field(default=1, ge=0, le=2)
    optimization_level: StrictInt = Field(default=2, ge=0, le=4)
    debug_info: StrictBool = False


class BuildSection(BaseModel):
    """``[build]``: output names and optional initialization header."""
    model_config = ConfigDict(extra="forbid")

    output_wasm_file: Path = Path("compiled.wasm")
    output_js_file: Path = Path("main.js")
    initialization_header_file: Optional[Path] = None
    optimizer: OptimizerSection = Field(default_factory=OptimizerSection)


class FileConfiguration(BaseModel):
    """
    Top level of screeps.toml.  ``ssl``/``port`` stay None when absent.

    Scalars are strict: ``ssl = "no"`` or ``port = "8080"`` is a type error.
    """

    username: StrictStr
    password: StrictStr
    branch: StrictStr = "default"
    hostname: StrictStr = CANONICAL_HOSTNAME
    ssl: Optional[StrictBool] = None
    port: Optional[StrictInt] = Field(default=None, ge=1, le=65535)
    ptr: StrictBool = False
    build: BuildSection = Field(default_factory=BuildSection)


# ── Build report ─────────────────────────────────────────────────────────────

class BuildReport(BaseModel):
    """Outcome of one build invocation."""

    package_name: str = PACKAGE_NAME
    package_version: str = __version__
    schema_version: str = SCHEMA_VERSION

    stage: str                     # terminal stage: DONE | FAILED
    history: List[str] = Field(default_factory=list)

    wasm_output: Optional[str] = None
    js_output: Optional[str] = None
    scaffold_template: Optional[str] = None

    optimized: bool = False
    warnings: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.stage == "DONE"


# ── Upload payload ───────────────────────────────────────────────────────────

class BinaryModule(BaseModel):
    binary: str  # base64


class UploadPayload(BaseModel):
    """Body for the code endpoint; transport is handled outside this tool."""

    branch: str
    modules: Dict[str, Union[str, BinaryModule]] = Field(default_factory=dict)
    url: str

    created_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
