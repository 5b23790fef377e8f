"""
Runner — top-level orchestration: cargo web output → Screeps deployables.

Ties the compiler port, artifact discovery, the optimizer port and the
loader transform together.  Public entry points:

  check()        — `cargo web check` only, no artifact processing.
  run_build()    — resolve screeps.toml, then run a BuildPipeline.
  run_upload()   — build, then prepare the upload payload.

A BuildPipeline walks
    IDLE → COMPILING → LOCATING → OPTIMIZING → TRANSFORMING → WRITING → DONE
and jumps to FAILED on the first fatal error.  Optimizer failure is not
fatal: OPTIMIZING yields a FALLBACK outcome and the original module is
copied instead.
"""
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from enum import Enum, unique
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from cargo_screeps.config import Settings
from cargo_screeps.core.artifact_locator import (
    ArtifactKind,
    ArtifactPair,
    locate_artifacts,
    scan_directory,
)
from cargo_screeps.core.config_loader import (
    Configuration,
    PlatformConfiguration,
    load_configuration,
)
from cargo_screeps.core.loader_transform import (
    TransformResult,
    load_initialization_header,
    read_source_text,
    transform_loader,
)
from cargo_screeps.core.optimizer import Optimizer, WasmOptOptimizer
from cargo_screeps.core.toolchain import CargoWebCompiler, Compiler
from cargo_screeps.errors import OptimizerError, ScreepsBuildError
from cargo_screeps.io.schema import BinaryModule, BuildReport, UploadPayload
from cargo_screeps.io.writer import copy_wasm, write_js, write_upload_payload, write_wasm
from cargo_screeps.policy.profile import PipelineProfile

logger = logging.getLogger(__name__)

Uploader = Callable[[UploadPayload, PlatformConfiguration], None]


# ── Stages and outcomes ──────────────────────────────────────────────────────

@unique
class BuildStage(str, Enum):
    IDLE = "IDLE"
    COMPILING = "COMPILING"
    LOCATING = "LOCATING"
    OPTIMIZING = "OPTIMIZING"
    TRANSFORMING = "TRANSFORMING"
    WRITING = "WRITING"
    DONE = "DONE"
    FAILED = "FAILED"


TERMINAL_STAGES = frozenset({BuildStage.DONE, BuildStage.FAILED})


@unique
class OptimizeStatus(str, Enum):
    OPTIMIZED = "OPTIMIZED"
    FALLBACK = "FALLBACK"


@dataclass(frozen=True)
class OptimizeOutcome:
    """OPTIMIZED carries the new bytes; FALLBACK carries the reason."""

    status: OptimizeStatus
    data: Optional[bytes] = None
    warning: Optional[str] = None


def _default_settings(settings: Optional[Settings]) -> Settings:
    return settings if settings is not None else Settings()


# ── Pipeline ─────────────────────────────────────────────────────────────────

class BuildPipeline:
    """One build of one project.  Not reusable: construct per invocation."""

    def __init__(
        self,
        root: Path,
        config: Configuration,
        compiler: Compiler,
        optimizer: Optimizer,
        settings: Optional[Settings] = None,
        profile: Optional[PipelineProfile] = None,
    ):
        self.root = Path(root)
        self.config = config
        self.compiler = compiler
        self.optimizer = optimizer
        self.settings = _default_settings(settings)
        self.profile = profile if profile is not None else PipelineProfile.v1()

        self.stage = BuildStage.IDLE
        self.history: List[BuildStage] = [BuildStage.IDLE]
        self.failed_stage: Optional[BuildStage] = None
        self.error: Optional[BaseException] = None
        self.warnings: List[str] = []

    def _enter(self, stage: BuildStage) -> None:
        if self.stage in TERMINAL_STAGES:
            raise RuntimeError(f"pipeline already finished in {self.stage.value}")
        logger.debug("stage %s -> %s", self.stage.value, stage.value)
        self.stage = stage
        self.history.append(stage)

    # -- stages ----------------------------------------------------------------

    def compile(self) -> None:
        self.compiler.build(self.root)

    def locate(self) -> ArtifactPair:
        return locate_artifacts(self.settings.release_dir(self.root), self.profile)

    def optimize(self, wasm_file: Path) -> OptimizeOutcome:
        logger.debug("reading wasm file")
        data = wasm_file.read_bytes()
        try:
            optimized = self.optimizer.optimize(data, self.config.build.optimizer)
        except OptimizerError as e:
            warning = f"binaryen pass failed: {e}"
            logger.warning(warning)
            logger.warning("writing less optimized wasm file")
            return OptimizeOutcome(OptimizeStatus.FALLBACK, warning=warning)
        return OptimizeOutcome(OptimizeStatus.OPTIMIZED, data=optimized)

    def transform(self, js_file: Path) -> TransformResult:
        logger.debug("processing js file")
        script = read_source_text(js_file)
        header, header_source = load_initialization_header(self.root, self.config.build)
        return transform_loader(
            script,
            self.config.build,
            header,
            source_name=str(js_file),
            header_source=header_source,
            profile=self.profile,
        )

    def write(
        self,
        artifacts: ArtifactPair,
        outcome: OptimizeOutcome,
        transformed: TransformResult,
    ) -> Tuple[Path, Path]:
        out_dir = self.settings.output_dir(self.root)
        build = self.config.build

        if outcome.status is OptimizeStatus.OPTIMIZED:
            logger.debug("writing optimized wasm file")
            wasm_out = write_wasm(out_dir, build.output_wasm_file, outcome.data)
        else:
            wasm_out = copy_wasm(out_dir, build.output_wasm_file, artifacts.wasm_file)

        js_out = write_js(out_dir, build.output_js_file, transformed.text)
        logger.debug("wrote %s", js_out)
        return wasm_out, js_out

    # -- driver ----------------------------------------------------------------

    def run(self) -> BuildReport:
        """Run every stage; never raises for pipeline errors."""
        report = BuildReport(stage=BuildStage.IDLE.value)
        try:
            self._enter(BuildStage.COMPILING)
            self.compile()

            self._enter(BuildStage.LOCATING)
            artifacts = self.locate()

            self._enter(BuildStage.OPTIMIZING)
            outcome = self.optimize(artifacts.wasm_file)
            if outcome.warning:
                self.warnings.append(outcome.warning)

            self._enter(BuildStage.TRANSFORMING)
            transformed = self.transform(artifacts.js_file)
            report.scaffold_template = transformed.template

            self._enter(BuildStage.WRITING)
            wasm_out, js_out = self.write(artifacts, outcome, transformed)
        except (ScreepsBuildError, OSError) as e:
            self.failed_stage = self.stage
            self.error = e
            self._enter(BuildStage.FAILED)
            logger.debug("build failed during %s", self.failed_stage.value, exc_info=True)
            report.stage = BuildStage.FAILED.value
            report.history = [s.value for s in self.history]
            report.warnings = list(self.warnings)
            report.error = str(e)
            return report

        self._enter(BuildStage.DONE)
        report.stage = BuildStage.DONE.value
        report.history = [s.value for s in self.history]
        report.wasm_output = str(wasm_out)
        report.js_output = str(js_out)
        report.optimized = outcome.status is OptimizeStatus.OPTIMIZED
        report.warnings = list(self.warnings)
        return report


# ── Entry points ─────────────────────────────────────────────────────────────

def check(root: Path, compiler: Optional[Compiler] = None, settings: Optional[Settings] = None) -> None:
    """Run the compiler's check mode only."""
    settings = _default_settings(settings)
    if compiler is None:
        compiler = CargoWebCompiler(settings.CARGO, settings.TARGET_TRIPLE)
    logger.debug("running check")
    compiler.check(Path(root))


def run_build(
    root: Path,
    settings: Optional[Settings] = None,
    compiler: Optional[Compiler] = None,
    optimizer: Optional[Optimizer] = None,
    config: Optional[Configuration] = None,
) -> BuildReport:
    """
    Resolve configuration (unless given) and build.

    Raises
    ------
    ConfigMissing, ConfigParseError
        Before any stage runs.  Stage failures are reported, not raised.
    """
    settings = _default_settings(settings)
    if config is None:
        config = load_configuration(Path(root), settings.CONFIG_FILENAME)
    if compiler is None:
        compiler = CargoWebCompiler(settings.CARGO, settings.TARGET_TRIPLE)
    if optimizer is None:
        optimizer = WasmOptOptimizer(settings.WASM_OPT)

    logger.debug("building")
    pipeline = BuildPipeline(root, config, compiler, optimizer, settings)
    return pipeline.run()


def prepare_upload(
    root: Path,
    config: Configuration,
    settings: Optional[Settings] = None,
    profile: Optional[PipelineProfile] = None,
) -> UploadPayload:
    """Collect every js/wasm module in the output directory (non-recursive)."""
    settings = _default_settings(settings)
    if profile is None:
        profile = PipelineProfile.v1()

    out_dir = settings.output_dir(root)
    found = scan_directory(out_dir, profile)

    modules = {}
    for path in found[ArtifactKind.SCRIPT]:
        modules[path.stem] = read_source_text(path)
    for path in found[ArtifactKind.BINARY_MODULE]:
        modules[path.stem] = BinaryModule(
            binary=base64.b64encode(path.read_bytes()).decode("ascii")
        )

    platform = config.platform
    logger.debug("prepared %d modules for branch %s", len(modules), platform.branch)
    return UploadPayload(
        branch=platform.branch,
        modules=modules,
        url=platform.base_url + platform.code_endpoint,
    )


def run_upload(
    root: Path,
    settings: Optional[Settings] = None,
    compiler: Optional[Compiler] = None,
    optimizer: Optional[Optimizer] = None,
    uploader: Optional[Uploader] = None,
) -> BuildReport:
    """
    Build, then write the upload payload and hand it to *uploader*.

    Without an uploader the payload is only written to disk; sending it is
    the job of an external transport.
    """
    settings = _default_settings(settings)
    config = load_configuration(Path(root), settings.CONFIG_FILENAME)

    report = run_build(root, settings, compiler, optimizer, config=config)
    if not report.succeeded:
        return report

    payload = prepare_upload(root, config, settings)
    payload_path = write_upload_payload(
        payload, settings.output_dir(root), settings.UPLOAD_PAYLOAD_FILENAME
    )
    logger.info("upload payload written to %s", payload_path)

    if uploader is not None:
        uploader(payload, config.platform)
    else:
        logger.info("no upload transport configured; send %s to %s", payload_path, payload.url)
    return report
