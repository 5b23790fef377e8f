"""
Errors — exception taxonomy for the build pipeline.

Everything derives from ``ScreepsBuildError`` so the CLI can report any
pipeline failure uniformly.  ``OptimizerError`` and its subclasses are the
only recoverable family: the runner falls back to the unoptimized module.
"""
from __future__ import annotations

from pathlib import Path
from typing import Sequence


ISSUES_URL = "https://github.com/rustyscreeps/cargo-screeps/issues"


class ScreepsBuildError(Exception):
    """Base class for all pipeline failures."""


# ── Configuration ────────────────────────────────────────────────────────────

class ConfigMissing(ScreepsBuildError):
    def __init__(self, config_path: Path):
        self.config_path = Path(config_path)
        super().__init__(
            f"expected {self.config_path.name} to exist in "
            f"{self.config_path.parent}"
        )


class ConfigParseError(ScreepsBuildError):
    def __init__(self, config_path: Path | None, detail: str):
        self.config_path = config_path
        self.detail = detail
        where = str(config_path) if config_path is not None else "configuration"
        super().__init__(f"invalid {where}: {detail}")


# ── Toolchain ────────────────────────────────────────────────────────────────

class ToolchainInvocationError(ScreepsBuildError):
    def __init__(self, command: Sequence[str], detail: str):
        self.command = list(command)
        self.detail = detail
        super().__init__(f"'{' '.join(self.command)}' failed: {detail}")


# ── Artifact discovery ───────────────────────────────────────────────────────

class ArtifactDiscoveryError(ScreepsBuildError):
    """Zero or multiple candidates of one artifact kind in a directory."""

    def __init__(self, directory: Path, kind: str, problem: str):
        self.directory = Path(directory)
        self.kind = kind
        self.problem = problem  # "no" | "multiple" | "missing directory"
        if problem == "missing directory":
            message = f"error: build output directory {self.directory} does not exist"
        else:
            message = f"error: {problem} {kind} files found in {self.directory}"
        super().__init__(message)


# ── Optimizer (recoverable) ──────────────────────────────────────────────────

class OptimizerError(ScreepsBuildError):
    """Any failure of the optimization pass.  Never fatal to a build."""


class OptimizerParseError(OptimizerError):
    """The optimizer could not read the module produced by the toolchain."""


class OptimizerUnavailable(OptimizerError):
    """The optimizer executable could not be started."""


# ── Loader transformation ────────────────────────────────────────────────────

class LoaderShapeMismatch(ScreepsBuildError):
    """The generated loader does not match any known scaffold template."""

    def __init__(self, anchor: str, source: Path | str, templates: Sequence[str]):
        self.anchor = anchor  # "prefix" | "suffix"
        self.source = source
        self.templates = list(templates)
        which = "first" if anchor == "prefix" else "last"
        super().__init__(
            f"'cargo web' generated unexpected JS {anchor}! (unsupported "
            f"generator version; known templates: {', '.join(self.templates)}) "
            f"This means it's updated without 'cargo screeps' also having "
            f"updated. Please report this issue to {ISSUES_URL} and include "
            f"the {which} ~30 lines of {source}"
        )


class InvalidModuleName(ScreepsBuildError):
    def __init__(self, output_wasm_file: Path | str, detail: str):
        self.output_wasm_file = output_wasm_file
        super().__init__(
            f"expected output_wasm_file {detail}, but found {output_wasm_file}"
        )


class InitializationHeaderError(ScreepsBuildError):
    """The initialization header lacks a hook the generated loader needs."""

    def __init__(self, source: str, missing: Sequence[str]):
        self.source = source
        self.missing = list(missing)
        super().__init__(
            f"initialization header {source} does not provide: "
            f"{', '.join(self.missing)}"
        )


class SourceDecodeError(ScreepsBuildError):
    """A text input (generated loader or header) is not valid UTF-8."""

    def __init__(self, path: Path | str, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(f"expected {path} to be UTF-8 text: {detail}")
