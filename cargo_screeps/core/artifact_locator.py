"""
Artifact locator — find the module/loader pair `cargo web build` produced.

The release directory is expected to hold exactly one ``.wasm`` file and
exactly one ``.js`` file.  Subdirectories are ignored and entries are
visited in sorted order so discovery is reproducible.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, unique
from pathlib import Path
from typing import Dict, List

from cargo_screeps.errors import ArtifactDiscoveryError
from cargo_screeps.policy.profile import PipelineProfile

logger = logging.getLogger(__name__)


@unique
class ArtifactKind(str, Enum):
    BINARY_MODULE = "wasm"
    SCRIPT = "js"
    OTHER = "other"


@dataclass(frozen=True)
class ArtifactPair:
    wasm_file: Path
    js_file: Path


def classify_artifact(path: Path, profile: PipelineProfile) -> ArtifactKind:
    """Classify a file by extension alone."""
    suffix = path.suffix[1:]
    if suffix == profile.binary_extension:
        return ArtifactKind.BINARY_MODULE
    if suffix == profile.script_extension:
        return ArtifactKind.SCRIPT
    return ArtifactKind.OTHER


def scan_directory(directory: Path, profile: PipelineProfile) -> Dict[ArtifactKind, List[Path]]:
    """Group the regular files directly inside *directory* by kind."""
    found: Dict[ArtifactKind, List[Path]] = {kind: [] for kind in ArtifactKind}
    for entry in sorted(directory.iterdir(), key=lambda p: p.name):
        if not entry.is_file():
            continue
        found[classify_artifact(entry, profile)].append(entry)
    return found


def _exactly_one(directory: Path, kind: ArtifactKind, candidates: List[Path]) -> Path:
    if not candidates:
        raise ArtifactDiscoveryError(directory, kind.value, "no")
    if len(candidates) > 1:
        logger.debug(
            "%s candidates in %s: %s",
            kind.value, directory, ", ".join(p.name for p in candidates),
        )
        raise ArtifactDiscoveryError(directory, kind.value, "multiple")
    return candidates[0]


def locate_artifacts(directory: Path, profile: PipelineProfile | None = None) -> ArtifactPair:
    """
    Return the single wasm/js pair in *directory*.

    Raises
    ------
    ArtifactDiscoveryError
        If the directory is missing, or either kind has zero or several
        candidates.  The wasm kind is checked first.
    """
    if profile is None:
        profile = PipelineProfile.v1()

    directory = Path(directory)
    if not directory.is_dir():
        raise ArtifactDiscoveryError(directory, "build output", "missing directory")

    found = scan_directory(directory, profile)
    wasm_file = _exactly_one(directory, ArtifactKind.BINARY_MODULE, found[ArtifactKind.BINARY_MODULE])
    js_file = _exactly_one(directory, ArtifactKind.SCRIPT, found[ArtifactKind.SCRIPT])

    logger.debug("found wasm module %s and loader %s", wasm_file.name, js_file.name)
    return ArtifactPair(wasm_file=wasm_file, js_file=js_file)
