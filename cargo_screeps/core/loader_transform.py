"""
Loader transform — rewrite the generated JS loader for the Screeps host.

`cargo web` emits a loader that detects AMD / CommonJS / browser globals and
instantiates the module with ``fetch`` or ``fs``.  None of that exists on a
Screeps server.  We only want the module factory in the middle: the function
returning ``{imports, initialize}``.

Approach (no JS parser):
  1. Compile each known ScaffoldTemplate into anchored regexes.  Whitespace
     runs in the template match any whitespace, and the ``XXX`` placeholder
     matches any crate name.
  2. Prefix must match at the very start, suffix at the very end.
  3. The text between them is the bootstrap body.
  4. Rewrite calls the host lacks (``console.error``).
  5. Emit: initialization header, ``wasm_fetch_module_bytes()`` requiring the
     binary module by name, and ``wasm_create_stdweb_vars()`` wrapping the
     body.

``transform_loader`` is pure.  Header I/O lives in
``load_initialization_header``.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional, Sequence, Tuple

from cargo_screeps import TRACE
from cargo_screeps.core.config_loader import BuildConfiguration
from cargo_screeps.errors import (
    InitializationHeaderError,
    InvalidModuleName,
    LoaderShapeMismatch,
    SourceDecodeError,
)
from cargo_screeps.policy.profile import PipelineProfile
from cargo_screeps.policy.scaffold import KNOWN_TEMPLATES, ScaffoldTemplate

logger = logging.getLogger(__name__)

DEFAULT_HEADER_PATH = Path(__file__).resolve().parent.parent / "resources" / "default_initialization_header.js"

_WHITESPACE_RE = re.compile(r"\s+")

# Crate names as cargo-web substitutes them into the scaffold
_PLACEHOLDER_PATTERN = r"[A-Za-z0-9_-]*"

OUTPUT_TEMPLATE = """{header}

function wasm_fetch_module_bytes() {{
    "use strict";
    return require('{module_name}');
}}

function wasm_create_stdweb_vars() {{
    "use strict";
    {body}
}}
"""


@dataclass(frozen=True)
class TransformResult:
    text: str
    template: str
    module_name: str


# ── Template compilation ─────────────────────────────────────────────────────

def template_to_pattern(template_text: str, placeholder: str = "XXX") -> str:
    """
    Turn literal scaffold text into a whitespace-tolerant regex source.

    Non-whitespace chunks are escaped verbatim except for *placeholder*,
    which becomes a crate-name class.  Whitespace runs become ``\\s*``.
    """
    pieces = _WHITESPACE_RE.split(template_text)
    escaped = []
    for piece in pieces:
        parts = piece.split(placeholder)
        escaped.append(_PLACEHOLDER_PATTERN.join(re.escape(p) for p in parts))
    return r"\s*".join(escaped)


@lru_cache(maxsize=None)
def compile_template(template: ScaffoldTemplate) -> Tuple[re.Pattern, re.Pattern]:
    """Return (prefix_re, suffix_re), anchored at start and end of input."""
    prefix = re.compile(r"\A" + template_to_pattern(template.prefix, template.placeholder))
    suffix = re.compile(template_to_pattern(template.suffix, template.placeholder) + r"\Z")
    return prefix, suffix


# ── Extraction ───────────────────────────────────────────────────────────────

def extract_bootstrap(
    script: str,
    source_name: str = "<generated js>",
    templates: Sequence[ScaffoldTemplate] = KNOWN_TEMPLATES,
) -> Tuple[str, ScaffoldTemplate]:
    """
    Return (bootstrap_body, matched_template).

    Raises
    ------
    LoaderShapeMismatch
        When no template matches both anchors.  The reported anchor is
        "prefix" unless some template's prefix matched, in which case the
        suffix is the part that drifted.
    """
    prefix_seen = False
    for template in templates:
        prefix_re, suffix_re = compile_template(template)
        logger.log(TRACE, "template %s prefix pattern:\n```%s```", template.name, prefix_re.pattern)
        logger.log(TRACE, "template %s suffix pattern:\n```%s```", template.name, suffix_re.pattern)

        prefix_match = prefix_re.match(script)
        if prefix_match is None:
            logger.debug("template %s: prefix did not match", template.name)
            continue
        prefix_seen = True

        suffix_match = suffix_re.search(script, prefix_match.end())
        if suffix_match is None:
            logger.debug("template %s: suffix did not match", template.name)
            continue

        body = script[prefix_match.end():suffix_match.start()]
        logger.debug(
            "template %s matched; bootstrap body is %d chars",
            template.name, len(body),
        )
        return body, template

    raise LoaderShapeMismatch(
        "suffix" if prefix_seen else "prefix",
        source_name,
        [t.name for t in templates],
    )


def rewrite_host_calls(body: str, profile: PipelineProfile) -> str:
    """Replace every call the host lacks with its header-provided stand-in."""
    for original, replacement in profile.call_rewrites:
        body = body.replace(original, replacement)
    return body


# ── Module name / header ─────────────────────────────────────────────────────

def derive_module_name(output_wasm_file: Path, profile: PipelineProfile) -> str:
    """
    Module name the host's ``require`` resolves to: the output file's stem.

    Raises
    ------
    InvalidModuleName
        Empty stem, a stem that is not encodable text, or one outside the
        identifier-safe alphabet.
    """
    stem = Path(output_wasm_file).stem
    if not stem:
        raise InvalidModuleName(output_wasm_file, "ending in a filename")
    try:
        stem.encode("utf-8")
    except UnicodeEncodeError:
        raise InvalidModuleName(output_wasm_file, "with UTF8 filename") from None
    if re.fullmatch(profile.module_name_pattern, stem) is None:
        raise InvalidModuleName(
            output_wasm_file,
            f"with a filename stem matching {profile.module_name_pattern}",
        )
    return stem


def read_source_text(path: Path) -> str:
    """Read a UTF-8 text input; undecodable bytes raise SourceDecodeError."""
    try:
        return Path(path).read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise SourceDecodeError(path, str(e)) from e


def load_initialization_header(root: Path, config: BuildConfiguration) -> Tuple[str, str]:
    """
    Read the configured header (relative to *root*) or the built-in default.

    Returns (header_text, source_description).  I/O errors propagate.
    """
    if config.initialization_header_file is not None:
        header_path = Path(root) / config.initialization_header_file
        logger.debug("using initialization header %s", header_path)
        return read_source_text(header_path), str(header_path)
    return DEFAULT_HEADER_PATH.read_text(encoding="utf-8"), "<default header>"


def validate_header(header: str, body: str, source: str, profile: PipelineProfile) -> None:
    """
    Make sure the header wires up what the assembled script relies on.

    Raises
    ------
    InitializationHeaderError
        Naming every missing hook.
    """
    missing = [
        hook for hook in profile.required_header_hooks
        if re.search(r"\b" + re.escape(hook) + r"\b", header) is None
    ]
    for _, replacement in profile.call_rewrites:
        if re.search(r"\b" + re.escape(replacement) + r"\b", body) is None:
            continue
        defines = re.compile(
            r"\bfunction\s+{0}\b|\b(?:var|let|const)\s+{0}\b|\bglobal\.{0}\s*=".format(
                re.escape(replacement)
            )
        )
        if defines.search(header) is None:
            missing.append(f"definition of {replacement}")
    if missing:
        raise InitializationHeaderError(source, missing)


# ── Assembly ─────────────────────────────────────────────────────────────────

def transform_loader(
    script: str,
    config: BuildConfiguration,
    header: str,
    *,
    source_name: str = "<generated js>",
    header_source: str = "<default header>",
    profile: Optional[PipelineProfile] = None,
    templates: Sequence[ScaffoldTemplate] = KNOWN_TEMPLATES,
) -> TransformResult:
    """
    Build the Screeps loader from the generated *script*.

    Deterministic: the same (script, config, header) always yields the
    same text.
    """
    if profile is None:
        profile = PipelineProfile.v1()

    body, template = extract_bootstrap(script, source_name, templates)
    body = rewrite_host_calls(body, profile)
    module_name = derive_module_name(config.output_wasm_file, profile)
    validate_header(header, body, header_source, profile)

    text = OUTPUT_TEMPLATE.format(header=header, module_name=module_name, body=body)
    return TransformResult(text=text, template=template.name, module_name=module_name)
