"""
Test fixtures for cargo_screeps.

All fixtures are pure-Python: no cargo, no wasm-opt, no real modules.
Generated loaders are built from the registered scaffold template with a
small stdweb-style module factory as the body.
"""
from __future__ import annotations

import textwrap
from pathlib import Path
from typing import List, Optional

import pytest

from cargo_screeps.core.config_loader import OptimizerProfile
from cargo_screeps.errors import (
    OptimizerParseError,
    OptimizerUnavailable,
    ToolchainInvocationError,
)
from cargo_screeps.policy.scaffold import CARGO_WEB_0_6


CRATE_NAME = "screeps_ai"

# Minimal valid-looking wasm: magic + version + an empty custom section.
FAKE_WASM = b"\x00asm\x01\x00\x00\x00" + b"\x00\x05\x04name"
OPTIMIZED_WASM = b"\x00asm\x01\x00\x00\x00"

BOOTSTRAP_BODY = textwrap.dedent("""
        var Module = {};

        Module.STDWEB_PRIVATE = {};

        Module.STDWEB_PRIVATE.to_js_string = function to_js_string( index, length ) {
            return Module.STDWEB_PRIVATE.utf8_decode( index, length );
        };

        Module.STDWEB_PRIVATE.report_panic = function report_panic( message ) {
            console.error( "panic: " + message );
        };

        return {
            imports: {
                env: {
                    "__cargo_web_snippet_log": function( $0 ) {
                        console.error( Module.STDWEB_PRIVATE.to_js( $0 ) );
                    }
                }
            },
            initialize: function( instance ) {
                Object.defineProperty( Module, 'instance', { value: instance } );
                Module.exports = instance.exports;
                return Module.exports;
            }
        };""").rstrip()


def make_generated_js(body: str = BOOTSTRAP_BODY, crate: str = CRATE_NAME) -> str:
    """Loader text as cargo-web 0.6 emits it for *crate*."""
    prefix = CARGO_WEB_0_6.prefix.replace(CARGO_WEB_0_6.placeholder, crate)
    return prefix + body + CARGO_WEB_0_6.suffix


SCREEPS_TOML = textwrap.dedent("""\
    username = "tester"
    password = "hunter2"
    branch = "sim"

    [build]
    output_wasm_file = "compiled.wasm"
    output_js_file = "main.js"
""")


# ── Port fakes ───────────────────────────────────────────────────────────────

class FakeCompiler:
    """Records calls; optionally fails."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[tuple] = []

    def check(self, root: Path) -> None:
        self.calls.append(("check", Path(root)))
        if self.fail:
            raise ToolchainInvocationError(["cargo", "web", "check"], "exit code 101")

    def build(self, root: Path) -> None:
        self.calls.append(("build", Path(root)))
        if self.fail:
            raise ToolchainInvocationError(["cargo", "web", "build"], "exit code 101")


class FakeOptimizer:
    """Returns fixed bytes, or raises the given optimizer error."""

    def __init__(self, output: bytes = OPTIMIZED_WASM, error: Optional[Exception] = None):
        self.output = output
        self.error = error
        self.calls: List[tuple] = []

    def optimize(self, data: bytes, profile: OptimizerProfile) -> bytes:
        self.calls.append((data, profile))
        if self.error is not None:
            raise self.error
        return self.output


# ── Fixtures ─────────────────────────────────────────────────────────────────

@pytest.fixture
def fake_wasm() -> bytes:
    return FAKE_WASM


@pytest.fixture
def optimized_wasm() -> bytes:
    return OPTIMIZED_WASM


@pytest.fixture
def bootstrap_body() -> str:
    return BOOTSTRAP_BODY


@pytest.fixture
def crate_name() -> str:
    return CRATE_NAME


@pytest.fixture
def loader_factory():
    """make_generated_js, for tests that need a specific crate or body."""
    return make_generated_js


@pytest.fixture
def generated_js() -> str:
    return make_generated_js()


@pytest.fixture
def fake_compiler() -> FakeCompiler:
    return FakeCompiler()


@pytest.fixture
def failing_compiler() -> FakeCompiler:
    return FakeCompiler(fail=True)


@pytest.fixture
def fake_optimizer() -> FakeOptimizer:
    return FakeOptimizer()


@pytest.fixture
def unavailable_optimizer() -> FakeOptimizer:
    return FakeOptimizer(error=OptimizerUnavailable("wasm-opt not found in PATH"))


@pytest.fixture
def failing_optimizer() -> FakeOptimizer:
    return FakeOptimizer(error=OptimizerParseError("binaryen found WASM module to be invalid"))


@pytest.fixture
def release_dir(tmp_path: Path) -> Path:
    d = tmp_path / "target" / "wasm32-unknown-unknown" / "release"
    d.mkdir(parents=True)
    return d


@pytest.fixture
def project(tmp_path: Path, release_dir: Path, generated_js: str) -> Path:
    """A crate root after a successful `cargo web build --release`."""
    (tmp_path / "Cargo.toml").write_text('[package]\nname = "screeps_ai"\n')
    (tmp_path / "screeps.toml").write_text(SCREEPS_TOML)
    (release_dir / f"{CRATE_NAME}.wasm").write_bytes(FAKE_WASM)
    (release_dir / f"{CRATE_NAME}.js").write_text(generated_js)
    (release_dir / f"{CRATE_NAME}.d").write_text("deps\n")
    (release_dir / "build").mkdir()
    return tmp_path
