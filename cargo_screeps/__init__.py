"""
cargo_screeps — post-process `cargo web` output into Screeps deployables.

Turns the compiled ``.wasm`` module and its generated JS loader into a
``compiled.wasm`` + ``main.js`` pair that the Screeps server can run.
"""

__version__ = "0.2.0"
PACKAGE_NAME = "cargo_screeps"
SCHEMA_VERSION = "0.1"

# Log level below DEBUG, enabled by `-vv`
TRACE = 5
