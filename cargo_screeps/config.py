"""
Tool settings — executables and layout knobs read from the environment.

Project-level configuration lives in ``screeps.toml``; see
``cargo_screeps.core.config_loader``.
"""
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process settings, overridable via ``CARGO_SCREEPS_*`` variables."""

    model_config = SettingsConfigDict(
        env_prefix="CARGO_SCREEPS_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # External tools
    CARGO: str = "cargo"
    WASM_OPT: str = "wasm-opt"

    # Layout
    TARGET_TRIPLE: str = "wasm32-unknown-unknown"
    CONFIG_FILENAME: str = "screeps.toml"
    OUTPUT_DIRNAME: str = "target"
    UPLOAD_PAYLOAD_FILENAME: str = "upload_payload.json"

    def release_dir(self, root) -> Path:
        """Directory `cargo web build --release` writes artifacts into."""
        return Path(root) / self.OUTPUT_DIRNAME / self.TARGET_TRIPLE / "release"

    def output_dir(self, root) -> Path:
        """Directory the deployable pair is written to."""
        return Path(root) / self.OUTPUT_DIRNAME
