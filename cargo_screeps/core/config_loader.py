"""
Config loader — read screeps.toml and resolve derived defaults.

Responsibilities:
  - Fail with ConfigMissing when the file is absent.
  - Parse TOML and validate it against io/schema.FileConfiguration;
    any syntax or validation problem becomes ConfigParseError.
  - Derive ``ssl`` from the hostname and ``port`` from ``ssl`` when the
    user did not set them explicitly.
  - Return frozen dataclasses; nothing downstream mutates configuration.
"""
from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from cargo_screeps.errors import ConfigMissing, ConfigParseError
from cargo_screeps.io.schema import FileConfiguration
from cargo_screeps.policy.profile import CANONICAL_HOSTNAME

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OptimizerProfile:
    """Codegen profile handed to the optimizer on every call."""

    shrink_level: int = 1
    optimization_level: int = 2
    debug_info: bool = False


@dataclass(frozen=True)
class BuildConfiguration:
    output_wasm_file: Path = Path("compiled.wasm")
    output_js_file: Path = Path("main.js")
    initialization_header_file: Optional[Path] = None
    optimizer: OptimizerProfile = OptimizerProfile()


@dataclass(frozen=True)
class PlatformConfiguration:
    username: str
    password: str
    branch: str
    hostname: str
    ssl: bool
    port: int
    ptr: bool

    @property
    def base_url(self) -> str:
        scheme = "https" if self.ssl else "http"
        return f"{scheme}://{self.hostname}:{self.port}"

    @property
    def code_endpoint(self) -> str:
        prefix = "/ptr" if self.ptr else ""
        return f"{prefix}/api/user/code"

    def __repr__(self) -> str:
        return (
            f"PlatformConfiguration(username={self.username!r}, password='***', "
            f"branch={self.branch!r}, hostname={self.hostname!r}, "
            f"ssl={self.ssl!r}, port={self.port!r}, ptr={self.ptr!r})"
        )


@dataclass(frozen=True)
class Configuration:
    platform: PlatformConfiguration
    build: BuildConfiguration


def derive_ssl(hostname: str, ssl: Optional[bool]) -> bool:
    """Explicit setting wins; otherwise TLS only for the official server."""
    if ssl is not None:
        return ssl
    return hostname == CANONICAL_HOSTNAME


def derive_port(ssl: bool, port: Optional[int]) -> int:
    if port is not None:
        return port
    return 443 if ssl else 80


def resolve_configuration(
    raw: Mapping[str, Any],
    config_path: Optional[Path] = None,
) -> Configuration:
    """
    Validate an already-parsed mapping and apply derived defaults.

    Raises
    ------
    ConfigParseError
        If required fields are missing or any field has the wrong type.
    """
    try:
        file_config = FileConfiguration.model_validate(raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigParseError(config_path, problems) from e

    ssl = derive_ssl(file_config.hostname, file_config.ssl)
    port = derive_port(ssl, file_config.port)

    platform = PlatformConfiguration(
        username=file_config.username,
        password=file_config.password,
        branch=file_config.branch,
        hostname=file_config.hostname,
        ssl=ssl,
        port=port,
        ptr=file_config.ptr,
    )

    section = file_config.build
    build = BuildConfiguration(
        output_wasm_file=section.output_wasm_file,
        output_js_file=section.output_js_file,
        initialization_header_file=section.initialization_header_file,
        optimizer=OptimizerProfile(
            shrink_level=section.optimizer.shrink_level,
            optimization_level=section.optimizer.optimization_level,
            debug_info=section.optimizer.debug_info,
        ),
    )

    return Configuration(platform=platform, build=build)


def load_configuration(root: Path, filename: str = "screeps.toml") -> Configuration:
    """
    Read ``<root>/<filename>`` and return the resolved configuration.

    Raises
    ------
    ConfigMissing
        If the file does not exist.
    ConfigParseError
        If the file is not valid TOML or fails validation.
    """
    config_path = Path(root) / filename
    if not config_path.is_file():
        raise ConfigMissing(config_path)

    logger.debug("reading configuration from %s", config_path)
    try:
        with open(config_path, "rb") as fh:
            raw = tomllib.load(fh)
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(config_path, str(e)) from e
    except UnicodeDecodeError as e:
        raise ConfigParseError(config_path, f"not valid UTF-8 ({e})") from e

    config = resolve_configuration(raw, config_path)
    logger.debug("resolved platform configuration: %r", config.platform)
    return config
