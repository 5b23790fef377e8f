"""
Writer — put deployables and the upload payload on disk.

Filesystem layout per project:
    <root>/target/<output_wasm_file>
    <root>/target/<output_js_file>
    <root>/target/upload_payload.json      (upload only)

Writes are not transactional: a failure between the two artifacts can
leave one fresh and one stale.
"""
import json
import shutil
from pathlib import Path

from cargo_screeps.io.schema import UploadPayload


def _prepare(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def write_wasm(output_dir: Path, name: Path, data: bytes) -> Path:
    """Write optimized module bytes to ``output_dir/name``."""
    out = _prepare(Path(output_dir) / name)
    out.write_bytes(data)
    return out


def copy_wasm(output_dir: Path, name: Path, source: Path) -> Path:
    """Copy the unoptimized module verbatim to ``output_dir/name``."""
    out = _prepare(Path(output_dir) / name)
    shutil.copyfile(source, out)
    return out


def write_js(output_dir: Path, name: Path, text: str) -> Path:
    out = _prepare(Path(output_dir) / name)
    with open(out, "w", encoding="utf-8", newline="\n") as fh:
        fh.write(text)
        fh.flush()
    return out


def write_upload_payload(payload: UploadPayload, output_dir: Path, filename: str) -> Path:
    out = _prepare(Path(output_dir) / filename)
    out.write_text(
        json.dumps(
            payload.model_dump(mode="json"),
            indent=2,
            sort_keys=True,
        )
        + "\n",
        encoding="utf-8",
    )
    return out
