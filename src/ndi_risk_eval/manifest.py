"""Run manifest emission for reproducibility.

Each run writes a `run_manifest_<entrypoint>_<run_id>.json` capturing:
- CLI args
- software versions
- key environment variables
- input file checksum (passed through `extra`)
"""

from __future__ import annotations

import hashlib
import json
import os
import platform
import subprocess
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from .env import env_snapshot, library_versions


def _safe_git_commit() -> Optional[str]:
    """Best-effort git commit hash (None if not in a git repo)."""
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode("utf-8").strip()
    except (OSError, subprocess.CalledProcessError):
        return None


def file_sha256(path: Path, chunk_size: int = 1 << 20) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            h.update(chunk)
    return h.hexdigest()


def write_manifest(
    *,
    out_dir: Path,
    run_id: str,
    entrypoint: str,
    args: Dict[str, Any],
    extra: Optional[Dict[str, Any]] = None,
) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    manifest_path = out_dir / f"run_manifest_{entrypoint}_{run_id}.json"

    payload: Dict[str, Any] = {
        "run_id": run_id,
        "entrypoint": entrypoint,
        "args": args,
        "env": env_snapshot(),
        "libraries": library_versions(),
        "git_commit": _safe_git_commit(),
        "python": {
            "version": platform.python_version(),
            "executable": os.environ.get("PYTHON_EXECUTABLE") or sys.executable,
        },
    }
    if extra:
        payload["extra"] = extra

    # Atomic write
    tmp = manifest_path.with_suffix(".json.tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True, default=str), encoding="utf-8")
    tmp.replace(manifest_path)
    return manifest_path
