"""Run artifact helpers."""

from __future__ import annotations

import json
import platform
import subprocess
import time
from pathlib import Path
from typing import Mapping, Sequence

from ..core.types import HistoryRecord


def _git_sha() -> str:
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode().strip()
    except (OSError, subprocess.CalledProcessError):
        return "unknown"


def write_manifest(
    path: str | Path,
    *,
    config: Mapping[str, object],
    dataset_provenance: Mapping[str, object],
    history: Sequence[HistoryRecord] = (),
) -> str:
    """Write a manifest JSON file capturing reproducibility metadata."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    manifest = {
        "git_sha": _git_sha(),
        "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "config": config,
        "dataset": dict(dataset_provenance),
        "epochs": len(history),
        "final": (
            {"train_loss": history[-1].train_loss, "val_loss": history[-1].val_loss}
            if history
            else {}
        ),
        "environment": {"python": platform.python_version()},
    }
    path.write_text(json.dumps(manifest, indent=2))
    return str(path)


__all__ = ["write_manifest"]
