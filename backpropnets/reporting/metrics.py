"""Metrics sinks receiving per-epoch training results."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Mapping


class JsonlSink:
    """Append-only JSONL writer for epoch metrics."""

    def __init__(self, path: str | Path, *, seed: int | None = None) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.seed = seed

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        record = {"epoch": int(epoch), "seed": self.seed}
        record.update({k: float(v) for k, v in metrics.items() if isinstance(v, (int, float))})
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    __call__ = on_epoch


class CsvSink:
    """Write epoch metrics to CSV with the columns of the first row."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self._fieldnames: list[str] | None = None

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        row = {"epoch": int(epoch)}
        row.update({k: float(v) for k, v in metrics.items() if isinstance(v, (int, float))})
        if self._fieldnames is None:
            self._fieldnames = ["epoch"] + sorted(k for k in row if k != "epoch")
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=self._fieldnames, extrasaction="ignore")
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)

    __call__ = on_epoch


class MetricsCapture:
    """Keep every epoch's metrics in memory."""

    def __init__(self) -> None:
        self.history: list[tuple[int, Mapping[str, float]]] = []
        self.last: Mapping[str, float] = {}

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        payload = {k: float(v) for k, v in metrics.items()}
        self.history.append((int(epoch), payload))
        self.last = payload


__all__ = ["JsonlSink", "CsvSink", "MetricsCapture"]
