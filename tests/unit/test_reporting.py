import csv
import json
import logging

import pytest

from backpropnets.core.types import HistoryRecord
from backpropnets.reporting import (
    CsvSink,
    JsonlSink,
    MetricsCapture,
    configure_logging,
    plot_history,
    write_manifest,
)


def test_sinks_write_one_row_per_epoch(tmp_path):
    jsonl = JsonlSink(tmp_path / "m.jsonl", seed=3)
    csv_sink = CsvSink(tmp_path / "m.csv")
    capture = MetricsCapture()
    for epoch in (1, 2):
        metrics = {"loss": 1.0 / epoch, "val_loss": 2.0 / epoch}
        jsonl.on_epoch(epoch, metrics)
        csv_sink(epoch, metrics)
        capture.on_epoch(epoch, metrics)

    lines = [json.loads(line) for line in (tmp_path / "m.jsonl").read_text().splitlines()]
    assert [line["epoch"] for line in lines] == [1, 2]
    assert lines[0]["seed"] == 3
    with (tmp_path / "m.csv").open() as handle:
        rows = list(csv.DictReader(handle))
    assert [float(row["loss"]) for row in rows] == [1.0, 0.5]
    assert capture.last == {"loss": 0.5, "val_loss": 1.0}
    assert len(capture.history) == 2


def test_manifest_records_history(tmp_path):
    history = [HistoryRecord(1, 3, 0.5, 0.6), HistoryRecord(2, 3, 0.4, None)]
    path = write_manifest(
        tmp_path / "manifest.json", config={"train": {"seed": 1}}, dataset_provenance={"type": "x"},
        history=history,
    )
    manifest = json.loads(open(path).read())
    assert manifest["epochs"] == 2
    assert manifest["final"] == {"train_loss": 0.4, "val_loss": None}
    assert manifest["config"]["train"]["seed"] == 1


def test_plot_history(tmp_path):
    path = plot_history([HistoryRecord(1, 1, 1.0, 1.2), HistoryRecord(2, 1, 0.8, 1.1)], tmp_path / "l.png")
    assert path.exists()
    with pytest.raises(ValueError):
        plot_history([], tmp_path / "empty.png")


def test_configure_logging_replaces_handlers(tmp_path):
    log_file = tmp_path / "logs" / "run.log"
    configure_logging(logging.INFO, log_file)
    logger = configure_logging(logging.INFO, log_file)
    assert len(logger.handlers) == 2
    logging.getLogger("backpropnets.test").info("hello")
    for handler in logger.handlers:
        handler.flush()
    assert "hello" in log_file.read_text()
    configure_logging(logging.WARNING)
