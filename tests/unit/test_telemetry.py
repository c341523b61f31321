"""Unit tests for structured step logging."""

import json
import logging

from rag_memory.telemetry import log_step, new_run_id


def test_run_ids_are_unique():
    assert new_run_id() != new_run_id()


def test_log_step_emits_json_event(caplog):
    run_id = new_run_id()
    with caplog.at_level(logging.INFO, logger="rag_memory"):
        log_step(run_id, "rerank", 1.23456, pool=5, selected=2)

    [record] = [r for r in caplog.records if r.name == "rag_memory"]
    event = json.loads(record.getMessage())
    assert event["event"] == "step_executed"
    assert event["run_id"] == run_id
    assert event["step"] == "rerank"
    assert event["duration_ms"] == 1.235
    assert event["selected"] == 2
    assert event["level"] == "info"
