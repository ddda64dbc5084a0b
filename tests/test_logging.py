"""Tests for the loguru sinks."""

import json
import sys

import pytest
from loguru import logger

from majordomo.autonomy import ActionRequest, ApprovalPatternCache, AutonomyEngine, WorldState
from majordomo.logging_config import is_governance_record, setup_logging


@pytest.fixture(autouse=True)
def restore_sinks():
    yield
    logger.remove()
    logger.add(sys.stderr)


def test_audit_file_only_gets_governance_records(tmp_path, clock, home):
    audit = tmp_path / "logs" / "audit.jsonl"
    setup_logging("WARNING", audit)

    engine = AutonomyEngine(ApprovalPatternCache(clock=clock))
    engine.decide(ActionRequest("setTimer", {"durationSeconds": 5}), home.capability("setTimer"), WorldState.at(clock.now()))
    logger.info("not a governance record")
    logger.remove()

    records = [json.loads(line)["record"] for line in audit.read_text().splitlines()]
    assert [r["message"] for r in records] == ["Autonomy: setTimer -> announce (Default for setTimer)"]
    assert records[0]["level"]["name"] == "DEBUG"
    assert records[0]["name"] == "majordomo.autonomy.engine"


def test_audit_path_from_environment(tmp_path, monkeypatch):
    audit = tmp_path / "audit.jsonl"
    monkeypatch.setenv("MAJORDOMO_AUDIT_LOG", str(audit))
    setup_logging()
    assert audit.exists()


def test_governance_filter():
    assert is_governance_record({"name": "majordomo.orchestrator.service"})
    assert is_governance_record({"name": "majordomo.interruption.manager"})
    assert not is_governance_record({"name": "majordomo.memory.store"})
