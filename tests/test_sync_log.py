"""Tests for the sync activity log."""
from __future__ import annotations

import json
import logging
from datetime import date
from decimal import Decimal

from proposal_sync.logs import JsonlSyncLog, LoggingSyncLog, fetch_sync_entries


def test_logging_sync_log_writes_tagged_record(caplog):
    sync_log = LoggingSyncLog()
    with caplog.at_level(logging.INFO, logger="proposal_sync.sync"):
        sync_log("bidirectional_sync started", {"proposalId": 4})
    assert "[SYNC] bidirectional_sync started" in caplog.text
    assert '"proposalId": 4' in caplog.text


def test_jsonl_sync_log_appends_entries(tmp_path):
    log_file = tmp_path / "nested" / "sync.jsonl"
    sync_log = JsonlSyncLog(log_file)

    sync_log("batch_sync started", {"total": 2})
    sync_log("batch_sync completed", {"budget": Decimal("5.50"), "day": date(2026, 3, 1)})

    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    record = json.loads(lines[1])
    assert record["operation"] == "batch_sync completed"
    assert record["budget"] == 5.5
    assert record["day"] == "2026-03-01"
    assert "ts" in record


def test_fetch_sync_entries_newest_first(tmp_path):
    log_file = tmp_path / "sync.jsonl"
    sync_log = JsonlSyncLog(log_file)
    for index in range(5):
        sync_log("op", {"index": index})
    with log_file.open("a", encoding="utf-8") as handle:
        handle.write("garbage\n")

    entries = fetch_sync_entries(limit=3, path=log_file)

    assert [e["index"] for e in entries] == [4, 3]


def test_fetch_sync_entries_missing_file(tmp_path):
    assert fetch_sync_entries(path=tmp_path / "absent.jsonl") == []


def test_env_override(tmp_path, monkeypatch):
    log_file = tmp_path / "env.jsonl"
    monkeypatch.setenv("PSYNC_SYNC_LOG", str(log_file))
    JsonlSyncLog()("op", {})
    assert fetch_sync_entries()[0]["operation"] == "op"
