from __future__ import annotations

import json
import re

from offer_approval.logging.activity_log import ActivityLogBuffer
from offer_approval.models.activity_record import StatusChangeRecord


def test_record_timestamp_is_utc_with_z():
    record = StatusChangeRecord.create(7, "Laptop", "Draft", "Pending Approval", "ae")
    assert re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?Z$", record.timestamp)


def test_json_line_keeps_non_ascii():
    record = StatusChangeRecord("2024-01-01T00:00:00Z", 7, "Gerät", "", "Draft", "jürgen")
    line = record.to_json_line()
    assert "Gerät" in line
    assert json.loads(line)["user"] == "jürgen"


def test_flush_writes_json_lines(tmp_path):
    buf = ActivityLogBuffer(logs_dir=tmp_path / "logs")
    buf.append(StatusChangeRecord.create(7, "A", "Draft", "Pending Approval", "u"))
    buf.append(StatusChangeRecord.create(8, "B", "Pending Approval", "", "u"))
    path = buf.flush()
    assert path is not None
    assert re.match(r"^status-changes-\d{8}-\d{6}\.log$", path.name)
    lines = path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["row"] for line in lines] == [7, 8]
    assert buf.records == []


def test_flush_without_records_writes_nothing(tmp_path):
    buf = ActivityLogBuffer(logs_dir=tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_second_flush_appends_to_same_file(tmp_path):
    buf = ActivityLogBuffer(logs_dir=tmp_path)
    buf.append(StatusChangeRecord.create(7, "A", "", "Draft", "u"))
    first = buf.flush()
    buf.append(StatusChangeRecord.create(7, "A", "Draft", "Pending Approval", "u"))
    second = buf.flush()
    assert first == second
    assert len(second.read_text(encoding="utf-8").splitlines()) == 2
