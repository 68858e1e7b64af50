from __future__ import annotations

import json
from pathlib import Path

from offer_approval.cli.__main__ import main as cli_main

"""Activity log contract: JSON Lines with a fixed key set, one line per status change."""

EXPECTED_KEYS = {"timestamp", "row", "model", "old_status", "new_status", "user"}


def test_activity_log_lines(write_config, write_workbook, complete_row, make_row, temp_workdir: Path, capsys):
    path = write_workbook([complete_row(), make_row(model="Half filled"), make_row()])
    cli_main(["recalc", str(path), "--user", "auditor"])
    capsys.readouterr()

    (log_file,) = (temp_workdir / "logs").glob("status-changes-*.log")
    records = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert len(records) == 2
    for record in records:
        assert set(record) == EXPECTED_KEYS
        assert record["timestamp"].endswith("Z")
        assert isinstance(record["row"], int)
        assert record["user"] == "auditor"
    assert [(r["row"], r["old_status"], r["new_status"]) for r in records] == [
        (7, "", "Pending Approval"),
        (8, "", "Draft"),
    ]


def test_no_log_file_without_changes(write_config, write_workbook, make_row, temp_workdir: Path, capsys):
    path = write_workbook([make_row(sku="empty line")])
    cli_main(["recalc", str(path)])
    capsys.readouterr()
    assert list((temp_workdir / "logs").glob("status-changes-*.log")) == []
