"""
Tests for the track-report command line.
"""

import json
import sys

import pytest

from track_report.main import create_parser, load_points_file, main


POINTS = [
    {"latitude": 40.0, "longitude": -74.0, "timestamp": "2024-05-01T07:00:00Z", "motion": False},
    {"latitude": 40.0, "longitude": -74.0, "timestamp": "2024-05-01T07:05:00Z", "motion": True},
    {"latitude": 40.009, "longitude": -74.0, "timestamp": "2024-05-01T07:15:00Z", "motion": False},
]


def run_cli(monkeypatch, *argv: str) -> int:
    monkeypatch.setattr(sys, "argv", ["track-report", *argv])
    return main()


def test_parser_subcommands():
    parser = create_parser()

    args = parser.parse_args(["report", "points.json", "--mock-llm", "--timeline-only"])
    assert args.command == "report"
    assert args.mock_llm and args.timeline_only

    args = parser.parse_args(["device", "7", "--start", "2024-05-01", "--end", "2024-05-02"])
    assert args.command == "device"
    assert args.device_id == 7


def test_load_points_file_shapes(tmp_path):
    as_list = tmp_path / "list.json"
    as_list.write_text(json.dumps(POINTS))
    assert load_points_file(str(as_list)) == (None, POINTS)

    as_object = tmp_path / "object.json"
    as_object.write_text(json.dumps({"device_id": 4, "points": POINTS}))
    assert load_points_file(str(as_object)) == (4, POINTS)

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"tracks": []}))
    with pytest.raises(ValueError):
        load_points_file(str(bad))


def test_timeline_only(monkeypatch, tmp_path, capsys):
    points_file = tmp_path / "points.json"
    points_file.write_text(json.dumps(POINTS))

    assert run_cli(monkeypatch, "report", str(points_file), "--timeline-only") == 0

    out = capsys.readouterr().out
    assert "07:00 started stationary" in out
    assert "07:05 resumed moving" in out
    assert "07:15 resting, lasted 0h 10m 0s" in out


def test_mock_report_writes_json(monkeypatch, tmp_path):
    points_file = tmp_path / "points.json"
    points_file.write_text(json.dumps({"device_id": 4, "points": POINTS}))
    output = tmp_path / "out" / "report.json"
    db = tmp_path / "tracks.db"

    code = run_cli(
        monkeypatch,
        "report", str(points_file),
        "--mock-llm", "--db", str(db), "--json-output", str(output), "-q",
    )

    assert code == 0
    report = json.loads(output.read_text())
    assert report["device_id"] == 4
    assert report["report_id"] == 1
    assert report["ai_summary"]["totalPoints"] == 3
    assert report["timeline"][0] == "07:00 started stationary"


def test_exit_codes(monkeypatch, tmp_path):
    assert run_cli(monkeypatch, "report", str(tmp_path / "missing.json"), "-q") == 1

    invalid = tmp_path / "invalid.json"
    invalid.write_text(json.dumps([{"latitude": None, "longitude": 1.0, "timestamp": "2024-05-01T00:00:00Z"}]))
    assert run_cli(monkeypatch, "report", str(invalid), "--timeline-only", "-q") == 1

    db = tmp_path / "empty.db"
    code = run_cli(
        monkeypatch,
        "device", "9", "--start", "2024-05-01", "--end", "2024-05-01",
        "--db", str(db), "--mock-llm", "-q",
    )
    assert code == 2
