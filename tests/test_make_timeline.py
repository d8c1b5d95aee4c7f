"""End-to-end tests for make_timeline.py"""

import json

import pytest

from make_timeline import default_output, main


CONFIG = r"""
timestamp:
  pattern: '^\[([^\]]+)\]'
  format: '%Y-%m-%d %H:%M:%S'
durations:
  - pattern: 'took (?:(?P<m>\d+)m)?(?:(?P<s>[\d.]+)s)?'
colors:
  - pattern: 'compile'
    color: '#e41a1c'
  - pattern: 'test'
    color: '#377eb8'
    group: 1
"""

LOG = (
    b"[2024-03-01 12:00:00] build started\n"
    b"[2024-03-01 12:00:05] compile a.c took 5s\n"
    b"[2024-03-01 12:00:06] compile b.c took 4s\n"
    b"compile c.c took 3s\n"
    b"[2024-03-01 12:00:06] compile d.c took 0.2s\n"
    b"[2024-03-01 12:01:06] test suite took 1m\n"
)


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "timeline.yml").write_text(CONFIG, encoding="utf-8")
    (tmp_path / "build.log").write_bytes(LOG)
    return tmp_path


def test_writes_html_to_default_location(workspace):
    main(["-c", "timeline.yml", "build.log"])
    out = workspace / "renders" / "build.html"
    assert out.exists()
    html = out.read_text(encoding="utf-8")
    assert "<title>Execution timeline</title>" in html
    assert "compile a.c took 5s" in html


def test_default_output_path(tmp_path):
    assert str(default_output(tmp_path / "logs" / "ci.log")).endswith("renders/ci.html")


def test_stdout_output(workspace, capsys):
    main(["-c", "timeline.yml", "build.log", "-o", "-", "--title", "CI run"])
    captured = capsys.readouterr()
    assert captured.out.startswith("<!DOCTYPE html>")
    assert "<title>CI run</title>" in captured.out
    assert "Events:" in captured.err


def test_json_export(workspace):
    main(["-c", "timeline.yml", "build.log", "-o", "out.html", "--json", "out/timeline.json"])
    payload = json.loads((workspace / "out" / "timeline.json").read_text(encoding="utf-8"))
    # compile a.c [0s, 5s] and b.c [2s, 6s] overlap by 3s; the test runs in group 1
    assert payload["total_lanes"] == 3
    assert payload["global_duration"] == 66
    assert [b["lane"] for b in payload["blocks"]] == [0, 1, 2]
    assert [b["top"] for b in payload["blocks"]] == [0, 2, 6]


def test_stats(workspace, capsys):
    main(["-c", "timeline.yml", "build.log", "-o", "-", "--stats"])
    err = capsys.readouterr().err
    assert "colors[0]" in err
    assert "colors[1]" in err


def test_config_from_environment(workspace, monkeypatch):
    monkeypatch.setenv("TIMELINE_CONFIG", "timeline.yml")
    main(["build.log", "-o", "env.html"])
    assert (workspace / "env.html").exists()


def test_empty_log(workspace, capsys):
    (workspace / "empty.log").write_bytes(b"")
    main(["-c", "timeline.yml", "empty.log", "--json", "empty.json"])
    assert "no events matched" in capsys.readouterr().err
    payload = json.loads((workspace / "empty.json").read_text(encoding="utf-8"))
    assert payload["total_lanes"] == 0
    assert payload["global_duration"] == 0
    assert payload["blocks"] == []


def test_unclassified_line_exits(workspace, capsys):
    (workspace / "bad.log").write_bytes(b"[2024-03-01 12:00:05] package took 5s\n")
    with pytest.raises(SystemExit) as exc:
        main(["-c", "timeline.yml", "bad.log", "-o", "-"])
    assert exc.value.code == 1
    err = capsys.readouterr().err
    assert "Error:" in err
    assert "no color specified" in err
    assert "package took 5s" in err


def test_unparseable_timestamp_exits(workspace, capsys):
    (workspace / "bad.log").write_bytes(b"[soon] compile took 5s\n")
    with pytest.raises(SystemExit) as exc:
        main(["-c", "timeline.yml", "bad.log"])
    assert exc.value.code == 1
    assert "does not match format" in capsys.readouterr().err


def test_missing_log_exits(workspace):
    with pytest.raises(SystemExit) as exc:
        main(["-c", "timeline.yml", "missing.log"])
    assert exc.value.code == 1


def test_bad_config_exits(workspace, capsys):
    (workspace / "bad.yml").write_text("colors: [\n", encoding="utf-8")
    with pytest.raises(SystemExit) as exc:
        main(["-c", "bad.yml", "build.log"])
    assert exc.value.code == 1
    assert "malformed config" in capsys.readouterr().err


def test_huge_duration_exits(workspace, capsys):
    (workspace / "bad.log").write_bytes(b"[2024-03-01 12:00:05] compile took 1" + b"0" * 305 + b"s\n")
    with pytest.raises(SystemExit) as exc:
        main(["-c", "timeline.yml", "bad.log", "-o", "-"])
    assert exc.value.code == 1
    assert "duration out of range" in capsys.readouterr().err
