import json

import pytest

from agent.runner import main


@pytest.fixture
def incidents(tmp_path):
    path = tmp_path / "incidents.jsonl"
    rows = [
        {"indicators": ["1.2.3.4"], "description": "phishing email with malicious link"},
        {"indicators": ["1.2.3.4"], "description": "phishing campaign detected"},
    ]
    path.write_text("\n".join(json.dumps(r) for r in rows) + "\nnot json\n")
    return path


def test_writes_one_case_file_per_incident(tmp_path, incidents):
    case_dir = tmp_path / "cases"
    written = main(["--incidents", str(incidents), "--case_dir", str(case_dir), "--threshold", "0.3"])
    assert written == 2
    cases = [json.loads(p.read_text()) for p in sorted(case_dir.glob("*.json"))]
    assert len(cases) == 2
    assert sorted(len(c["related_cases"]) for c in cases) == [0, 1]


@pytest.mark.parametrize("flags", [["--max_size", "0"], ["--max_age", "-5"], ["--threshold", "1.5"]])
def test_invalid_settings_exit_with_usage_error(tmp_path, incidents, capsys, flags):
    with pytest.raises(SystemExit) as exc:
        main(["--incidents", str(incidents), "--case_dir", str(tmp_path / "cases")] + flags)
    assert exc.value.code == 2
    assert "invalid matcher settings" in capsys.readouterr().err
    assert not (tmp_path / "cases").exists()
