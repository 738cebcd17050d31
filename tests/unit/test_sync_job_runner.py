import json
import os

import pytest

from utils import sync_job_runner


@pytest.fixture
def fake_run(monkeypatch):
    seen = {}

    def _run(mode, yaml_path, dry_run=False):
        seen.update(mode=mode, yaml_path=yaml_path, dry_run=dry_run)
        return {"mode": mode, "records": 3}

    monkeypatch.setattr(sync_job_runner, "run_sync", _run)
    return seen


def test_main_runs_and_prints_status(fake_run, capsys):
    sync_job_runner.main(["-y", "config/sync.yml", "--mode", "historical", "--dry_run"])
    assert fake_run == {
        "mode": "historical",
        "yaml_path": "config/sync.yml",
        "dry_run": True,
    }
    out = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert out == {"status": "ok", "meta": {"mode": "historical", "records": 3}}


def test_main_defaults_to_daily(fake_run):
    sync_job_runner.main(["--yaml_path", "config/sync.yml"])
    assert fake_run["mode"] == "daily"
    assert fake_run["dry_run"] is False


def test_extra_env_is_exported(fake_run, monkeypatch):
    monkeypatch.delenv("LOOKER_BASE_URL", raising=False)
    sync_job_runner.main(
        ["-y", "c.yml", "--extra_env", "LOOKER_BASE_URL=https://l.test/x=1", "--extra_env", "junk"]
    )
    assert os.environ["LOOKER_BASE_URL"] == "https://l.test/x=1"


def test_unknown_mode_is_a_usage_error(fake_run):
    with pytest.raises(SystemExit):
        sync_job_runner.main(["-y", "c.yml", "--mode", "weekly"])
    assert fake_run == {}
