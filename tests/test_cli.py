import datetime as dt
import json

import pytest

from aetheros_builder.cli import main


def test_dry_run_prints_plan_without_root(config, capsys):
    code = main([str(config.workdir), "--include", str(config.include_file), "--dry-run"])
    assert code == 0
    out = capsys.readouterr().out
    assert out.startswith("[1] mkdir -p")
    assert "curl git" in out
    assert f"aetheros-{dt.date.today():%Y%m%d}.iso" in out
    assert not config.workdir.exists()


def test_export_then_load_config(config, tmp_path, capsys):
    exported = tmp_path / "build.json"
    code = main([str(config.workdir), "--kernel-policy", "first", "--export-config", str(exported)])
    assert code == 0
    data = json.loads(exported.read_text())
    assert data["kernel_policy"] == "first"
    assert data["workdir"] == str(config.workdir)

    code = main(["--config", str(exported), "--dry-run"])
    assert code == 0
    assert "first installed kernel" in capsys.readouterr().out


def test_rejects_unknown_kernel_policy():
    with pytest.raises(SystemExit) as excinfo:
        main(["--kernel-policy", "newest"])
    assert excinfo.value.code == 2


def test_rejects_missing_config_file(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(tmp_path / "absent.json")])
    assert excinfo.value.code == 2
