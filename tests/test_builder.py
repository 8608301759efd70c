import datetime as dt
import json
from pathlib import Path

import pytest

from aetheros_builder.builder import IsoBuildRunner, load_config, render_command_sequence
from aetheros_builder.config import BuildConfig
from aetheros_builder import pipeline


def test_render_command_sequence_uses_include_list(config: BuildConfig):
    commands = render_command_sequence(config)
    assert any(
        cmd.endswith("apt-get install -y --no-install-recommends --no-install-suggests curl git") for cmd in commands
    )


def test_render_command_sequence_orders_mount_and_unmount(config: BuildConfig):
    commands = render_command_sequence(config)
    mounts = [cmd for cmd in commands if cmd.startswith("mount --bind")]
    unmounts = [cmd for cmd in commands if cmd.startswith("umount")]
    assert [cmd.split()[2] for cmd in mounts] == ["/dev", "/run", "/proc", "/sys"]
    assert [Path(cmd.split()[-1]).name for cmd in unmounts] == ["sys", "proc", "run", "dev"]
    assert commands.index(unmounts[0]) == len(commands) - 4


def test_render_command_sequence_includes_hybrid_boot_flags(config: BuildConfig):
    xorriso = next(cmd for cmd in render_command_sequence(config) if cmd.startswith("xorriso"))
    for flag in ("-isohybrid-gpt-basdat", "-eltorito-alt-boot", "-joliet-long", "boot/grub/bios.img"):
        assert flag in xorriso
    assert str(config.iso_path) in xorriso


def test_render_command_sequence_survives_missing_include_list(tmp_path: Path):
    config = BuildConfig(workdir=tmp_path, include_file=tmp_path / "missing.txt")
    assert any("<include-list>" in cmd for cmd in render_command_sequence(config))


def test_render_command_sequence_survives_unreadable_exclude_list(config: BuildConfig, tmp_path: Path):
    config = config.with_updates(exclude_file=tmp_path)
    assert any("purge" in cmd and "<exclude-list>" in cmd for cmd in render_command_sequence(config))


@pytest.mark.asyncio
async def test_runner_simulation_writes_log(config: BuildConfig):
    runner = IsoBuildRunner(config.with_updates(simulate=True), console=False)
    lines = []

    result = await runner.run(callback=lines.append)
    assert result.success
    assert result.log_path.exists()
    assert lines[0] == "[INFO] Simulated build run."
    assert any("debootstrap" in line for line in lines)
    assert "debootstrap" in result.log_path.read_text()


@pytest.mark.asyncio
async def test_runner_reports_failure(config: BuildConfig, make_runner):
    fake = make_runner(fail={"debootstrap": 1})
    runner = IsoBuildRunner(config, runner=fake, preflight=False, console=False)
    lines = []

    result = await runner.run(callback=lines.append)
    assert not result.success
    assert "exit code 1" in result.error
    assert result.stages == []
    assert any(line.startswith("[ERROR] [bootstrap]") for line in lines)


@pytest.mark.asyncio
async def test_runner_builds_iso(config: BuildConfig, make_runner):
    runner = IsoBuildRunner(config, runner=make_runner(), preflight=False, console=False)

    result = await runner.run()
    assert result.success
    assert result.iso_path == config.iso_path
    assert result.iso_path.exists()


def test_export_config(config: BuildConfig, tmp_path: Path):
    runner = IsoBuildRunner(config)
    destination = tmp_path / "exported" / "config.json"
    runner.export_config(destination)
    data = json.loads(destination.read_text())
    assert data["architecture"] == config.architecture
    assert data["include_file"] == str(config.include_file)
    assert load_config(destination) == config


@pytest.mark.asyncio
async def test_runner_refuses_non_root_before_touching_workdir(config: BuildConfig, make_runner, monkeypatch):
    monkeypatch.setattr(pipeline.os, "geteuid", lambda: 1000)
    fake = make_runner()
    lines = []

    result = await IsoBuildRunner(config, runner=fake, console=False).run(callback=lines.append)
    assert not result.success
    assert "as root" in result.error
    assert result.log_path is None
    assert fake.calls == []
    assert not config.workdir.exists()
    assert "[ERROR] Run this build as root (it needs bind mounts and chroot)." in lines


@pytest.mark.asyncio
async def test_runner_reports_unwritable_workdir(config: BuildConfig, make_runner, tmp_path: Path):
    blocker = tmp_path / "file"
    blocker.write_text("")
    config = config.with_updates(workdir=blocker / "work")
    fake = make_runner()

    result = await IsoBuildRunner(config, runner=fake, preflight=False, console=False).run()
    assert not result.success
    assert "Cannot create the build log" in result.error
    assert result.log_path is None
    assert fake.calls == []


@pytest.mark.asyncio
async def test_runner_reports_undecodable_include_list(config: BuildConfig, make_runner):
    config.include_file.write_bytes(b"curl\n\xff\xfegit\n")
    lines = []

    result = await IsoBuildRunner(config, runner=make_runner(), preflight=False, console=False).run(
        callback=lines.append
    )
    assert not result.success
    assert "not valid UTF-8" in result.error
    assert result.stages == ["bootstrap", "mount"]
    assert any(line.startswith("[ERROR] [provision]") for line in lines)


def test_exported_config_without_date_names_iso_after_build_day(config: BuildConfig, tmp_path: Path):
    destination = tmp_path / "config.json"
    IsoBuildRunner(config).export_config(destination)
    assert "build_date" not in json.loads(destination.read_text())

    loaded = load_config(destination)
    assert loaded.build_date is None
    assert loaded.iso_path == config.workdir / f"aetheros-{dt.date.today():%Y%m%d}.iso"


def test_exported_config_keeps_a_pinned_date(config: BuildConfig, tmp_path: Path):
    destination = tmp_path / "config.json"
    IsoBuildRunner(config.with_updates(build_date="2025-01-02")).export_config(destination)
    assert load_config(destination).iso_path == config.workdir / "aetheros-20250102.iso"
