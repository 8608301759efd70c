"""Command preview and the top-level build runner."""
from __future__ import annotations

import asyncio
import datetime as dt
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from . import commands
from .config import BuildConfig, PackageList
from .context import BuildContext
from .errors import BuildError, PrerequisiteError
from .logging_utils import LOGGER_NAME, CallbackHandler, configure_logging
from .pipeline import check_prerequisites, run_pipeline
from .runner import CommandRunner, format_argv

logger = logging.getLogger(__name__)


def render_command_sequence(config: BuildConfig) -> List[str]:
    """Generate the shell-equivalent commands the build will perform."""
    try:
        include = config.include_packages()
    except (OSError, BuildError):
        include = PackageList(["<include-list>"])
    try:
        exclude = config.exclude_packages()
    except (OSError, BuildError):
        exclude = PackageList(["<exclude-list>"])
    chroot = config.chroot_dir
    image = config.image_dir

    def in_chroot(argv: Sequence[str]) -> str:
        return format_argv(commands.in_chroot(config, argv))

    lines: List[str] = [
        f"mkdir -p {chroot}",
        f"test -f {config.bootstrap_sentinel} || {format_argv(commands.debootstrap(config))}",
        f"touch {config.bootstrap_sentinel}",
    ]
    lines.extend(format_argv(commands.bind_mount(config, name)) for name in commands.BIND_MOUNTS)
    lines.append(f"cp {config.resolv_conf} {chroot}/etc/resolv.conf")

    lines.extend(
        [
            in_chroot(commands.apt_update()),
            in_chroot(commands.apt_dist_upgrade()),
            in_chroot(commands.apt_install(include.packages)),
        ]
    )
    for package in [*exclude, config.bloat_package]:
        lines.append(in_chroot(commands.apt_purge(package)) + "  # skipped if not installed")
    lines.append("rm -rf " + " ".join(f"{chroot}{path}" for path in config.bloat_paths))
    lines.extend(
        [
            in_chroot(commands.apt_autoremove()),
            in_chroot(commands.apt_clean()),
            f"rm -rf {chroot}/var/lib/apt/lists/*",
            in_chroot(commands.set_default_target(config.default_target)),
        ]
    )

    casper = commands.squashfs_path(config).parent
    lines.extend(
        [
            f"mkdir -p {casper}",
            format_argv(commands.mksquashfs(config)),
            f"{format_argv(commands.disk_usage(config))} | cut -f1 > {casper}/filesystem.size",
        ]
    )

    efi_loader = commands.efi_loader_path(config)
    core_img = commands.bios_core_path(config)
    lines.extend(
        [
            f"write {commands.grub_cfg_path(config)} (search --file /{config.search_sentinel})",
            f"touch {image}/{config.search_sentinel}",
            format_argv(commands.grub_mkstandalone(config, "x86_64-efi", efi_loader)),
            format_argv(commands.grub_mkstandalone(config, "i386-pc", core_img)),
            f"cat {config.cdboot_img} {core_img} > {image}/{commands.ISO_BIOS_IMAGE}",
            f"cp {efi_loader} {image}/{commands.ISO_EFI_LOADER}",
        ]
    )

    lines.extend(
        [
            f"cp {chroot}/boot/vmlinuz-<kernel-version> {casper}/vmlinuz  # {config.kernel_policy} installed kernel",
            f"cp {chroot}/boot/initrd.img-<kernel-version> {casper}/initrd",
            format_argv(commands.xorriso(config)),
        ]
    )
    lines.extend(format_argv(commands.unmount(config, name)) for name in reversed(commands.BIND_MOUNTS))
    return lines


@dataclass(slots=True)
class BuildResult:
    commands: Sequence[str]
    log_path: Optional[Path]
    success: bool
    iso_path: Optional[Path] = None
    error: Optional[str] = None
    stages: List[str] = field(default_factory=list)


class IsoBuildRunner:
    """Run the build pipeline, or only log its command plan when simulating."""

    def __init__(
        self,
        config: BuildConfig,
        *,
        log_dir: Path | None = None,
        runner: CommandRunner | None = None,
        preflight: bool = True,
        console: bool = True,
        verbose: bool = False,
    ) -> None:
        self.config = config
        self.log_dir = log_dir or config.log_dir
        self.runner = runner or CommandRunner()
        self.preflight = preflight
        self.console = console
        self.verbose = verbose

    async def run(self, *, callback: Callable[[str], None] | None = None) -> BuildResult:
        # Console only until preflight passes, so a refused build leaves the workdir untouched.
        configure_logging(verbose=self.verbose, console=self.console)
        handler = CallbackHandler(callback) if callback else None
        package_logger = logging.getLogger(LOGGER_NAME)
        if handler:
            package_logger.addHandler(handler)
        try:
            plan = render_command_sequence(self.config)
            try:
                if self.preflight and not self.config.simulate:
                    check_prerequisites(self.config)
                log_path = self._open_build_log()
            except PrerequisiteError as exc:
                for problem in exc.problems:
                    logger.error("%s", problem)
                return BuildResult(commands=plan, log_path=None, success=False, error=str(exc))
            except BuildError as exc:
                logger.error("%s", exc)
                return BuildResult(commands=plan, log_path=None, success=False, error=str(exc))
            if self.config.simulate:
                await self._simulate(plan)
                return BuildResult(commands=plan, log_path=log_path, success=True)
            return await self._execute(plan, log_path)
        finally:
            if handler:
                package_logger.removeHandler(handler)

    def _open_build_log(self) -> Path:
        try:
            log_path = configure_logging(self.log_dir, verbose=self.verbose, console=self.console)
        except OSError as exc:
            configure_logging(verbose=self.verbose, console=self.console)
            raise BuildError(f"Cannot create the build log in {self.log_dir}: {exc}") from exc
        assert log_path is not None
        return log_path

    async def _simulate(self, plan: Sequence[str]) -> None:
        logger.info("Simulated build run.")
        for index, command in enumerate(plan, start=1):
            logger.info("[%d/%d] %s", index, len(plan), command)
            await asyncio.sleep(0)

    async def _execute(self, plan: Sequence[str], log_path: Path) -> BuildResult:
        config = self.config
        if config.build_date is None:
            # Pin the ISO name for the whole run, even across midnight.
            config = config.with_updates(build_date=dt.date.today())
        ctx = BuildContext(config=config, runner=self.runner)
        try:
            result = await run_pipeline(ctx, preflight=False)
        except BuildError as exc:
            stage = getattr(exc, "stage", None)
            logger.error("%s%s", f"[{stage}] " if stage else "", exc)
            return BuildResult(
                commands=plan,
                log_path=log_path,
                success=False,
                error=str(exc),
                stages=list(ctx.artifacts.get("ran_stages", [])),
            )
        return BuildResult(
            commands=plan,
            log_path=log_path,
            success=True,
            iso_path=result.iso_path,
            stages=result.ran_stages,
        )

    def export_config(self, destination: Path) -> Path:
        data = self.config.to_dict()
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(json.dumps(data, indent=2))
        return destination


def load_config(path: Path) -> BuildConfig:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return BuildConfig.from_dict(data)
