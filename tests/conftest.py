from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pytest

from aetheros_builder.config import BuildConfig
from aetheros_builder.context import BuildContext
from aetheros_builder.errors import CommandError
from aetheros_builder.logging_utils import configure_logging
from aetheros_builder.runner import CommandResult, CommandRunner


class FakeRunner(CommandRunner):
    """Records every command and fakes the side effects of the build tools."""

    def __init__(
        self,
        *,
        installed: Iterable[str] = (),
        kernels: Iterable[str] = ("6.14.0-15-generic",),
        du_bytes: int = 123456789,
        fail: Optional[Dict[str, int]] = None,
        unresolvable: Iterable[str] = (),
        statuses: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__()
        self.calls: List[List[str]] = []
        self.installed = set(installed)
        self.kernels = list(kernels)
        self.du_bytes = du_bytes
        self.fail = fail or {}
        self.unresolvable = set(unresolvable)
        self.statuses = statuses or {}

    async def run(self, argv, *, check=True, env=None, capture=False):
        argv = [str(part) for part in argv]
        self.calls.append(argv)
        returncode, stdout = self._respond(argv)
        if returncode != 0 and check:
            raise CommandError(argv, returncode)
        return CommandResult(argv=argv, returncode=returncode, stdout=stdout)

    def tools(self) -> List[str]:
        return [call[2] if call[0] == "chroot" else call[0] for call in self.calls]

    def _respond(self, argv: List[str]):
        inner = argv[2:] if argv[0] == "chroot" else argv
        joined = " ".join(inner)
        for prefix, code in self.fail.items():
            if joined.startswith(prefix):
                return code, ""

        tool = inner[0]
        if tool == "debootstrap":
            root = Path(argv[-2])
            (root / "boot").mkdir(parents=True, exist_ok=True)
            (root / "etc").mkdir(parents=True, exist_ok=True)
            for version in self.kernels:
                (root / "boot" / f"vmlinuz-{version}").write_bytes(b"kernel " + version.encode())
                (root / "boot" / f"initrd.img-{version}").write_bytes(b"initrd " + version.encode())
        elif tool == "apt-get" and inner[1] == "install":
            self.installed.update(
                pkg for pkg in inner[2:] if not pkg.startswith("-") and pkg not in self.unresolvable
            )
        elif tool == "apt-get" and inner[1] == "purge":
            self.installed.discard(inner[-1])
        elif tool == "dpkg-query":
            package = inner[-1]
            if package in self.statuses:
                return 0, self.statuses[package]
            if package in self.installed:
                return 0, "installed\n"
            return 1, f"dpkg-query: no packages found matching {package}"
        elif tool == "mksquashfs":
            Path(inner[2]).write_bytes(b"hsqs")
        elif tool == "du":
            return 0, f"{self.du_bytes}\t{inner[-1]}"
        elif tool == "grub-mkstandalone":
            Path(inner[inner.index("-o") + 1]).write_bytes(b"GRUB-" + inner[2].encode())
        elif tool == "xorriso":
            Path(inner[inner.index("-output") + 1]).write_bytes(b"CD001")
        return 0, ""


@pytest.fixture
def config(tmp_path: Path) -> BuildConfig:
    include = tmp_path / "packages-include.txt"
    include.write_text("curl\ngit\n")
    exclude = tmp_path / "packages-exclude.txt"
    exclude.write_text("")
    resolv = tmp_path / "resolv.conf"
    resolv.write_text("nameserver 192.0.2.53\n")
    cdboot = tmp_path / "cdboot.img"
    cdboot.write_bytes(b"CDBOOT")
    return BuildConfig(
        workdir=tmp_path / "work",
        include_file=include,
        exclude_file=exclude,
        resolv_conf=resolv,
        cdboot_img=cdboot,
    )


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def ctx(config: BuildConfig, runner: FakeRunner) -> BuildContext:
    return BuildContext(config=config, runner=runner)


@pytest.fixture
def make_runner():
    return FakeRunner


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    configure_logging(console=False)
