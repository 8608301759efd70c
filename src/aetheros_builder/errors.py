"""Exception hierarchy for ISO builds."""
from __future__ import annotations

from typing import Sequence


class BuildError(RuntimeError):
    """Base class for every failure that aborts a build."""


class PrerequisiteError(BuildError):
    """Raised before any mutation when the host cannot run the build."""

    def __init__(self, problems: Sequence[str]) -> None:
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class StageError(BuildError):
    """A pipeline stage could not complete."""

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        self.stage = stage
        super().__init__(message)


class CommandError(StageError):
    """An external tool exited with a non-zero status."""

    def __init__(self, argv: Sequence[str], returncode: int, *, stage: str | None = None) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        super().__init__(f"Command failed with exit code {returncode}: {' '.join(self.argv)}", stage=stage)


class PurgeError(StageError):
    """Purging an installed package failed."""

    def __init__(self, package: str, returncode: int) -> None:
        self.package = package
        self.returncode = returncode
        super().__init__(f"Failed to purge {package} (exit code {returncode})", stage="provision")
