"""Shared state handed from stage to stage."""
from __future__ import annotations

import contextlib
from dataclasses import dataclass, field
from typing import Any, Dict, Sequence

from . import commands
from .config import BuildConfig
from .runner import CommandResult, CommandRunner


@dataclass
class BuildContext:
    """Configuration, command runner and the artifacts produced so far.

    Host resources (bind mounts) are registered on ``exit_stack``; closing it
    releases them whether the build finished or aborted.
    """

    config: BuildConfig
    runner: CommandRunner = field(default_factory=CommandRunner)
    artifacts: Dict[str, Any] = field(default_factory=dict)
    exit_stack: contextlib.AsyncExitStack = field(default_factory=contextlib.AsyncExitStack)

    async def chroot(self, argv: Sequence[str], **kwargs: Any) -> CommandResult:
        """Run ``argv`` inside the build root with a non-interactive apt."""
        env = {**commands.APT_ENV, **kwargs.pop("env", {})}
        return await self.runner.run(commands.in_chroot(self.config, argv), env=env, **kwargs)

    async def release(self) -> None:
        await self.exit_stack.aclose()
