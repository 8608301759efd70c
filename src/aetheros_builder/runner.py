"""Async execution of external build tools."""
from __future__ import annotations

import asyncio
import logging
import os
import shlex
from dataclasses import dataclass, field
from typing import List, Mapping, Sequence

from .errors import CommandError

logger = logging.getLogger(__name__)


def format_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(str(part)) for part in argv)


@dataclass(slots=True)
class CommandResult:
    argv: List[str]
    returncode: int
    stdout: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass(slots=True)
class CommandRunner:
    """Run commands one at a time, streaming merged output into the log."""

    env: Mapping[str, str] = field(default_factory=dict)

    async def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        env: Mapping[str, str] | None = None,
        capture: bool = False,
    ) -> CommandResult:
        """Run ``argv`` to completion.

        Output lines go to the debug log; with ``capture`` they are also
        collected into :attr:`CommandResult.stdout`. A non-zero exit raises
        :class:`CommandError` unless ``check`` is false.
        """
        argv_list = [str(part) for part in argv]
        logger.info("$ %s", format_argv(argv_list))
        process = await asyncio.create_subprocess_exec(
            *argv_list,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            env={**os.environ, **self.env, **(env or {})},
        )
        assert process.stdout
        captured: List[str] = []
        async for line in process.stdout:
            decoded = line.decode(errors="replace").rstrip("\n")
            logger.debug("%s", decoded)
            if capture:
                captured.append(decoded)
        returncode = await process.wait()
        result = CommandResult(argv=argv_list, returncode=returncode, stdout="\n".join(captured))
        if returncode != 0:
            if check:
                raise CommandError(argv_list, returncode)
            logger.debug("Command exited with %s (ignored): %s", returncode, format_argv(argv_list))
        return result
