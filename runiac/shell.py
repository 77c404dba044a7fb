"""Description of external commands and dispatch to a command runner."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Union

_LOG = logging.getLogger("runiac.shell")

LoggerLike = Union[logging.Logger, logging.LoggerAdapter]


@dataclass
class Command:
    """A program invocation to be carried out by a runner."""

    command: str
    args: list[str] = field(default_factory=list)
    working_dir: str = "."
    env: dict[str, str] = field(default_factory=dict)
    output_max_line_size: int = 0
    non_interactive: bool = True
    sensitive_args: bool = False
    logger: LoggerLike | None = None


Runner = Callable[[Command, bool], str]


def run(runner: Runner, command: Command, stream: bool = False) -> str:
    """Hand ``command`` to ``runner`` and return the output it produced.

    The runner receives the command and whether its output should be streamed
    while it runs; it raises :class:`runiac.errors.CommandError` on failure.
    """
    if not command.command:
        raise ValueError("command has no program to run")
    logger = command.logger if command.logger is not None else _LOG
    shown = "<redacted>" if command.sensitive_args else " ".join(command.args)
    logger.info(
        "Running command %s with args [%s] in %s",
        command.command,
        shown,
        command.working_dir,
    )
    output = runner(command, stream)
    if not isinstance(output, str):
        raise TypeError(f"runner returned {type(output).__name__}, expected str")
    return output