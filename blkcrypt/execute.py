"""
External Command Execution

Thin wrapper around subprocess used by every component that needs to talk
to a system tool (lszcrypt, zkey, fdectl, systemctl...).

Two flavours are provided:
- run(): never raises because of the command, returns a CommandResult
- check_output(): returns stdout or raises CommandFailed

Input given through stdin can be excluded from the log output, which is
how passwords are handed over to the tools without exposing them in the
process list or in the logs.
"""

import os
import subprocess
from typing import Dict, NamedTuple, Optional, Sequence

from .logger import Logger


# Exit code reported when the executable cannot be launched at all
COMMAND_NOT_FOUND = 127


class CommandFailed(Exception):
    """Raised by check_output() when a command exits with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str = ""):
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"Command '{' '.join(self.command)}' failed with status {returncode}: {stderr}"
        )


class CommandResult(NamedTuple):
    """Outcome of an external command"""
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        """Whether the command succeeded"""
        return self.returncode == 0


def run(*args: str, stdin: Optional[str] = None, record_stdin: bool = True,
        env: Optional[Dict[str, str]] = None) -> CommandResult:
    """
    Execute a command and capture its output.

    Args:
        args: Program and its arguments
        stdin: Text to feed to the standard input of the command
        record_stdin: If False, the stdin content is never logged
        env: Extra environment variables for the command

    Returns:
        CommandResult, with returncode 127 if the program could not be started.
        Output bytes that are not valid UTF-8 are replaced, never raised.
    """
    shown_stdin = stdin if record_stdin else "<hidden>"
    Logger.debug("exec", f"{' '.join(args)}" + (f" < {shown_stdin}" if stdin is not None else ""))

    full_env = None
    if env:
        full_env = dict(os.environ)
        full_env.update(env)

    try:
        result = subprocess.run(
            list(args),
            input=stdin,
            capture_output=True,
            text=True,
            errors="replace",
            env=full_env
        )
    except OSError as e:
        Logger.debug("exec", f"Cannot launch {args[0]}: {e}")
        return CommandResult(COMMAND_NOT_FOUND, "", str(e))

    if result.returncode != 0:
        Logger.debug("exec", f"{args[0]} exited with status {result.returncode}")

    return CommandResult(result.returncode, result.stdout or "", result.stderr or "")


def check_output(*args: str, stdin: Optional[str] = None, record_stdin: bool = True,
                 env: Optional[Dict[str, str]] = None) -> str:
    """
    Execute a command and return its standard output.

    Raises:
        CommandFailed: If the command fails or cannot be launched
    """
    result = run(*args, stdin=stdin, record_stdin=record_stdin, env=env)
    if not result.ok:
        raise CommandFailed(args, result.returncode, result.stderr.strip())
    return result.stdout
